from starlette.types import ASGIApp, Receive, Scope, Send


def client_ip_from_forwarded(forwarded_for: str, proxies_count: int) -> str | None:
    """Pick the client address from ``X-Forwarded-For`` behind N trusted proxies.

    The header reads ``client, proxy1, proxy2``; with N trusted proxies the
    client is the entry N places from the right.
    """
    ips = [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]
    if proxies_count <= 0 or len(ips) <= proxies_count:
        return None
    return ips[-(proxies_count + 1)]


class TrustedProxiesMiddleware:
    """Rewrite the ASGI client address so rate limits and login lockouts key on the real caller."""

    def __init__(self, app: ASGIApp, proxies_count: int = 1) -> None:
        self.app = app
        self.proxies_count = proxies_count

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.proxies_count > 0:
            headers = dict(scope.get("headers", []))
            real_ip = client_ip_from_forwarded(headers.get(b"x-forwarded-for", b"").decode("latin-1"), self.proxies_count)
            if real_ip:
                port = scope["client"][1] if scope.get("client") else 0
                scope["client"] = (real_ip, port)
        await self.app(scope, receive, send)
