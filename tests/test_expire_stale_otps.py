import pytest

from conftest import FakeAsyncSession
from scripts import expire_stale_otps


class _RowCount:
    rowcount = 3


class _SweepSession(FakeAsyncSession):
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


@pytest.mark.asyncio
async def test_sweep_deactivates_expired_otps(monkeypatch):
    session = _SweepSession().on_execute_return(_RowCount())
    monkeypatch.setattr(expire_stale_otps, "AsyncSessionLocal", lambda: session)

    count = await expire_stale_otps.expire_stale_otps()

    assert count == 3
    assert session.committed is True
    compiled = str(session.statements[0])
    assert compiled.startswith("UPDATE otp_verifications SET is_active")
    assert "expires_at <" in compiled
