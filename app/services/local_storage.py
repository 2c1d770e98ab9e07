from __future__ import annotations

import hashlib
from pathlib import Path
from uuid import UUID, uuid4

from fastapi import UploadFile

from app.core.settings import settings


# Magic byte signatures for the upload types we accept.
_MAGIC_SIGNATURES: dict[str, list[bytes]] = {
    ".pdf": [b"%PDF"],
    ".png": [b"\x89PNG\r\n\x1a\n"],
    ".jpg": [b"\xff\xd8\xff"],
    ".jpeg": [b"\xff\xd8\xff"],
}

CHUNK_SIZE = 1024 * 1024


def storage_root() -> Path:
    return Path(settings.storage_root).resolve()


def application_documents_subdir(application_id: UUID) -> Path:
    return Path("applications") / str(application_id) / "documents"


def application_generated_subdir(application_id: UUID) -> Path:
    return Path("applications") / str(application_id) / "generated"


def _validate_content_type(header_bytes: bytes, ext: str) -> None:
    signatures = _MAGIC_SIGNATURES.get(ext)
    if signatures is None:
        return
    if not any(header_bytes.startswith(sig) for sig in signatures):
        raise ValueError(f"File content does not match the expected format for '{ext}'")


def _safe_filename(filename: str | None, fallback: str) -> str:
    if not filename:
        return fallback
    return Path(filename).name or fallback


def _destination(base_dir: Path, subdir: Path) -> Path:
    base_dir = base_dir.resolve()
    dest_dir = (base_dir / subdir).resolve()
    if base_dir not in dest_dir.parents and base_dir != dest_dir:
        raise ValueError("Invalid upload path")
    dest_dir.mkdir(parents=True, exist_ok=True)
    return dest_dir


async def save_upload(
    file: UploadFile,
    subdir: Path,
    *,
    base_dir: Path | None = None,
    allowed_extensions: set[str] | None = None,
    max_size_bytes: int = 0,
) -> tuple[str, str, int, str]:
    """Stream an upload to disk.

    Returns ``(relative_path, original_name, size_bytes, sha256)``.
    """
    base_dir = base_dir or storage_root()
    dest_dir = _destination(base_dir, subdir)

    original_name = _safe_filename(file.filename, "upload.bin")
    ext = Path(original_name).suffix.lower()
    if allowed_extensions and ext not in allowed_extensions:
        raise ValueError(f"File type not allowed. Allowed extensions: {', '.join(sorted(allowed_extensions))}")

    dest_path = dest_dir / f"{uuid4().hex}{ext}"
    digest = hashlib.sha256()
    bytes_written = 0
    try:
        with dest_path.open("wb") as handle:
            first = True
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                if first:
                    _validate_content_type(chunk, ext)
                    first = False
                bytes_written += len(chunk)
                if max_size_bytes and bytes_written > max_size_bytes:
                    raise ValueError(
                        f"File exceeds maximum allowed size of {max_size_bytes // (1024 * 1024)} MB"
                    )
                digest.update(chunk)
                handle.write(chunk)
    except ValueError:
        dest_path.unlink(missing_ok=True)
        raise
    finally:
        await file.close()

    return dest_path.relative_to(base_dir).as_posix(), original_name, bytes_written, digest.hexdigest()


def save_bytes(content: bytes, subdir: Path, filename: str, *, base_dir: Path | None = None) -> str:
    base_dir = base_dir or storage_root()
    dest_dir = _destination(base_dir, subdir)
    dest_path = dest_dir / f"{uuid4().hex}_{_safe_filename(filename, 'document.pdf')}"
    dest_path.write_bytes(content)
    return dest_path.relative_to(base_dir).as_posix()


def resolve_local_path(relative_path: str, *, base_dir: Path | None = None) -> Path:
    base_dir = (base_dir or storage_root()).resolve()
    candidate = (base_dir / relative_path).resolve()
    if base_dir not in candidate.parents and candidate != base_dir:
        raise ValueError("Invalid document path")
    return candidate


def read_bytes(relative_path: str, *, base_dir: Path | None = None) -> bytes:
    return resolve_local_path(relative_path, base_dir=base_dir).read_bytes()
