"""Upload staging for the REST API.

Uploaded artifacts are copied into the configured upload directory with a size
limit before the upgrade pipeline runs. Staged files are never deleted here;
the retention sweep reclaims them.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import BinaryIO

CHUNK_SIZE = 1024 * 1024


class UploadRejected(RuntimeError):
    """Input error at the upload boundary, rendered as ``{code, message, hint}``."""

    def __init__(self, *, code: str, message: str, hint: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.hint = hint
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "hint": self.hint}


def normalize_upload_name(filename: str) -> str:
    """Return the basename of the client-supplied filename."""
    normalized = Path(str(filename or "").replace("\\", "/")).name.strip()
    if not normalized or normalized in (".", ".."):
        raise UploadRejected(
            code="upload.invalid_filename",
            message="Upload failed: missing filename",
            hint="Send the artifact in the multipart field 'file' with a filename.",
        )
    return normalized


def stage_upload(*, source: BinaryIO, upload_dir: Path, filename: str, max_bytes: int) -> Path:
    """Copy the upload stream into ``upload_dir`` and return the staged path.

    The staged name carries a random prefix so concurrent uploads of the same
    filename never share a file.
    """
    try:
        upload_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise UploadRejected(
            code="upload.store_failed",
            message="Failed to create upload directory",
            hint=str(exc),
            status_code=500,
        ) from exc

    target_path = upload_dir / f"{uuid.uuid4().hex[:12]}_{filename}"
    bytes_written = 0
    try:
        with target_path.open("wb") as handle:
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                bytes_written += len(chunk)
                if bytes_written > max_bytes:
                    raise UploadRejected(
                        code="upload.too_large",
                        message="Upload exceeds size limit",
                        hint=f"Maximum upload size is {max_bytes} bytes.",
                        status_code=413,
                    )
                handle.write(chunk)
    except UploadRejected:
        target_path.unlink(missing_ok=True)
        raise
    except OSError as exc:
        target_path.unlink(missing_ok=True)
        raise UploadRejected(
            code="upload.store_failed",
            message="Failed to save uploaded file",
            hint=str(exc),
            status_code=500,
        ) from exc

    if bytes_written <= 0:
        target_path.unlink(missing_ok=True)
        raise UploadRejected(
            code="upload.empty",
            message="Uploaded file is empty",
            hint="Upload a non-empty artifact.",
        )
    return target_path


__all__ = ["UploadRejected", "normalize_upload_name", "stage_upload"]
