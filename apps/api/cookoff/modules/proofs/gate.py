"""
Proof-of-cooking video checks.

- extension and MIME type must both be allowed AND agree with each other
- size <= 20 MiB
- duration <= 60 s when the client declares it (the server does not probe media)
- auto-approval for voters at level >= 4
"""
from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from typing import Dict, Optional

from cookoff.core.errors import InvalidArgument

MAX_PROOF_BYTES = 20 * 1024 * 1024
MAX_PROOF_DURATION_SEC = 60
AUTO_APPROVAL_LEVEL = 4

# extension -> MIME types a client may legitimately declare for it
EXTENSION_MIME_TYPES: Dict[str, frozenset] = {
    ".mp4": frozenset({"video/mp4"}),
    ".webm": frozenset({"video/webm"}),
    ".mov": frozenset({"video/quicktime"}),
    ".avi": frozenset({"video/x-msvideo", "video/avi", "video/msvideo"}),
}
ALLOWED_EXTENSIONS = tuple(sorted(EXTENSION_MIME_TYPES))
ALLOWED_MIME_TYPES = frozenset(m for ms in EXTENSION_MIME_TYPES.values() for m in ms)


@dataclass(frozen=True)
class ValidatedProof:
    extension: str
    mime_type: str
    size: int
    duration_seconds: Optional[float] = None


def _extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def validate_proof(
    filename: str,
    mime_type: Optional[str],
    size: int,
    duration_seconds: Optional[float] = None,
) -> ValidatedProof:
    ext = _extension(filename)
    mime = (mime_type or "").split(";")[0].strip().lower()

    if ext not in EXTENSION_MIME_TYPES:
        raise InvalidArgument(
            "Invalid file type. Only MP4, WebM, MOV, and AVI are allowed.",
            details={"extension": ext, "allowed": list(ALLOWED_EXTENSIONS)},
        )
    if mime not in ALLOWED_MIME_TYPES:
        raise InvalidArgument(
            "Invalid MIME type. Only video files are allowed.",
            details={"mime_type": mime, "allowed": sorted(ALLOWED_MIME_TYPES)},
        )
    if mime not in EXTENSION_MIME_TYPES[ext]:
        raise InvalidArgument(
            "File extension does not match the declared MIME type.",
            details={"extension": ext, "mime_type": mime},
        )

    if size <= 0:
        raise InvalidArgument("Uploaded video is empty.")
    if size > MAX_PROOF_BYTES:
        raise InvalidArgument(
            f"Video file too large. Maximum size is {MAX_PROOF_BYTES // (1024 * 1024)}MB",
            details={"size": size, "max_bytes": MAX_PROOF_BYTES},
        )

    if duration_seconds is not None:
        if duration_seconds <= 0:
            raise InvalidArgument("durationSeconds must be positive.")
        if duration_seconds > MAX_PROOF_DURATION_SEC:
            raise InvalidArgument(
                f"Video is too long. Maximum duration is {MAX_PROOF_DURATION_SEC} seconds.",
                details={"duration_seconds": duration_seconds, "max_seconds": MAX_PROOF_DURATION_SEC},
            )

    return ValidatedProof(extension=ext, mime_type=mime, size=size, duration_seconds=duration_seconds)


def compute_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def auto_approval_eligible(level: Optional[int]) -> bool:
    return int(level or 0) >= AUTO_APPROVAL_LEVEL
