"""
Local filesystem storage for uploaded media.

Defaults:
- UPLOAD_ROOT: ./data/uploads
- proof videos live in <UPLOAD_ROOT>/proofs and are served at /uploads/proofs/<name>
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

PROOFS_SUBDIR = "proofs"
PUBLIC_PREFIX = "/uploads"


def _repo_root() -> Path:
    # apps/api/cookoff/core/storage.py -> repo root = parents[4]
    return Path(__file__).resolve().parents[4]


def get_upload_root() -> Path:
    raw = os.getenv("UPLOAD_ROOT", "./data/uploads")
    p = Path(raw)
    return (_repo_root() / p).resolve() if not p.is_absolute() else p


def ensure_upload_root() -> Path:
    root = get_upload_root()
    root.mkdir(parents=True, exist_ok=True)
    return root


def get_proofs_dir() -> Path:
    d = ensure_upload_root() / PROOFS_SUBDIR
    d.mkdir(parents=True, exist_ok=True)
    return d


def public_url(subdir: str, name: str) -> str:
    return f"{PUBLIC_PREFIX}/{subdir}/{name}"


def path_for_public_url(url: str) -> Optional[Path]:
    """Map /uploads/<subdir>/<name> back to a path under the upload root, or None."""
    if not url or not url.startswith(PUBLIC_PREFIX + "/"):
        return None
    rel = url[len(PUBLIC_PREFIX) + 1 :]
    return safe_under_root(get_upload_root(), rel)


def safe_under_root(root: Path, candidate: str) -> Optional[Path]:
    try:
        p = Path(candidate)
        if not p.is_absolute():
            p = (root / p).resolve()
        else:
            p = p.resolve()
        root_resolved = root.resolve()
        if str(p).startswith(str(root_resolved) + os.sep) or str(p) == str(root_resolved):
            return p
        return None
    except Exception:
        return None


def storage_health() -> Dict[str, Any]:
    try:
        root = ensure_upload_root()
        probe = root / ".probe_write"
        probe.write_text("ok", encoding="utf-8")
        try:
            probe.unlink()
        except OSError:
            pass
        return {"status": "ok", "kind": "local_fs", "root": str(root.as_posix())}
    except Exception as e:
        return {"status": "error", "kind": "local_fs", "root": str(get_upload_root().as_posix()), "error": str(e)}
