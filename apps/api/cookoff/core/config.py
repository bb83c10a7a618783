from __future__ import annotations

import os


def _parse_bool(v: str) -> bool:
    vv = (v or "").strip().lower()
    return vv not in ("0", "false", "no", "off", "")


def app_version() -> str:
    return os.getenv("APP_VERSION", "0.1.0")


def app_env() -> str:
    return os.getenv("APP_ENV", "production").strip().lower()


def is_development() -> bool:
    return app_env() in ("development", "dev", "local")


def reconcile_enabled() -> bool:
    return _parse_bool(os.getenv("BATTLE_RECONCILE_ENABLED", "1"))


def reconcile_interval_seconds() -> float:
    raw = os.getenv("BATTLE_RECONCILE_INTERVAL_SEC", "300")
    try:
        v = float(raw)
    except ValueError:
        return 300.0
    return v if v > 0 else 300.0
