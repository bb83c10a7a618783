from __future__ import annotations

from typing import Optional

from fastapi import Request


def request_id_of(request: Request) -> Optional[str]:
    return getattr(getattr(request, "state", None), "request_id", None)


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None
