from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel


# append-only (enforced by SQLite triggers)
class AdminLog(SQLModel, table=True):
    __tablename__ = "admin_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    admin_id: str = Field(index=True)
    action: str
    target_type: str
    target_id: str
    details_json: str = Field(default="{}")
    ip_address: Optional[str] = Field(default=None)

    created_at: str = Field(index=True)
