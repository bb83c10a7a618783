from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel


# media_type: image|video; video_hash only set for proof uploads
class Media(SQLModel, table=True):
    __tablename__ = "media"
    __table_args__ = (
        CheckConstraint("media_type IN ('image', 'video')", name="check_media_type"),
    )

    id: str = Field(primary_key=True)
    url: str
    media_type: str
    file_size_bytes: Optional[int] = Field(default=None)
    mime_type: Optional[str] = Field(default=None)
    uploaded_by: str = Field(foreign_key="users.id", index=True)
    upload_ip: Optional[str] = Field(default=None)
    video_hash: Optional[str] = Field(default=None, index=True)
    duration_seconds: Optional[float] = Field(default=None)

    created_at: str
