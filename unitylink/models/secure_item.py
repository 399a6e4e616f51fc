"""
Secure item model — one encrypted value per storage key.

The session store keeps three rows at most: the auth token, the user
data and the app settings. Values are Fernet ciphertext, never plaintext.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from unitylink.db.base import Base


class SecureItem(Base):
    __tablename__ = "secure_items"

    key: str = Column(String(64), primary_key=True)  # type: ignore[assignment]
    value: str = Column(Text, nullable=False)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
