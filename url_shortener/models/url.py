import hashlib
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from url_shortener.database.connection import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_long_url(long_url: str) -> str:
    """Hex sha256 of the URL, the key that keeps re-shortening idempotent."""
    return hashlib.sha256(long_url.encode("utf-8")).hexdigest()


class URL(Base):
    """
    URL record: the source of truth for a short code.

    short_code is unique. Uniqueness of long_url is enforced through
    long_url_hash, so URLs of any length fit in the index, and two requests
    racing on the same URL still end up with one row.
    clicks is written only by the analytics worker's batch flush.
    """
    __tablename__ = "urls"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Note: unique=True automatically creates an index
    short_code = Column(String(16), unique=True, nullable=False)
    long_url = Column(Text, nullable=False)
    long_url_hash = Column(String(64), unique=True, nullable=False)
    clicks = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        index=True,
    )
