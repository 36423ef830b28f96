"""
Data models for the analytics queue.
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsEvent(BaseModel):
    """
    One click on a short URL.

    Created on the redirect path and published to the queue. The worker
    persists it later; it is never modified after creation.
    """

    short_code: str = Field(..., description="The short code that was accessed")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="User agent string")
    timestamp: datetime = Field(default_factory=_utcnow, description="When the click happened")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "short_code": "aB3xY9",
                "ip_address": "192.168.1.1",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                "timestamp": "2025-10-29T10:30:00Z",
            }
        },
    )


class EnqueueResult(Enum):
    """Outcome of a non-blocking publish."""
    ACCEPTED = "accepted"
    DROPPED = "dropped"
