from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional
from datetime import datetime, timezone


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored time is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class URLRecord(BaseModel):
    """
    A stored URL mapping.

    Built from the SQLAlchemy row (from_attributes=True), and also the JSON
    shape kept in the cache, so a cached value and a store row are the same.
    """
    id: int
    short_code: str
    long_url: str
    clicks: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class AnalyticsRecord(BaseModel):
    id: int
    short_code: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ShortenRequest(BaseModel):
    # Validated by the service so a bad URL maps to InvalidInput, not 422
    url: Optional[str] = Field(None, description="The original URL to be shortened")


class ShortenResponse(BaseModel):
    short_url: str
    short_code: str
    long_url: str
    created_at: datetime


class URLStats(BaseModel):
    short_code: str
    long_url: str
    clicks: int
    created_at: datetime
    analytics: List[AnalyticsRecord] = Field(default_factory=list)


class URLList(BaseModel):
    urls: List[URLRecord]
    count: int


class HealthResponse(BaseModel):
    status: str
    time: datetime
