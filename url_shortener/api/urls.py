from typing import Optional

from fastapi import APIRouter, Depends
from url_shortener.schemas.url import ShortenRequest, ShortenResponse, URLStats, URLList
from url_shortener.services.url_service import URLService
from url_shortener.dependencies import get_url_service

router = APIRouter(prefix="/api", tags=["urls"])


@router.post("/shorten", response_model=ShortenResponse)
async def shorten_url(
    payload: ShortenRequest,
    url_service: URLService = Depends(get_url_service)
):
    """Create a short URL, or return the existing one for the same long URL"""
    record = await url_service.shorten(payload.url)
    return ShortenResponse(
        short_url=url_service.short_url(record.short_code),
        short_code=record.short_code,
        long_url=record.long_url,
        created_at=record.created_at,
    )


@router.get("/stats/{short_code}", response_model=URLStats)
async def get_url_stats(
    short_code: str,
    url_service: URLService = Depends(get_url_service)
):
    """Click count and up to 1000 most recent clicks, newest first"""
    return await url_service.stats(short_code)


@router.get("/list", response_model=URLList)
async def list_urls(
    limit: Optional[str] = None,
    url_service: URLService = Depends(get_url_service)
):
    """Most recently created URLs. Bad or missing limit falls back to the default."""
    try:
        parsed = int(limit) if limit is not None else None
    except ValueError:
        parsed = None

    urls = await url_service.list_urls(parsed)
    return URLList(urls=urls, count=len(urls))
