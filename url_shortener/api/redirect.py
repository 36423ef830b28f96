from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from url_shortener.services.url_service import URLService
from url_shortener.dependencies import get_url_service

router = APIRouter(tags=["redirect"])


def get_client_ip(request: Request) -> Optional[str]:
    """
    Client IP address for analytics.

    Behind a proxy the first X-Forwarded-For entry is the original client.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return None


@router.get("/{short_code}")
async def redirect_to_long_url(
    short_code: str,
    request: Request,
    url_service: URLService = Depends(get_url_service),
):
    """
    Redirect to the original URL.

    Flow:
    1. Get the record from cache (store on a miss)
    2. Queue a click event (non-blocking, may be dropped under load)
    3. Redirect immediately; the worker persists the click later
    """
    record = await url_service.resolve(
        short_code,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return RedirectResponse(url=record.long_url, status_code=status.HTTP_301_MOVED_PERMANENTLY)
