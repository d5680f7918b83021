import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AnyHttpUrl, BaseModel, Field

from scraping.capture import capture
from scraping.errors import BrowserConnectionError, ConfigurationError, SessionError
from scraping.schemas import Transcript
from services.browser_provider import BrowserProvider, provider_from_env

router = APIRouter()
logger = logging.getLogger(__name__)


class CaptureRequest(BaseModel):
    url: AnyHttpUrl
    dwell_seconds: Optional[float] = Field(default=None, gt=0, le=120)


def get_browser_provider() -> BrowserProvider:
    try:
        return provider_from_env()
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


async def run_capture(url: str, dwell_seconds: Optional[float], provider: BrowserProvider) -> Transcript:
    """Capture a page, mapping capture failures onto HTTP errors."""
    try:
        return await capture(url, dwell_seconds=dwell_seconds, provider=provider)
    except SessionError as exc:
        logger.error("Capture of %s failed: %s", url, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except BrowserConnectionError as exc:
        logger.error("Capture of %s failed: %s", url, exc)
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.post("/capture", response_model=Transcript)
async def capture_page(payload: CaptureRequest, provider: BrowserProvider = Depends(get_browser_provider)):
    return await run_capture(str(payload.url), payload.dwell_seconds, provider)
