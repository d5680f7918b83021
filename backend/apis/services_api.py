from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AnyHttpUrl, BaseModel, Field

from scraping.errors import ConfigurationError, GenerationFault
from scraping.schemas import ServiceDraft
from services.schema_drafter import draft_service

router = APIRouter()

Drafter = Callable[[str, str], Awaitable[ServiceDraft]]


class DraftRequest(BaseModel):
    url: AnyHttpUrl
    prompt: str = Field(min_length=1)


def get_service_drafter() -> Drafter:
    return draft_service


@router.post("/services/draft", response_model=ServiceDraft)
async def draft_service_config(payload: DraftRequest, drafter: Drafter = Depends(get_service_drafter)):
    try:
        return await drafter(str(payload.url), payload.prompt)
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except GenerationFault as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
