import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AnyHttpUrl, BaseModel, Field

from scraping.engine import SynthesisEngine
from scraping.errors import ConfigurationError
from scraping.schemas import Attempt, SchemaSpec
from services.browser_provider import BrowserProvider
from services.codegen_agent import CodegenAgent, OpenAICodegenAgent
from services.llm_client import get_openai_client
from services.test_executor import TestExecutor

from .capture_api import get_browser_provider, run_capture
from .run_test_api import get_executor

router = APIRouter()
logger = logging.getLogger(__name__)


class ScriptRequest(BaseModel):
    url: AnyHttpUrl
    user_prompt: str = Field(min_length=1)
    input_schema: str
    output_schema: str
    example_args: str
    dwell_seconds: Optional[float] = Field(default=None, gt=0, le=120)


class ScriptResponse(BaseModel):
    script: str
    test_passed: bool
    chat_id: str
    attempts: int
    history: List[Attempt] = []
    replay_id: Optional[str] = None


def get_codegen_agent() -> CodegenAgent:
    try:
        client = get_openai_client()
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return OpenAICodegenAgent(client=client)


@router.post("/scripts", response_model=ScriptResponse)
async def generate_script(
    payload: ScriptRequest,
    provider: BrowserProvider = Depends(get_browser_provider),
    agent: CodegenAgent = Depends(get_codegen_agent),
    executor: TestExecutor = Depends(get_executor),
):
    url = str(payload.url)
    transcript = await run_capture(url, payload.dwell_seconds, provider)

    schema_spec = SchemaSpec(
        input_schema=payload.input_schema,
        output_schema=payload.output_schema,
        example_args=payload.example_args,
    )
    result = await SynthesisEngine(agent, executor).run(transcript, payload.user_prompt, schema_spec)
    logger.info(
        "Script for %s: passed=%s after %s attempt(s)",
        url,
        result.test_passed,
        result.attempts_used,
    )

    return ScriptResponse(
        script=result.final_candidate_source,
        test_passed=result.test_passed,
        chat_id=result.generation_session_id,
        attempts=result.attempts_used,
        history=list(result.attempts),
        replay_id=transcript.replay_id,
    )
