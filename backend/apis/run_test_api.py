import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from scraping.schemas import SchemaSpec
from services.test_executor import SubprocessTestExecutor, TestExecutor

router = APIRouter()
logger = logging.getLogger(__name__)


class RunTestRequest(BaseModel):
    input_schema: str
    output_schema: str
    test_args: str
    script: str = Field(min_length=1)


class RunTestResponse(BaseModel):
    test_result: str
    passed: bool
    returned_empty: bool
    validation_error: Optional[str] = None


def _shorten_output(text: str, limit: int = 400) -> str:
    if not text:
        return ""
    cleaned = text.strip()
    if len(cleaned) <= limit:
        return cleaned
    return f"{cleaned[:limit]}... (truncated)"


def get_executor() -> TestExecutor:
    return SubprocessTestExecutor()


@router.post("/run-test", response_model=RunTestResponse)
async def run_test(payload: RunTestRequest, executor: TestExecutor = Depends(get_executor)):
    schema_spec = SchemaSpec(
        input_schema=payload.input_schema,
        output_schema=payload.output_schema,
        example_args=payload.test_args,
    )
    result = await executor.run(schema_spec, payload.script)
    if not result.passed:
        logger.info("run-test failed: %s", _shorten_output(result.result_text))

    return RunTestResponse(
        test_result=result.result_text,
        passed=result.passed,
        returned_empty=result.returned_empty,
        validation_error=result.validation_error,
    )
