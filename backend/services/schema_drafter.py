import json
import logging
from pathlib import Path
from typing import Optional

from openai import AsyncOpenAI
from pydantic import ValidationError

from scraping.errors import ConfigurationError, GenerationFault, SchemaSyntaxError
from scraping.schemas import ServiceDraft
from services.llm_client import chat_completion, strip_code_fences
from services.schema_language import compile_schema, parse_literal
from utils.prompt_utils import build_schema_draft_prompt

logger = logging.getLogger(__name__)


def parse_draft(content: str) -> ServiceDraft:
    """Turn the model's JSON reply into a ServiceDraft whose schemas compile."""
    try:
        data = json.loads(strip_code_fences(content))
    except ValueError as exc:
        raise GenerationFault(f"Draft reply is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise GenerationFault("Draft reply must be a JSON object")

    # models sometimes return the example as an object instead of a string
    if "example_args" in data and not isinstance(data["example_args"], str):
        data["example_args"] = json.dumps(data["example_args"])

    try:
        draft = ServiceDraft.model_validate(data)
    except ValidationError as exc:
        raise GenerationFault(f"Draft reply is missing fields: {exc}") from exc

    try:
        input_schema = compile_schema(draft.input_schema)
        compile_schema(draft.output_schema)
        input_schema.validate_python(parse_literal(draft.example_args))
    except SchemaSyntaxError as exc:
        raise GenerationFault(f"Drafted schema is invalid: {exc}") from exc
    except (ValidationError, ValueError) as exc:
        raise GenerationFault(f"Drafted example arguments are invalid: {exc}") from exc
    return draft


async def draft_service(
    url: str,
    prompt: str,
    client: Optional[AsyncOpenAI] = None,
    prompt_dir: Optional[Path] = None,
) -> ServiceDraft:
    message = build_schema_draft_prompt(url, prompt, prompt_dir)
    try:
        content = await chat_completion(
            [{"role": "user", "content": message}],
            model_env="AI_DRAFT_MODEL",
            client=client,
        )
    except ConfigurationError:
        raise
    except Exception as exc:
        raise GenerationFault(f"Schema draft request failed: {exc}") from exc

    draft = parse_draft(content)
    logger.info("Drafted service '%s' for %s", draft.name, url)
    return draft
