import logging
import os
import re
from functools import lru_cache
from typing import Dict, List, Optional

from openai import AsyncOpenAI

from scraping import config
from scraping.errors import ConfigurationError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_openai_client() -> AsyncOpenAI:
    api_key = (os.getenv("OPENAI_API_KEY") or "").strip()
    if not api_key:
        raise ConfigurationError("Missing OPENAI_API_KEY")
    # no transport retries; the synthesis loop owns retrying
    return AsyncOpenAI(api_key=api_key, max_retries=0)


async def chat_completion(
    messages: List[Dict[str, str]],
    model_env: str = "AI_MODEL_NAME",
    client: Optional[AsyncOpenAI] = None,
) -> str:
    client = client or get_openai_client()
    model_name = config.model_name_from_env(model_env)
    result = await client.chat.completions.create(
        model=model_name,
        messages=list(messages),
        max_tokens=int(os.getenv("AI_MAX_TOKENS", str(config.DEFAULT_MAX_TOKENS))),
        temperature=float(os.getenv("AI_TEMPERATURE", str(config.DEFAULT_TEMPERATURE))),
    )
    content = (result.choices[0].message.content or "").strip()
    logger.debug("LLM reply from %s: %s chars", model_name, len(content))
    return content


def strip_code_fences(text: str) -> str:
    return re.sub(r"```(?:json|python)?", "", text or "").strip()
