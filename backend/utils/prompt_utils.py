# utils/prompt_utils.py
from pathlib import Path
from typing import Optional

from scraping import config
from scraping.schemas import SchemaSpec, Transcript

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"


def get_prompt(prompt_name: str, prompt_dir: Optional[Path] = None) -> str:
    """
    Gets a prompt, prioritizing an override directory if it has one,
    otherwise falling back to the bundled prompts.
    """
    # 1. Try the override directory first
    if prompt_dir:
        override_path = Path(prompt_dir) / prompt_name
        if override_path.exists():
            return override_path.read_text(encoding="utf-8")

    # 2. Fallback to the bundled prompts directory
    global_prompt_path = PROMPTS_DIR / prompt_name
    if not global_prompt_path.exists():
        raise FileNotFoundError(f"Prompt '{prompt_name}' not found in override or bundled directories.")

    return global_prompt_path.read_text(encoding="utf-8")


def build_task_prompt(
    user_prompt: str,
    schema_spec: SchemaSpec,
    transcript: Transcript,
    candidate_path: str = config.CANDIDATE_PATH,
    prompt_dir: Optional[Path] = None,
) -> str:
    log_count = len(transcript)
    if log_count:
        log_range = f"{config.LOG_FILE_TEMPLATE.format(index=0)} .. {config.LOG_FILE_TEMPLATE.format(index=log_count - 1)}"
    else:
        log_range = "no responses were captured"

    template = get_prompt("extraction_task.txt", prompt_dir)
    return template.format(
        user_prompt=user_prompt.strip(),
        candidate_path=candidate_path,
        schema_path=config.SCHEMA_PATH,
        harness_path=config.HARNESS_PATH,
        input_schema=schema_spec.input_schema.strip(),
        output_schema=schema_spec.output_schema.strip(),
        example_args=schema_spec.example_args.strip(),
        log_count=log_count,
        log_range=log_range,
    )


def build_retry_prompt(
    test_result: str,
    returned_empty: bool,
    attempt: int,
    max_retries: int = config.MAX_RETRIES,
    candidate_path: str = config.CANDIDATE_PATH,
    prompt_dir: Optional[Path] = None,
) -> str:
    """Corrective message quoting the raw diagnostic output of the last attempt."""
    prompt_name = "retry_empty.txt" if returned_empty else "retry_failed.txt"
    template = get_prompt(prompt_name, prompt_dir)
    return template.format(
        test_result=test_result or "(no output)",
        attempt=attempt,
        max_retries=max_retries,
        candidate_path=candidate_path,
    )


def build_schema_draft_prompt(url: str, prompt: str, prompt_dir: Optional[Path] = None) -> str:
    template = get_prompt("schema_draft.txt", prompt_dir)
    return template.format(url=url, prompt=prompt.strip())
