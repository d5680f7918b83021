"""
Builds the file set handed to the code-generation agent at session start.

Layout::

    logs/log-<i>.json       one captured event each, locked
    tests/test_schema.py    harness calling get_data with the example args, locked
    lib/schema.txt          input/output schema text, locked
    scripts/get_data.py     the only editable file
"""

import json
from typing import Dict, List, Tuple

from services.schema_language import parse_literal

from . import config
from .schemas import NetworkEvent, SchemaSpec, Transcript

PLACEHOLDER_CANDIDATE = '''\
def get_data(params):
    # write logic here
    # return data
    return []
'''

CANDIDATE_STUB = '''\
import json
import re

import httpx


def get_data(params):
    try:
        # write logic here
        # return data
        return []
    except Exception as error:
        print("Error fetching data:", error)
        raise
'''

HARNESS_TEMPLATE = '''\
import json

from services.schema_language import compile_schema
from scripts.get_data import get_data

OUTPUT_SCHEMA = {output_schema!r}
EXAMPLE_ARGS = {example_args}


def test_schema_validation():
    result = get_data(EXAMPLE_ARGS)

    print("Result:", json.dumps(result, indent=2))

    assert result != [], "get_data returned an empty list"
    compile_schema(OUTPUT_SCHEMA).validate_python(result)
'''

SCHEMA_TEMPLATE = """\
# Schema language reference
#   string, number, integer, boolean, null, any, object
#   array<T> or T[]            list of T
#   {{key: T, other?: T}}      object; "?" marks an optional key
#   A | B                      union
#   string(min=1, max=80, pattern="^[a-z]+$"), integer(min=0), array<T>(min=1)
# The test harness validates the value returned by get_data against OUTPUT.

INPUT:
{input_schema}

OUTPUT:
{output_schema}
"""


def log_file_name(index: int) -> str:
    return config.LOG_FILE_TEMPLATE.format(index=index)


def render_event(event: NetworkEvent) -> str:
    return json.dumps(event.model_dump(mode="json"), indent=2)


def build_log_files(transcript: Transcript) -> List[Tuple[str, str]]:
    return [(log_file_name(i), render_event(event)) for i, event in enumerate(transcript.events)]


def render_example_args(example_args: str) -> str:
    """Python source for the example arguments, or ``None`` with the raw text in a comment."""
    try:
        return repr(parse_literal(example_args))
    except ValueError:
        raw = " ".join(example_args.split())
        return f"None  # unparsed example arguments: {raw}"


def build_harness(schema_spec: SchemaSpec) -> str:
    return HARNESS_TEMPLATE.format(
        example_args=render_example_args(schema_spec.example_args),
        output_schema=schema_spec.output_schema.strip(),
    )


def build_schema_file(schema_spec: SchemaSpec) -> str:
    return SCHEMA_TEMPLATE.format(
        input_schema=schema_spec.input_schema.strip(),
        output_schema=schema_spec.output_schema.strip(),
    )


def build_virtual_files(
    transcript: Transcript,
    schema_spec: SchemaSpec,
    candidate_path: str = config.CANDIDATE_PATH,
) -> Dict[str, str]:
    """Return the initial file set keyed by path, in a stable order."""
    files: Dict[str, str] = dict(build_log_files(transcript))
    files[config.HARNESS_PATH] = build_harness(schema_spec)
    files[config.SCHEMA_PATH] = build_schema_file(schema_spec)
    files[candidate_path] = CANDIDATE_STUB
    return files


def locked_paths(files: Dict[str, str], candidate_path: str = config.CANDIDATE_PATH) -> List[str]:
    return [path for path in files if path != candidate_path]
