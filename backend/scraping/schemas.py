"""
Pydantic v2 data contracts for capture and synthesis.
These models describe the values handed between the capture controller,
the synthesis loop, the test executor and the code-generation agent.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

Body = Union[str, Dict[str, Any], List[Any], None]


class NetworkEvent(BaseModel):
    """One observed response, recorded after filtering and normalization."""

    model_config = ConfigDict(frozen=True)

    url: str
    method: str
    resource_type: str
    status: Optional[int] = None
    headers: Optional[Dict[str, str]] = None
    body: Body = None
    timestamp: int


class Transcript(BaseModel):
    """Ordered capture of one page visit, in observation order."""

    model_config = ConfigDict(frozen=True)

    url: str
    events: Tuple[NetworkEvent, ...] = ()
    replay_id: Optional[str] = None

    def __len__(self) -> int:
        return len(self.events)


class SchemaSpec(BaseModel):
    """Input/output schema text plus one literal example of valid input."""

    model_config = ConfigDict(frozen=True)

    input_schema: str
    output_schema: str
    example_args: str


class Verdict(str, Enum):
    PASS = "pass"
    FAIL_ERROR = "fail_error"
    FAIL_EMPTY = "fail_empty"


class Attempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    candidate_source: str
    verdict: Verdict
    diagnostic_output: str = ""


class LoopResult(BaseModel):
    """Final outcome of one synthesis loop invocation."""

    model_config = ConfigDict(frozen=True)

    final_candidate_source: str
    test_passed: bool
    generation_session_id: str
    attempts_used: int
    attempts: Tuple[Attempt, ...] = ()


class TestExecutionResult(BaseModel):
    """Structured verdict returned by a test executor."""

    __test__ = False

    result_text: str = ""
    passed: bool = False
    returned_empty: bool = False
    validation_error: Optional[str] = None


class AgentReply(BaseModel):
    """One round trip with the code-generation agent."""

    session_id: str
    files: Dict[str, str] = Field(default_factory=dict)
    text: str = ""


class ServiceDraft(BaseModel):
    """LLM-drafted configuration for a new extraction service."""

    name: str
    description: str
    input_schema: str
    output_schema: str
    example_args: str

    def schema_spec(self) -> SchemaSpec:
        return SchemaSpec(
            input_schema=self.input_schema,
            output_schema=self.output_schema,
            example_args=self.example_args,
        )
