"""
Orchestrates the synthesize-test-retry loop for one transcript.

INIT -> GENERATING -> TESTING -> DONE
                              -> RETRYING -> GENERATING ...
                              -> TERMINAL (retry budget spent)

The loop never raises once it has a transcript: agent and executor failures
are logged and folded into attempt verdicts.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional

from services.codegen_agent import CodegenAgent
from services.test_executor import TestExecutor
from utils.prompt_utils import build_retry_prompt, build_task_prompt

from .config import LoopPolicy
from .errors import GenerationFault, TestExecutionFault
from .schemas import Attempt, LoopResult, SchemaSpec, TestExecutionResult, Transcript, Verdict
from .verdict import VerdictJudge
from .virtual_files import PLACEHOLDER_CANDIDATE, build_virtual_files, locked_paths

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    INIT = "init"
    GENERATING = "generating"
    TESTING = "testing"
    RETRYING = "retrying"
    DONE = "done"
    TERMINAL = "terminal"


class SynthesisEngine:
    """Drives one generation session until a candidate passes or retries run out."""

    def __init__(
        self,
        agent: CodegenAgent,
        executor: TestExecutor,
        policy: Optional[LoopPolicy] = None,
        prompt_dir: Optional[Path] = None,
        judge: Optional[VerdictJudge] = None,
    ) -> None:
        self.agent = agent
        self.executor = executor
        self.policy = policy or LoopPolicy()
        self.prompt_dir = prompt_dir
        self.judge = judge or VerdictJudge()
        self.state = LoopState.INIT

    def _transition(self, state: LoopState, detail: str = "") -> None:
        self.state = state
        if detail:
            logger.info("Synthesis loop -> %s (%s)", state.value, detail)
        else:
            logger.info("Synthesis loop -> %s", state.value)

    async def run(self, transcript: Transcript, task_prompt: str, schema_spec: SchemaSpec) -> LoopResult:
        policy = self.policy
        self._transition(LoopState.INIT, f"{len(transcript)} events")

        files = build_virtual_files(transcript, schema_spec, policy.candidate_path)
        session_id = await self._start_session(files)
        message = build_task_prompt(task_prompt, schema_spec, transcript, policy.candidate_path, self.prompt_dir)

        candidate = PLACEHOLDER_CANDIDATE
        attempts: List[Attempt] = []
        for index in range(1, policy.max_retries + 1):
            self._transition(LoopState.GENERATING, f"attempt {index}/{policy.max_retries}")
            candidate = await self._generate(session_id, message, candidate)

            self._transition(LoopState.TESTING, f"attempt {index}/{policy.max_retries}")
            result = await self._test(schema_spec, candidate)
            verdict = self.judge.evaluate(result)
            attempts.append(
                Attempt(
                    index=index,
                    candidate_source=candidate,
                    verdict=verdict,
                    diagnostic_output=result.result_text,
                )
            )
            logger.info("Attempt %s/%s verdict: %s", index, policy.max_retries, verdict.value)

            if verdict is Verdict.PASS:
                self._transition(LoopState.DONE)
                return self._result(candidate, True, session_id, attempts)

            if index == policy.max_retries:
                break

            returned_empty = verdict is Verdict.FAIL_EMPTY
            reason = "returned empty data" if returned_empty else "failed"
            self._transition(LoopState.RETRYING, f"attempt {index} {reason}")
            message = build_retry_prompt(
                result.result_text,
                returned_empty,
                attempt=index,
                max_retries=policy.max_retries,
                candidate_path=policy.candidate_path,
                prompt_dir=self.prompt_dir,
            )

        self._transition(LoopState.TERMINAL, "all retries exhausted")
        return self._result(candidate, False, session_id, attempts)

    async def _start_session(self, files) -> str:
        try:
            return await self.agent.init_session(files, locked_paths(files, self.policy.candidate_path))
        except Exception as exc:
            logger.error("Generation session could not be started: %s", exc)
            return ""

    async def _generate(self, session_id: str, message: str, previous: str) -> str:
        """Return the candidate from the agent's reply, or ``previous`` when it has none."""
        try:
            reply = await self.agent.send_message(session_id, message)
        except GenerationFault as exc:
            logger.warning("Agent failed, keeping previous candidate: %s", exc)
            return previous
        except Exception as exc:
            logger.error("Unexpected agent error, keeping previous candidate: %s", exc, exc_info=True)
            return previous

        candidate = reply.files.get(self.policy.candidate_path)
        if not candidate or not candidate.strip():
            logger.warning("Agent reply did not include %s", self.policy.candidate_path)
            return previous
        return candidate

    async def _test(self, schema_spec: SchemaSpec, candidate: str) -> TestExecutionResult:
        try:
            return await self.executor.run(schema_spec, candidate)
        except Exception as exc:
            fault = TestExecutionFault(f"Test executor raised: {exc}")
            logger.error("%s", fault, exc_info=True)
            return TestExecutionResult(result_text=str(fault), passed=False)

    @staticmethod
    def _result(candidate: str, passed: bool, session_id: str, attempts: List[Attempt]) -> LoopResult:
        return LoopResult(
            final_candidate_source=candidate,
            test_passed=passed,
            generation_session_id=session_id,
            attempts_used=len(attempts),
            attempts=tuple(attempts),
        )
