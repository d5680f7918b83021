"""
Attempt verdicts derived from a structured test execution result.
"""

from .schemas import TestExecutionResult, Verdict


class VerdictJudge:
    """Maps an executor result onto PASS / FAIL_EMPTY / FAIL_ERROR."""

    def evaluate(self, result: TestExecutionResult) -> Verdict:
        """
        - PASS if the test passed and the result was not empty.
        - FAIL_EMPTY if the result was empty and it validated.
        - FAIL_ERROR for everything else.
        """
        if result.passed and not result.returned_empty:
            return Verdict.PASS

        if result.returned_empty and not result.validation_error:
            return Verdict.FAIL_EMPTY

        return Verdict.FAIL_ERROR


def judge(result: TestExecutionResult) -> Verdict:
    return VerdictJudge().evaluate(result)
