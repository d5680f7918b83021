import asyncio
import json

from fakes import NESTED_CANDIDATE, SIBLING_CANDIDATE, StubExecutor
from scraping import config
from scraping.engine import LoopState, SynthesisEngine
from scraping.errors import GenerationFault
from scraping.schemas import TestExecutionResult, Verdict
from scraping.virtual_files import PLACEHOLDER_CANDIDATE
from services.codegen_agent import ScriptedAgent
from services.test_executor import SubprocessTestExecutor

PATH = config.CANDIDATE_PATH
GOAL = "Return the hosts of this event with their name and picture"

PASSING = TestExecutionResult(result_text="Result: [1]", passed=True)
EMPTY = TestExecutionResult(result_text="Result: []", passed=False, returned_empty=True)
BROKEN = TestExecutionResult(result_text="KeyError: 'hosts'", passed=False)


def _run(engine, transcript, spec):
    return asyncio.run(engine.run(transcript, GOAL, spec))


def test_passes_on_first_attempt(event_transcript, hosts_spec):
    agent = ScriptedAgent([{PATH: "def get_data(params):\n    return [1]\n"}])
    engine = SynthesisEngine(agent, StubExecutor([PASSING]))
    result = _run(engine, event_transcript, hosts_spec)

    assert result.test_passed is True
    assert result.attempts_used == 1
    assert result.final_candidate_source == "def get_data(params):\n    return [1]\n"
    assert result.generation_session_id
    assert [attempt.verdict for attempt in result.attempts] == [Verdict.PASS]
    assert engine.state is LoopState.DONE
    assert len(agent.sent_messages) == 1
    assert GOAL in agent.sent_messages[0]


def test_always_empty_candidate_uses_every_attempt(event_transcript, hosts_spec):
    agent = ScriptedAgent([{PATH: "def get_data(params):\n    return []\n"}])
    executor = StubExecutor([EMPTY])
    engine = SynthesisEngine(agent, executor)
    result = _run(engine, event_transcript, hosts_spec)

    assert result.test_passed is False
    assert result.attempts_used == config.MAX_RETRIES
    assert len(executor.seen) == config.MAX_RETRIES
    assert agent.calls == config.MAX_RETRIES
    assert [attempt.index for attempt in result.attempts] == list(range(1, config.MAX_RETRIES + 1))
    assert all(attempt.verdict is Verdict.FAIL_EMPTY for attempt in result.attempts)
    assert engine.state is LoopState.TERMINAL

    retries = agent.sent_messages[1:]
    assert len(retries) == config.MAX_RETRIES - 1
    assert all("An empty array [] is NOT acceptable" in message for message in retries)
    assert all("Result: []" in message for message in retries)


def test_agent_that_never_returns_the_candidate(event_transcript, hosts_spec):
    agent = ScriptedAgent(["I looked at the logs but I am not sure what to do."])
    executor = StubExecutor([EMPTY])
    result = _run(SynthesisEngine(agent, executor), event_transcript, hosts_spec)

    assert result.test_passed is False
    assert result.attempts_used == config.MAX_RETRIES
    assert executor.seen == [PLACEHOLDER_CANDIDATE] * config.MAX_RETRIES
    assert result.final_candidate_source == PLACEHOLDER_CANDIDATE


def test_retry_reply_without_candidate_keeps_previous(event_transcript, hosts_spec):
    first = "def get_data(params):\n    return params['x']\n"
    agent = ScriptedAgent([{PATH: first}, "Let me think about it."])
    executor = StubExecutor([BROKEN])
    result = _run(SynthesisEngine(agent, executor), event_transcript, hosts_spec)

    assert executor.seen == [first] * config.MAX_RETRIES
    assert result.final_candidate_source == first
    assert all("Please fix the error" in message for message in agent.sent_messages[1:])
    assert all("KeyError: 'hosts'" in message for message in agent.sent_messages[1:])


def test_agent_failures_are_absorbed(event_transcript, hosts_spec):
    good = "def get_data(params):\n    return [1]\n"
    agent = ScriptedAgent([GenerationFault("upstream 500"), RuntimeError("socket closed"), {PATH: good}])
    executor = StubExecutor([EMPTY, EMPTY, PASSING])
    result = _run(SynthesisEngine(agent, executor), event_transcript, hosts_spec)

    assert result.test_passed is True
    assert result.attempts_used == 3
    assert executor.seen == [PLACEHOLDER_CANDIDATE, PLACEHOLDER_CANDIDATE, good]


def test_executor_exceptions_become_fail_error(event_transcript, hosts_spec):
    agent = ScriptedAgent([{PATH: "def get_data(params):\n    return [1]\n"}])
    executor = StubExecutor([RuntimeError("sandbox crashed"), PASSING])
    result = _run(SynthesisEngine(agent, executor), event_transcript, hosts_spec)

    assert [attempt.verdict for attempt in result.attempts] == [Verdict.FAIL_ERROR, Verdict.PASS]
    assert "sandbox crashed" in result.attempts[0].diagnostic_output


def test_custom_retry_budget(event_transcript, hosts_spec):
    agent = ScriptedAgent([{PATH: "def get_data(params):\n    return []\n"}])
    engine = SynthesisEngine(agent, StubExecutor([EMPTY]), policy=config.LoopPolicy(max_retries=2))
    result = _run(engine, event_transcript, hosts_spec)
    assert result.attempts_used == 2


def test_custom_candidate_path(event_transcript, hosts_spec):
    path = "scripts/extract.py"
    agent = ScriptedAgent([{path: "def get_data(params):\n    return [1]\n"}])
    engine = SynthesisEngine(agent, StubExecutor([PASSING]), policy=config.LoopPolicy(candidate_path=path))
    result = _run(engine, event_transcript, hosts_spec)

    session = agent.session(result.generation_session_id)
    assert result.test_passed is True
    assert path not in session.locked
    assert PATH not in session.files


def test_session_starts_with_virtual_files(event_transcript, hosts_spec):
    agent = ScriptedAgent([{PATH: "def get_data(params):\n    return [1]\n"}])
    result = _run(SynthesisEngine(agent, StubExecutor([PASSING])), event_transcript, hosts_spec)
    session = agent.session(result.generation_session_id)

    assert json.loads(session.files["logs/log-0.json"])["resource_type"] == "fetch"
    assert json.loads(session.files["logs/log-1.json"])["url"] == "https://lu.ma/7xmwzqze"
    assert "get_data(" in session.files[config.HARNESS_PATH]
    assert hosts_spec.output_schema in session.files[config.SCHEMA_PATH]
    assert PATH not in session.locked
    assert {"logs/log-0.json", "logs/log-1.json", config.HARNESS_PATH, config.SCHEMA_PATH} <= session.locked


def test_hosts_sibling_scenario_with_real_executor(event_transcript, hosts_spec):
    agent = ScriptedAgent([{PATH: NESTED_CANDIDATE}, {PATH: SIBLING_CANDIDATE}])
    engine = SynthesisEngine(agent, SubprocessTestExecutor(timeout=30))
    result = _run(engine, event_transcript, hosts_spec)

    assert [attempt.verdict for attempt in result.attempts] == [Verdict.FAIL_EMPTY, Verdict.PASS]
    assert result.test_passed is True
    assert result.final_candidate_source == SIBLING_CANDIDATE

    corrective = agent.sent_messages[1:]
    assert len(corrective) == 1
    assert "An empty array [] is NOT acceptable" in corrective[0]
    assert "hosts found: 0" in corrective[0]
