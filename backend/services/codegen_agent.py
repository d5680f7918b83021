"""
Code-generation agents.

An agent owns a set of named text files per session and rewrites the editable
ones in response to instructions. Every session keeps an append-only message
log, so a retry is always a continuation of the same conversation.

``OpenAICodegenAgent`` talks to the chat completions API and exchanges files as
fenced blocks::

    ```python file=scripts/get_data.py
    def get_data(params):
        ...
    ```

``ScriptedAgent`` replays canned replies and is used by the tests.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Union

from openai import AsyncOpenAI

from scraping import config
from scraping.errors import GenerationFault
from scraping.schemas import AgentReply
from services.llm_client import chat_completion

logger = logging.getLogger(__name__)

_FILE_BLOCK_RE = re.compile(
    r"```(?P<lang>[\w+-]*)[ \t]*(?:file=(?P<path>[^\s`]+))?[^\n]*\n(?P<body>.*?)```",
    re.DOTALL,
)

SYSTEM_PROMPT = """\
You are a senior Python engineer working inside a small repository.
The repository files are listed below. Files marked (locked) are read-only.
When you change a file, reply with its COMPLETE new content in a fenced block
whose info string is `python file=<path>`. Never reply with partial files or diffs.
"""


@dataclass
class AgentSession:
    session_id: str
    files: Dict[str, str]
    locked: FrozenSet[str] = frozenset()
    messages: List[Dict[str, str]] = field(default_factory=list)

    def record(self, role: str, content: str) -> None:
        self.messages.append({"role": role, "content": content})


def extract_file_blocks(text: str, default_path: Optional[str] = None) -> Dict[str, str]:
    """
    Parse ``file=`` fenced blocks out of a reply.

    When no block names a file and ``default_path`` is given, a single
    unlabelled python block is taken as the new content of ``default_path``.
    """
    named: Dict[str, str] = {}
    unnamed: List[str] = []
    for match in _FILE_BLOCK_RE.finditer(text or ""):
        body = match.group("body")
        if match.group("path"):
            named[match.group("path").strip()] = body
        elif match.group("lang") in ("", "python", "py"):
            unnamed.append(body)
    if not named and default_path and len(unnamed) == 1:
        named[default_path] = unnamed[0]
    return named


def render_repository(files: Dict[str, str], locked: Iterable[str]) -> str:
    locked_set = set(locked)
    sections = []
    for path, content in files.items():
        marker = " (locked)" if path in locked_set else ""
        sections.append(f"=== {path}{marker} ===\n{content.rstrip()}\n")
    return "\n".join(sections)


class CodegenAgent:
    """Session registry shared by all agents; subclasses implement ``_respond``."""

    def __init__(self, editable_path: str = config.CANDIDATE_PATH):
        self.editable_path = editable_path
        self._sessions: Dict[str, AgentSession] = {}

    async def init_session(self, files: Dict[str, str], locked: Optional[Iterable[str]] = None) -> str:
        if locked is None:
            locked = [path for path in files if path != self.editable_path]
        session = AgentSession(
            session_id=uuid.uuid4().hex,
            files=dict(files),
            locked=frozenset(locked),
        )
        self._on_init(session)
        self._sessions[session.session_id] = session
        logger.info("Generation session %s started with %s files", session.session_id, len(files))
        return session.session_id

    def session(self, session_id: str) -> AgentSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise GenerationFault(f"Unknown generation session '{session_id}'") from None

    async def send_message(self, session_id: str, message: str) -> AgentReply:
        session = self.session(session_id)
        session.record("user", message)
        try:
            text = await self._respond(session)
        except GenerationFault:
            raise
        except Exception as exc:
            raise GenerationFault(f"Agent request failed: {exc}") from exc
        session.record("assistant", text)

        changed = self._apply(session, extract_file_blocks(text, self.editable_path))
        return AgentReply(session_id=session_id, files=changed, text=text)

    def _apply(self, session: AgentSession, blocks: Dict[str, str]) -> Dict[str, str]:
        changed: Dict[str, str] = {}
        for path, content in blocks.items():
            if path in session.locked:
                logger.warning("Ignoring edit to locked file %s", path)
                continue
            session.files[path] = content
            changed[path] = content
        return changed

    def _on_init(self, session: AgentSession) -> None:
        pass

    async def _respond(self, session: AgentSession) -> str:
        raise NotImplementedError


class OpenAICodegenAgent(CodegenAgent):
    def __init__(self, client: Optional[AsyncOpenAI] = None, editable_path: str = config.CANDIDATE_PATH):
        super().__init__(editable_path)
        self.client = client

    def _on_init(self, session: AgentSession) -> None:
        session.record("system", f"{SYSTEM_PROMPT}\n{render_repository(session.files, session.locked)}")

    async def _respond(self, session: AgentSession) -> str:
        text = await chat_completion(session.messages, client=self.client)
        if not text:
            raise GenerationFault("Agent returned an empty reply")
        return text


Scripted = Union[str, Dict[str, str], Exception]


class ScriptedAgent(CodegenAgent):
    """
    Replays canned replies in order: a dict is a file set, a string is raw
    reply text, an exception is raised. The last reply repeats once the
    script runs out.
    """

    def __init__(self, replies: Sequence[Scripted], editable_path: str = config.CANDIDATE_PATH):
        super().__init__(editable_path)
        self.replies = list(replies)
        self.calls = 0

    @property
    def sent_messages(self) -> List[str]:
        return [
            message["content"]
            for session in self._sessions.values()
            for message in session.messages
            if message["role"] == "user"
        ]

    async def _respond(self, session: AgentSession) -> str:
        if not self.replies:
            return ""
        reply = self.replies[min(self.calls, len(self.replies) - 1)]
        self.calls += 1
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return "\n\n".join(f"```python file={path}\n{content}```" for path, content in reply.items())
        return reply
