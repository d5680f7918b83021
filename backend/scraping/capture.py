"""
Capture session controller.

Opens one remote browser session, records the filtered responses of a single
page visit for a fixed dwell window and returns them as a frozen Transcript.
Only session-creation and attach failures escape; everything that goes wrong
per response is downgraded to a metadata-only event.
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, List, Optional, Set, Tuple

from services.browser_provider import BrowserProvider, provider_from_env
from utils.file_utils import dump_transcript

from . import config
from .errors import BodyReadError, BrowserConnectionError, ConfigurationError, SessionError
from .html_enhancer import enhance_html_readability
from .schemas import Body, NetworkEvent, Transcript
from .traffic_filter import DenyList, body_kind, should_capture

logger = logging.getLogger(__name__)


def _now_millis() -> int:
    return int(time.time() * 1000)


async def read_body(response: Any, kind: str) -> Body:
    try:
        if kind == "json":
            body = await response.json()
        else:
            body = await response.text()
    except Exception as exc:
        raise BodyReadError(f"Could not read body of {response.url}: {exc}") from exc
    if body is None or isinstance(body, (str, dict, list)):
        return body
    # JSON scalars
    return json.dumps(body)


class ResponseRecorder:
    """
    Response listener for one page.

    Each accepted response reserves a slot synchronously, so the transcript
    keeps observation order even though bodies are read concurrently.
    """

    def __init__(self, deny_list: Optional[DenyList] = None):
        self.deny_list = deny_list
        self.rejected = 0
        self._slots: List[NetworkEvent] = []
        self._tasks: Set[asyncio.Task] = set()

    def on_response(self, response: Any) -> None:
        request = response.request
        if not should_capture(request.method, request.resource_type, request.url, self.deny_list):
            self.rejected += 1
            return
        headers = dict(response.headers or {})
        # metadata first; a read that fails or is cancelled leaves this event in place
        event = NetworkEvent(
            url=request.url,
            method=request.method,
            resource_type=request.resource_type,
            status=response.status,
            headers=headers,
            body=None,
            timestamp=_now_millis(),
        )
        slot = len(self._slots)
        self._slots.append(event)
        self._spawn(self._record(slot, response, event))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _record(self, slot: int, response: Any, event: NetworkEvent) -> None:
        kind = body_kind(event.headers.get("content-type"))
        if kind is None:
            return
        try:
            body = await read_body(response, kind)
        except BodyReadError as exc:
            logger.debug("%s", exc)
            return
        if isinstance(body, str):
            body = await asyncio.to_thread(enhance_html_readability, body)
        self._slots[slot] = event.model_copy(update={"body": body})

    async def drain(self, timeout: float = config.BODY_DRAIN_SECONDS) -> None:
        """Wait for in-flight body reads; cancel whatever is still running after ``timeout``."""
        pending = set(self._tasks)
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.info("Cancelled %s body read(s) still pending after %.1fs", len(still_running), timeout)
            await asyncio.gather(*still_running, return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def events(self) -> Tuple[NetworkEvent, ...]:
        return tuple(self._slots)


async def capture(
    url: str,
    dwell_seconds: Optional[float] = None,
    provider: Optional[BrowserProvider] = None,
    deny_list: Optional[DenyList] = None,
    dump_dir: Optional[Path] = None,
) -> Transcript:
    """
    Visit ``url`` once and return the recorded responses.

    Raises SessionError when no remote session can be created and
    BrowserConnectionError when the session cannot be attached to.
    """
    policy = config.capture_policy_from_env()
    dwell = policy.dwell_seconds if dwell_seconds is None else dwell_seconds
    dump_dir = dump_dir if dump_dir is not None else policy.dump_dir
    provider = provider or provider_from_env()

    try:
        session = await provider.create_session()
    except ConfigurationError:
        raise
    except Exception as exc:
        raise SessionError(f"Failed to create session: {exc}") from exc

    replay_url = provider.replay_url(session)
    if replay_url:
        logger.info("Session replay: %s", replay_url)

    try:
        connection = await provider.connect(session)
    except Exception as exc:
        raise BrowserConnectionError(f"Failed to connect to browser: {exc}") from exc

    recorder = ResponseRecorder(deny_list)
    page = None
    try:
        try:
            page = await connection.page()
        except Exception as exc:
            raise BrowserConnectionError(f"Failed to open a page: {exc}") from exc
        page.on("response", recorder.on_response)

        logger.info("Capturing %s for %.1fs", url, dwell)
        try:
            await page.goto(url)
        except Exception as exc:
            logger.warning("Navigation to %s did not complete: %s", url, exc)
        await asyncio.sleep(dwell)
        await recorder.drain()
    finally:
        if page is not None:
            try:
                await page.close()
            except Exception as exc:
                logger.warning("Failed to close page: %s", exc)
        try:
            await connection.close()
        except Exception as exc:
            logger.warning("Failed to close browser: %s", exc)

    transcript = Transcript(url=url, events=recorder.events(), replay_id=session.session_id)
    logger.info("Captured %s event(s), rejected %s response(s)", len(transcript), recorder.rejected)

    if dump_dir:
        dump_transcript(transcript, dump_dir)
    return transcript
