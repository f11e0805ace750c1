"""Epic chat agent: single-flight streaming sessions per workspace + epic.

Flow of one turn::

    start(request) -> registry.begin_session(key)   # supersedes the old one
                   -> gather context, build prompt
                   -> client.open_stream(...)        # fragments -> text_delta
                   -> await final()                  # -> text_complete
                   failure                           # -> classified error
                   finally registry.end(key)

A cancelled session goes silent: nothing is emitted after its token fires.
"""

import asyncio
import logging
from typing import Optional, Protocol

from epicchat.context import ContextProvider, FlowContextReader, gather_context
from epicchat.errors import StreamAborted, classify_error
from epicchat.learnings import CrossProjectContextCache
from epicchat.llm import CompletionClient
from epicchat.models import ChatRequest, SessionEvent, TextComplete, TextDelta, stream_key
from epicchat.registry import CancellationToken, SessionRegistry, default_registry
from epicchat.system_prompt import build_system_prompt
from epicchat.utils.logging import SessionLogger

logger = logging.getLogger(__name__)


class DisplaySurface(Protocol):
    """Sink for session events."""

    @property
    def closed(self) -> bool: ...

    def deliver(self, epic_id: str, event: SessionEvent) -> None: ...


class EpicChatAgent:
    """Runs streaming chat sessions, at most one per conversation key."""

    def __init__(
        self,
        client: CompletionClient,
        surface: DisplaySurface,
        provider: Optional[ContextProvider] = None,
        registry: Optional[SessionRegistry] = None,
        cross_project_cache: Optional[CrossProjectContextCache] = None,
        run_log: Optional[SessionLogger] = None,
        stream_timeout: Optional[float] = None,
    ):
        """Initialize the agent.

        Args:
            client: Completion client used to open streams
            surface: Display surface receiving events
            provider: Context provider (defaults to the .flow reader)
            registry: Session registry (defaults to the process-wide one)
            cross_project_cache: Cache for cross-project knowledge
            run_log: Optional lifecycle log
            stream_timeout: Seconds after which a session is aborted
        """
        self.client = client
        self.surface = surface
        self.provider = provider or FlowContextReader()
        self.registry = registry if registry is not None else default_registry
        self.cross_project_cache = cross_project_cache or CrossProjectContextCache()
        self.run_log = run_log
        self.stream_timeout = stream_timeout

    def start(self, request: ChatRequest) -> "asyncio.Task[Optional[str]]":
        """Start a session, superseding any active one under the same key.

        Must be called from a running event loop. The session is registered
        before this returns, so an immediate abort() sees it.

        Args:
            request: Chat request

        Returns:
            Task resolving to the final text, or None if the session errored
            or was cancelled
        """
        token = self.registry.begin_session(request.key)
        self._log(request, "started")
        return asyncio.ensure_future(self._run(request, token))

    async def chat(self, request: ChatRequest) -> Optional[str]:
        """Start a session and wait for it to settle."""
        return await self.start(request)

    def abort(self, workspace_root: str, epic_id: str) -> bool:
        """Cancel the active session for a workspace + epic.

        Returns:
            True if a session was active
        """
        return self.registry.cancel(stream_key(workspace_root, epic_id))

    async def _run(self, request: ChatRequest, token: CancellationToken) -> Optional[str]:
        key = request.key
        timeout_handle = None
        if self.stream_timeout is not None:
            timeout_handle = asyncio.get_running_loop().call_later(
                self.stream_timeout, token.cancel
            )

        try:
            return await self._stream(request, token)
        except StreamAborted:
            return None
        except Exception as e:
            if token.cancelled:
                return None
            event = classify_error(e)
            logger.debug("Session %s failed: %s", key, e)
            self._emit(request.epic_id, token, event)
            self._log(request, "errored", kind=event.kind.value)
            return None
        finally:
            if timeout_handle is not None:
                timeout_handle.cancel()
            if token.cancelled:
                self._log(request, "aborted")
            self.registry.end(key, token)

    async def _stream(self, request: ChatRequest, token: CancellationToken) -> Optional[str]:
        bundle = await asyncio.to_thread(
            gather_context,
            self.provider,
            request.workspace_root,
            request.epic_id,
            request.registered_projects,
            self.cross_project_cache,
        )
        system_prompt = build_system_prompt(request.command_type, bundle)

        if token.cancelled:
            return None

        stream = self.client.open_stream(system_prompt, request.to_messages())
        accumulated: list[str] = []

        def on_fragment(text: str) -> None:
            accumulated.append(text)
            self._emit(request.epic_id, token, TextDelta(text=text))

        stream.on_fragment(on_fragment)
        token.add_listener(stream.request_abort)
        try:
            final_text = await stream.final()
        finally:
            token.remove_listener(stream.request_abort)

        if token.cancelled:
            return None

        self._emit(request.epic_id, token, TextComplete())
        self._log(request, "completed", chars=len("".join(accumulated)))
        return final_text

    def _emit(self, epic_id: str, token: CancellationToken, event: SessionEvent) -> None:
        if token.cancelled or self.surface.closed:
            return
        self.surface.deliver(epic_id, event)

    def _log(self, request: ChatRequest, status: str, **details) -> None:
        if self.run_log is None:
            return
        try:
            self.run_log.log_session(
                request.epic_id,
                status,
                command=request.command_type.value,
                **details,
            )
        except OSError as e:
            logger.warning("Could not write session log: %s", e)
