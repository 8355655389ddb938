"""
Charla LLM Orchestrator - Two-call LLM pattern management

Handles the orchestration of one conversational turn:
1. Resolve the session, decide state + domain, fetch history
2. Initial call with tools -> get tool calls
3. Execute tools (session mutations land on the TurnContext)
4. Final call -> streamed or blocking response

Also manages:
- Timeouts and retry with backoff on transient provider errors
- Persistence of both sides of the exchange
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Tuple

from openai import APIConnectionError, InternalServerError, OpenAIError, RateLimitError

from errors import CharlaError, LLMError
from logging_config import log_llm, log_message_in, log_message_out, log_turn
from services.store import Identity
from tools.registry import ToolRegistry

from ..chat_prompts import build_uploaded_files_message
from .domain_router import Domain
from .prompt_composer import compose
from .session import TurnContext, UploadedFile
from .state_machine import ConversationState, next_state
from .tool_dispatch import ToolCallResult

logger = logging.getLogger(__name__)

_PERMANENT_ERROR_PATTERNS = [
    "model not found",
    "does not exist",
    "invalid model",
]

_TRANSIENT_ERROR_PATTERNS = [
    "connection refused",
    "connection reset",
    "temporarily unavailable",
    "overloaded",
]

_RETRYABLE_TYPES = (APIConnectionError, RateLimitError, InternalServerError)

# Sentinel returned by next() when the chunk generator is exhausted
_END = object()


def is_retryable_error(error: Exception) -> bool:
    """Check if error is transient and worth retrying (not permanent failures)."""
    error_str = str(error).lower()
    # Never retry permanent errors
    if any(p in error_str for p in _PERMANENT_ERROR_PATTERNS):
        return False
    if isinstance(error, _RETRYABLE_TYPES):
        return True
    return any(p in error_str for p in _TRANSIENT_ERROR_PATTERNS)


def sanitize_history(records) -> List[Dict[str, str]]:
    """Prior messages as plain role/content pairs; empty entries dropped."""
    return [
        {"role": r.role, "content": r.content}
        for r in records
        if r.role in ("user", "assistant") and r.content
    ]


@dataclass
class TurnResult:
    """Outcome of one turn.

    Exactly one of ``text`` (blocking) or ``chunks`` (streaming) is set.
    The transport applies ``turn.cookie_action`` before sending the body.
    """

    turn: TurnContext
    state: ConversationState
    domain: Domain
    text: Optional[str] = None
    chunks: Optional[AsyncIterator[str]] = None
    tool_results: List[ToolCallResult] = field(default_factory=list)

    @property
    def streamed(self) -> bool:
        return self.chunks is not None

    @property
    def cookie_action(self) -> Optional[str]:
        return self.turn.cookie_action

    @property
    def issued_token(self) -> Optional[str]:
        return self.turn.issued_token

    def tools_trace(self) -> List[Dict[str, Any]]:
        return [r.to_trace() for r in self.tool_results]


class LLMOrchestrator:
    """Orchestrates LLM calls with tool execution.

    Handles:
    - Session resolution and turn classification
    - Two-call pattern (tool call -> execute -> response)
    - Streaming with cancellation of the upstream stream
    - Timeout and retry management

    Usage:
        orchestrator = LLMOrchestrator(client, store, sessions, dispatcher,
                                       domain_router, context_builder, runtime_config)
        result = await orchestrator.handle_turn("hola", session_token=token)
    """

    def __init__(
        self,
        client,
        store,
        sessions,
        dispatcher,
        domain_router,
        context_builder,
        runtime_config,
    ):
        """Initialize orchestrator.

        Args:
            client: LLMClient shared by the process
            store: ChatStore for history and message persistence
            sessions: SessionManager resolving the caller's token
            dispatcher: ToolDispatcher executing tool calls
            domain_router: DomainRouter classifying each message
            context_builder: ContextBuilder producing the dynamic context layer
            runtime_config: RuntimeConfig instance for dynamic settings
        """
        self.client = client
        self.store = store
        self.sessions = sessions
        self.dispatcher = dispatcher
        self.domain_router = domain_router
        self.context_builder = context_builder
        self.runtime_config = runtime_config

    # =========================================================================
    # Completion calls
    # =========================================================================

    async def _with_retry(self, model: str, attempt_fn):
        """Run ``attempt_fn`` with exponential backoff on transient errors.

        Raises:
            LLMError: timeout, or provider failure after retries
        """
        retry_max = self.runtime_config.llm_retry_max
        retry_delay = self.runtime_config.llm_retry_delay

        for attempt in range(retry_max + 1):
            if attempt > 0:
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retry {attempt}/{retry_max} for {model} after {delay:.1f}s")
                await asyncio.sleep(delay)

            try:
                return await attempt_fn()
            except asyncio.TimeoutError:
                timeout = self.runtime_config.llm_timeout
                logger.warning(f"LLM call timed out (limit={timeout}s, model={model})")
                raise LLMError(
                    message=f"Model response timed out after {timeout}s",
                    error_type="timeout",
                    model=model,
                ) from None
            except CharlaError:
                raise
            except Exception as e:
                if is_retryable_error(e) and attempt < retry_max:
                    logger.warning(f"Retryable error on {model}: {type(e).__name__}: {e}")
                    continue
                if isinstance(e, OpenAIError):
                    raise LLMError(
                        message="Completion service request failed",
                        details=f"{type(e).__name__}: {e}",
                        model=model,
                    ) from e
                raise

    async def call_with_timeout(self, **kwargs) -> Dict[str, Any]:
        """Blocking completion call with timeout and retry.

        Args:
            **kwargs: Arguments for client.chat()

        Returns:
            Response dict
        """
        loop = asyncio.get_running_loop()
        model = kwargs.get("model", "unknown")
        timeout = self.runtime_config.llm_timeout

        async def attempt():
            start_time = time.time()
            log_llm(logger, "start", model=model)
            response = await asyncio.wait_for(
                loop.run_in_executor(None, lambda: self.client.chat(**kwargs)),
                timeout=timeout,
            )
            log_llm(logger, "end", model=model, duration=time.time() - start_time)
            return response

        return await self._with_retry(model, attempt)

    async def _open_stream(self, **kwargs) -> Tuple[Iterator[Dict], Any]:
        """Start a streaming call and pull its first chunk.

        The provider request is only made on the first pull, so retry covers
        connection failures but never a stream that already produced text.
        """
        loop = asyncio.get_running_loop()
        model = kwargs.get("model", "unknown")
        timeout = self.runtime_config.llm_timeout

        async def attempt():
            log_llm(logger, "start", model=model)
            generator = self.client.chat(stream=True, **kwargs)
            pull = loop.run_in_executor(None, next, generator, _END)
            try:
                first = await asyncio.wait_for(asyncio.shield(pull), timeout=timeout)
            except BaseException:
                self._release(pull, generator)
                raise
            return generator, first

        return await self._with_retry(model, attempt)

    async def stream_text(self, generator: Iterator[Dict], chunk: Any, model: str) -> AsyncIterator[str]:
        """Yield content increments of a stream opened by _open_stream(), in order.

        ``chunk`` is the first chunk already pulled while opening. Each later
        chunk is pulled from the executor only after the previous one was
        handed to the consumer. Closing this iterator early closes the
        upstream stream once any in-flight pull returns.
        """
        loop = asyncio.get_running_loop()
        timeout = self.runtime_config.llm_timeout
        start_time = time.time()

        pending = None
        try:
            while chunk is not _END and not chunk.get("done"):
                content = chunk.get("message", {}).get("content", "")
                if content:
                    yield content
                pending = loop.run_in_executor(None, next, generator, _END)
                try:
                    chunk = await asyncio.wait_for(asyncio.shield(pending), timeout=timeout)
                except asyncio.TimeoutError:
                    raise LLMError(
                        message=f"Model stream stalled for {timeout}s",
                        error_type="timeout",
                        model=model,
                    ) from None
                except OpenAIError as e:
                    raise LLMError(
                        message="Completion stream failed",
                        details=f"{type(e).__name__}: {e}",
                        model=model,
                    ) from e
            log_llm(logger, "end", model=model, duration=time.time() - start_time)
        finally:
            self._release(pending, generator)

    def _release(self, pull: Optional[asyncio.Future], generator) -> None:
        """Close the chunk generator, deferring until an in-flight pull returns."""
        if pull is not None and not pull.done():
            pull.add_done_callback(lambda f: self._close_after_pull(f, generator))
        else:
            generator.close()

    @staticmethod
    def _close_after_pull(future: asyncio.Future, generator) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.debug(f"Abandoned stream pull ended with {type(future.exception()).__name__}")
        generator.close()

    # =========================================================================
    # Turn protocol
    # =========================================================================

    def _options(self) -> Dict[str, Any]:
        return self.runtime_config.get_llm_params()

    async def _fetch_history(self, identity: Optional[Identity]) -> List[Dict[str, str]]:
        if identity is None:
            return []
        records = await self.store.alast_messages(identity.id, self.runtime_config.history_limit)
        return sanitize_history(records)

    async def _build_context(self, identity: Optional[Identity], query: str) -> str:
        if self.context_builder is None:
            return ""
        return await self.context_builder.build(identity, query)

    def _phase_one_messages(
        self,
        instructions: str,
        dynamic_context: str,
        turn: TurnContext,
        history: List[Dict[str, str]],
        query: str,
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [{"role": "system", "content": instructions}]
        if dynamic_context:
            messages.append({"role": "system", "content": dynamic_context})
        files_note = build_uploaded_files_message(turn.uploaded_files_payload())
        if files_note:
            messages.append({"role": "system", "content": files_note})
        messages.extend(history)
        messages.append({"role": "user", "content": query})
        return messages

    async def handle_turn(
        self,
        query: str,
        session_token: Optional[str] = None,
        uploaded_files: Optional[List[UploadedFile]] = None,
        stream: bool = True,
    ) -> TurnResult:
        """Run one conversational turn.

        Raises:
            ConfigurationError: completion credential missing (before any work)
            ToolArgumentsError: the model produced unusable tool arguments
            LLMError: a completion call failed after retries
        """
        self.client.ensure_configured()

        identity = await self.sessions.resolve(session_token)
        turn = TurnContext(
            identity=identity,
            session_token=session_token,
            uploaded_files=list(uploaded_files or []),
        )
        log_message_in(
            logger,
            query,
            identity=identity.id if identity else None,
            files=len(turn.uploaded_files),
        )

        state = next_state(identity, query)
        domain, history, dynamic_context = await asyncio.gather(
            self.domain_router.classify(query),
            self._fetch_history(identity),
            self._build_context(identity, query),
        )
        log_turn(logger, state.value, domain.value, history=len(history))

        await self.store.aappend_message("user", query, identity.id if identity else None)

        instructions = compose(state, domain, identity)

        # No session to close: nothing for the model to call
        tools = None if state == ConversationState.NO_SESSION else ToolRegistry.get_tools_schema()
        phase_one = await self.call_with_timeout(
            model=self.runtime_config.model_chat,
            messages=self._phase_one_messages(instructions, dynamic_context, turn, history, query),
            tools=tools,
            tool_choice="auto" if tools else None,
            options=self._options(),
        )

        tool_calls = self.dispatcher.parse_tool_calls(phase_one) if tools else None
        if not tool_calls:
            text = phase_one.get("message", {}).get("content") or ""
            return TurnResult(
                turn=turn,
                state=state,
                domain=domain,
                text=None if stream else await self._finish(turn, text, streamed=False),
                chunks=self._single_chunk(turn, text) if stream else None,
            )

        results = await self.dispatcher.execute_tools(tool_calls, turn)

        if turn.issued_identity is not None:
            instructions = compose(ConversationState.AUTHENTICATED, domain, turn.issued_identity)

        assistant_message = {
            "role": "assistant",
            "content": phase_one.get("message", {}).get("content") or "",
            "tool_calls": tool_calls,
        }
        phase_two_messages = [
            {"role": "system", "content": instructions},
            {"role": "user", "content": query},
            assistant_message,
            *(r.to_message() for r in results),
        ]

        if stream:
            # Open and retry failures must surface before the response starts
            model = self.runtime_config.model_chat
            generator, first = await self._open_stream(
                model=model,
                messages=phase_two_messages,
                options=self._options(),
            )
            chunks = self._stream_and_persist(turn, self.stream_text(generator, first, model))
            return TurnResult(turn=turn, state=state, domain=domain, chunks=chunks, tool_results=results)

        phase_two = await self.call_with_timeout(
            model=self.runtime_config.model_chat,
            messages=phase_two_messages,
            options=self._options(),
        )
        text = await self._finish(turn, phase_two.get("message", {}).get("content") or "", streamed=False)
        return TurnResult(turn=turn, state=state, domain=domain, text=text, tool_results=results)

    async def _finish(self, turn: TurnContext, text: str, streamed: bool) -> str:
        """Persist the assistant reply under the turn's message owner."""
        identity = turn.message_owner
        await self.store.aappend_message("assistant", text, identity.id if identity else None)
        log_message_out(logger, tools_used=turn.tools_used, chars=len(text), streamed=streamed)
        return text

    async def _single_chunk(self, turn: TurnContext, text: str) -> AsyncIterator[str]:
        if text:
            yield text
        await self._finish(turn, text, streamed=True)

    async def _stream_and_persist(self, turn: TurnContext, pieces: AsyncIterator[str]) -> AsyncIterator[str]:
        parts: List[str] = []
        try:
            async for piece in pieces:
                parts.append(piece)
                yield piece
        finally:
            await pieces.aclose()
        # Only reached on normal completion; a disconnect leaves nothing persisted
        await self._finish(turn, "".join(parts), streamed=True)
