"""Interview chat: initialization state machine and session glue."""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

import structlog

from sajilo_client.errors import NotFoundError
from sajilo_client.retry import Sleep
from sajilo_client.types import CacheEntry, CacheEvent, Transition

if TYPE_CHECKING:
    from sajilo_client.hiring import HiringMutations, HiringQueries

logger = structlog.get_logger(__name__)

NOT_FOUND_MESSAGE = (
    "We couldn't find your application. Please check your link or apply again."
)
RETRY_MESSAGE = "We couldn't start your interview. Please try again."


class ChatInitState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    INITIALIZATION_FAILED = "initialization_failed"


def turn_count(history: Mapping[str, Any] | None) -> int:
    """Number of turns in a chat history payload."""
    if not history:
        return 0
    total = history.get("total_turns")
    if total is None:
        return len(history.get("turns") or ())
    return int(total)


class ChatInitializer:
    """Starts the interview conversation once, when the history is empty.

    Feed every successfully read history to ``observe()``. An empty history
    schedules one start attempt after ``settle_delay`` ms, giving upstream
    records time to become consistent. A history with turns makes the
    machine ``INITIALIZED`` for good.
    """

    def __init__(
        self,
        start_chat: Callable[[], Awaitable[Any]],
        *,
        settle_delay: int = 1000,
        sleep: Sleep = asyncio.sleep,
        on_change: Callable[[ChatInitState], None] | None = None,
    ) -> None:
        self._start_chat = start_chat
        self._settle_delay = settle_delay
        self._sleep = sleep
        self._on_change = on_change
        self._state = ChatInitState.UNINITIALIZED
        self._error: Exception | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ChatInitState:
        return self._state

    @property
    def error(self) -> Exception | None:
        return self._error

    @property
    def is_not_found(self) -> bool:
        return isinstance(self._error, NotFoundError)

    @property
    def message(self) -> str | None:
        """User-facing message for a failed initialization."""
        if self._state is not ChatInitState.INITIALIZATION_FAILED:
            return None
        return NOT_FOUND_MESSAGE if self.is_not_found else RETRY_MESSAGE

    @property
    def is_pending(self) -> bool:
        return self._task is not None

    def observe(self, history: Mapping[str, Any] | None) -> None:
        if turn_count(history) > 0:
            if self._state is ChatInitState.UNINITIALIZED and self._task is not None:
                self._task.cancel()
            self._set_state(ChatInitState.INITIALIZED)
            return

        if self._state is ChatInitState.UNINITIALIZED and self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._initialize())

    def reset(self) -> None:
        """Allow another attempt after a failure."""
        if self._state is ChatInitState.INITIALIZATION_FAILED:
            self._error = None
            self._set_state(ChatInitState.UNINITIALIZED)

    async def wait(self) -> ChatInitState:
        """Wait for a pending attempt to finish."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self._state

    def close(self) -> None:
        if self._task is not None:
            self._task.cancel()

    async def _initialize(self) -> None:
        try:
            await self._sleep(self._settle_delay / 1000)
            if self._state is not ChatInitState.UNINITIALIZED:
                return

            self._set_state(ChatInitState.INITIALIZING)
            try:
                await self._start_chat()
            except Exception as exc:
                if self._state is ChatInitState.INITIALIZED:
                    return
                self._error = exc
                logger.error(
                    "chat.init_failed",
                    not_found=isinstance(exc, NotFoundError),
                    error=repr(exc),
                )
                self._set_state(ChatInitState.INITIALIZATION_FAILED)
            else:
                self._set_state(ChatInitState.INITIALIZED)
        finally:
            self._task = None

    def _set_state(self, state: ChatInitState) -> None:
        if state is self._state:
            return
        logger.debug("chat.init_state", previous=self._state.value, state=state.value)
        self._state = state
        if self._on_change is not None:
            self._on_change(state)


class ChatSession:
    """One applicant's interview conversation.

    ``open()`` subscribes to the chat history, polls it every 5 seconds and
    starts the conversation when the history comes back empty. ``close()``
    releases the subscription, which stops polling.
    """

    def __init__(
        self,
        person_id: int,
        queries: HiringQueries,
        mutations: HiringMutations,
        *,
        settle_delay: int = 1000,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.person_id = person_id
        self._queries = queries
        self._mutations = mutations
        self._unsubscribe: Callable[[], None] | None = None
        self.initializer = ChatInitializer(
            lambda: mutations.start_chat(person_id),
            settle_delay=settle_delay,
            sleep=sleep,
        )

    @property
    def history(self) -> CacheEntry[Any] | None:
        return self._queries.cache.get(self._queries.chat_history.key(self.person_id))

    @property
    def state(self) -> ChatInitState:
        return self.initializer.state

    def open(self) -> CacheEntry[Any]:
        if self._unsubscribe is None:
            self._unsubscribe = self._queries.chat_history.subscribe(
                self._on_event, self.person_id
            )
            self._queries.chat_history.poll(self.person_id)
        return self._queries.chat_history.read(self.person_id)

    async def send_message(self, message: str) -> dict[str, Any]:
        if not message.strip():
            raise ValueError("message must not be empty")
        return await self._mutations.send_message(self.person_id, message)

    def retry(self) -> None:
        """Re-arm a failed initialization, resume polling and re-read the history."""
        self.initializer.reset()
        if self._unsubscribe is not None:
            self._queries.chat_history.poll(self.person_id)
        self._queries.cache.refetch(self._queries.chat_history.key(self.person_id))

    def close(self) -> None:
        self.initializer.close()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def __aenter__(self) -> ChatSession:
        self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def _on_event(self, event: CacheEvent[Any]) -> None:
        if event.transition is Transition.SUCCESS:
            self.initializer.observe(event.entry.value)


__all__ = ["ChatInitState", "ChatInitializer", "ChatSession", "turn_count"]
