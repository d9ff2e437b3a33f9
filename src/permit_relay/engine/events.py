"""
Typed relay events and the async event bus that delivers them.

The executor publishes an event after every ledger submission. Hooks run
first, then subscribers run in parallel. A failing observer is logged and
never turns a finished transfer into an error.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Result Events ====================

class TransferCompletedEvent(BaseModel, BaseEvent):
    """Result: permit consumed and every leg paid out."""
    owner: str
    recipient_count: int
    total_paid_out: int
    fee_amount: int
    tx_reference: str
    fingerprint: str = ""

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return (
            f"TransferCompletedEvent(owner={self.owner}, recipients={self.recipient_count}, "
            f"paid={self.total_paid_out}, fee={self.fee_amount}, tx={self.tx_reference})"
        )


class TransferFailedEvent(BaseModel, BaseEvent):
    """Result: the ledger refused or failed the submission; nothing moved."""
    owner: str
    error_code: str
    error_message: str
    tx_reference: str = ""
    fingerprint: str = ""

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return f"TransferFailedEvent(owner={self.owner}, error={self.error_code})"


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent], Awaitable[Any]]
EventHookFunc = Callable[[BaseEvent], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        """Initialize with empty subscribers and hooks."""
        self._subscribers: Dict[type, List[EventHandlerFunc]] = {}
        self._hooks: Dict[type, List[EventHookFunc]] = {}

    def subscribe(self, event_class: type, handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type, hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before subscribers when the event is published.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")

        self._hooks.setdefault(event_class, []).append(hook_func)

    async def publish(self, event: BaseEvent) -> List[Optional[Any]]:
        """
        Deliver ``event`` to its hooks, then to its subscribers.

        Returns:
            Subscriber results in registration order; a subscriber that raised
            contributes ``None``.
        """
        hooks = self._hooks.get(type(event), [])
        for outcome in await asyncio.gather(*(hook(event) for hook in hooks), return_exceptions=True):
            if isinstance(outcome, Exception):
                logger.error("Hook failed for %r: %s", event, outcome)

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return []

        results: List[Optional[Any]] = []
        for outcome in await asyncio.gather(*(handler(event) for handler in handlers), return_exceptions=True):
            if isinstance(outcome, Exception):
                logger.error("Subscriber failed for %r: %s", event, outcome)
                results.append(None)
            else:
                results.append(outcome)
        return results
