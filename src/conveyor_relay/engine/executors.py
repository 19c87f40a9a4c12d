"""
Event chain execution engine.

Provides workflow orchestration on top of EventBus, processing events
recursively until no handler returns a follow-up event.
"""

import asyncio
from typing import AsyncGenerator

from .events import BaseEvent, EventBus, Dependencies


class _ChainFailed:
    """Queue marker carrying an exception raised inside the chain."""

    def __init__(self, error: BaseException):
        self.error = error


class EventChain:
    """Executes event-driven workflows by chaining event handler results.

    Events are produced in a background task and yielded in order. An
    exception raised by any hook or handler ends the chain and is re-raised
    from ``execute`` to the consumer.
    """

    def __init__(
        self,
        event_bus: EventBus,
        deps: Dependencies,
    ) -> None:
        """
        Initialize event chain executor.

        Args:
            event_bus: The event bus to dispatch events through.
            deps: Dependencies container to pass to handlers.
        """
        self.event_bus = event_bus
        self.deps = deps

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Execute event chain starting from initial event.

        Yields:
            Events encountered during chain execution.

        Raises:
            Exception: Whatever a hook or handler raised.
        """
        events_queue: asyncio.Queue = asyncio.Queue()

        async def producer():
            try:
                async for event in self._process_event(initial_event):
                    await events_queue.put(event)
            except Exception as e:
                await events_queue.put(_ChainFailed(e))
                return
            await events_queue.put(None)  # Sentinel to indicate completion

        task = asyncio.create_task(producer())
        try:
            while True:
                event = await events_queue.get()
                if event is None:  # Chain complete
                    break
                if isinstance(event, _ChainFailed):
                    raise event.error
                yield event
        finally:
            if not task.done():
                task.cancel()

    async def _process_event(self, event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Process single event and recursively handle results.

        Args:
            event: The event to process.

        Yields:
            Events from the chain.
        """
        async for result in self.event_bus.dispatch(event, self.deps):
            if result is None:
                continue
            if isinstance(result, BaseEvent):
                yield result
                async for e in self._process_event(result):
                    yield e
            else:
                raise TypeError(f"Handler returned unsupported type: {type(result).__name__}")
