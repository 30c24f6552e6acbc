"""
Action batching between the entity syncs and the event sink.

Actions accumulate in a working list. Once it grows past the flush threshold
a deep snapshot is handed to the sink in a background task and the list is
cleared; `drain` waits for every such task, then flushes the residue.
"""

import asyncio
import copy
import logging

from hubspot_sync.core.config import get_settings
from hubspot_sync.core.exceptions import SinkError
from hubspot_sync.schemas.action import Action
from hubspot_sync.services.event_sink import EventSink

logger = logging.getLogger(__name__)


class ActionBatcher:
    """Bounded, explicitly flushed buffer of actions for one account."""

    def __init__(
        self,
        sink: EventSink,
        threshold: int | None = None,
        api_key: str = "",
    ) -> None:
        self._sink = sink
        self._threshold = threshold if threshold is not None else get_settings().action_flush_threshold
        self._api_key = api_key
        self._actions: list[Action] = []
        self._pending: set[asyncio.Task] = set()
        self._failed: list[tuple[int, BaseException]] = []
        self.flushed = 0

    def __len__(self) -> int:
        return len(self._actions)

    def push(self, action: Action) -> None:
        """Append one action; must be called from the event loop."""
        self._actions.append(action)
        if len(self._actions) > self._threshold:
            logger.info("Inserting actions to sink (api key %s, count %d)", self._api_key, len(self._actions))
            snapshot = copy.deepcopy(self._actions)
            self._actions.clear()
            task = asyncio.create_task(self._flush(snapshot))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _flush(self, actions: list[Action]) -> None:
        try:
            await asyncio.to_thread(self._sink.insert_actions, actions)
        except Exception as e:
            logger.error("Failed to insert %d actions (api key %s): %s", len(actions), self._api_key, e)
            self._failed.append((len(actions), e))
            return
        self.flushed += len(actions)

    async def drain(self) -> int:
        """
        Wait for all in-flight flushes, then flush what is left.
        Returns the number of actions accepted by the sink; raises SinkError if any flush failed.
        """
        while self._pending:
            await asyncio.gather(*list(self._pending))
        if self._actions:
            residue = copy.deepcopy(self._actions)
            self._actions.clear()
            await self._flush(residue)
        if self._failed:
            lost = sum(count for count, _ in self._failed)
            first = self._failed[0][1]
            self._failed.clear()
            raise SinkError(f"{lost} actions were not accepted by the event sink", count=lost) from first
        return self.flushed
