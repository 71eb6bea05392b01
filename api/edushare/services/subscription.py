"""
Push-style content feed.

A ContentSubscription is an async iterable of full content snapshots. Every
``async for`` over it starts a fresh feed: the current snapshot first, then a
new one after each write to the content collection made through the same
DocumentStore, and after each poll interval whenever the result changed
(writes made by other processes). Snapshots use the same visibility-shaped
query as ContentService.list_content.
"""

import asyncio
import inspect
import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from ..config.settings import SUBSCRIPTION_POLL_INTERVAL
from ..core.errors import StoreError
from ..models.content import ContentRecord, parse_content
from .content_service import CONTENT, ContentService

logger = logging.getLogger(__name__)


class ContentSubscription:
    def __init__(
        self,
        service: ContentService,
        is_privileged: bool = False,
        poll_interval: float = SUBSCRIPTION_POLL_INTERVAL,
    ):
        self.service = service
        self.is_privileged = is_privileged
        self.poll_interval = poll_interval
        self.closed = False
        self._feeds = []

    def __aiter__(self):
        return self._feed()

    async def __aenter__(self) -> "ContentSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def snapshot(self) -> List[ContentRecord]:
        """Current result set, or an empty list when it cannot be loaded"""
        try:
            rows = await self.service.content_query(self.is_privileged).get()
            return [parse_content(row) for row in rows]
        except (StoreError, ValidationError) as e:
            logger.error(f"Error in content subscription: {e}")
            return []

    async def _feed(self):
        if self.closed:
            return

        loop = asyncio.get_running_loop()
        changed = asyncio.Event()

        def on_change(_collection: str) -> None:
            loop.call_soon_threadsafe(changed.set)

        unwatch = self.service.store.watch(CONTENT, on_change)
        feed = (loop, changed, unwatch)
        self._feeds.append(feed)

        last: Optional[List[ContentRecord]] = None
        notified = True
        try:
            while not self.closed:
                changed.clear()
                snapshot = await self.snapshot()
                if notified or snapshot != last:
                    last = snapshot
                    yield snapshot

                if self.closed:
                    break
                try:
                    await asyncio.wait_for(changed.wait(), timeout=self.poll_interval)
                    notified = True
                except asyncio.TimeoutError:
                    notified = False
        finally:
            unwatch()
            if feed in self._feeds:
                self._feeds.remove(feed)

    def close(self) -> None:
        """Stop every running feed and release the store listeners"""
        self.closed = True
        for loop, changed, unwatch in list(self._feeds):
            unwatch()
            loop.call_soon_threadsafe(changed.set)
        self._feeds.clear()


def subscribe_to_content(
    service: ContentService,
    callback: Callable[[List[ContentRecord]], object],
    is_privileged: bool = False,
    poll_interval: float = SUBSCRIPTION_POLL_INTERVAL,
) -> Callable[[], None]:
    """
    Deliver every content snapshot to ``callback`` from a background task.

    Must be called from a running event loop. ``callback`` may be a plain
    function or a coroutine function.

    Returns:
        An unsubscribe function; the feed runs until it is called
    """
    subscription = ContentSubscription(service, is_privileged, poll_interval)

    async def pump() -> None:
        async for snapshot in subscription:
            try:
                result = callback(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Content subscription callback failed: {e}")

    task = asyncio.get_running_loop().create_task(pump())

    def unsubscribe() -> None:
        subscription.close()
        task.cancel()

    return unsubscribe
