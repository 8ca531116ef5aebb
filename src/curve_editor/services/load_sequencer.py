"""Generation tokens for asynchronous loads.

Each target (the base image, a layer id, the history restore) has its own
monotonically increasing token. Starting a new load for a target cancels
the in-flight one; a completion whose token is no longer current raises
SupersededError instead of returning, so a slow earlier request can never
overwrite a newer result.

Usage:
    sequencer = LoadSequencer()
    try:
        decoded = await sequencer.run('base', decode_async(data))
    except SupersededError:
        return
"""
import asyncio
import logging

from curve_editor.errors import SupersededError

logger = logging.getLogger(__name__)

BASE_IMAGE = 'base'
HISTORY = 'history'


class LoadSequencer:
    """Last-started-wins ordering for awaited loads."""

    def __init__(self):
        self._tokens = {}
        self._tasks = {}

    def begin(self, key) -> int:
        """Issue a new token for key, cancelling whatever load held the old one."""
        token = self._tokens.get(key, 0) + 1
        self._tokens[key] = token
        previous = self._tasks.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug(f"Cancelled superseded load for {key!r}")
        return token

    def is_current(self, key, token) -> bool:
        return self._tokens.get(key) == token

    def is_pending(self, key) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def invalidate(self, key):
        """Drop any in-flight load for key (e.g. the layer was deleted)."""
        self.begin(key)

    def cancel_all(self):
        for key in list(self._tasks):
            self.invalidate(key)

    async def run(self, key, awaitable):
        """Await a load under a fresh token.

        Raises:
            SupersededError: A newer load for the same key started meanwhile
        """
        token = self.begin(key)
        task = asyncio.ensure_future(awaitable)
        self._tasks[key] = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self.is_current(key, token):
                # We were cancelled ourselves, not superseded
                raise
            raise SupersededError(key)
        finally:
            if self._tasks.get(key) is task:
                del self._tasks[key]

        if not self.is_current(key, token):
            logger.debug(f"Discarding stale result for {key!r} (token {token})")
            raise SupersededError(key)
        return result
