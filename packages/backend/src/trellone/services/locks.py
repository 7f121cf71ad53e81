"""Per-board mutation locks.

Learn: Two concurrent moves on the same board would otherwise race on
the ordering arrays (last write wins, one move is lost). BoardLocks hands
out one asyncio.Lock per board id, so mutations of a board are applied
one at a time within this process. Across processes the board service
additionally takes row locks (SELECT ... FOR UPDATE) on the columns it
rewrites.

Locks are held in a WeakValueDictionary: once no coroutine holds or
waits on a board's lock it is garbage-collected.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager


class BoardLocks:
    def __init__(self):
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, board_id) -> asyncio.Lock:
        key = str(board_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, board_id):
        lock = self.lock_for(board_id)
        async with lock:
            yield


# Process-wide registry shared by every BoardService
board_locks = BoardLocks()
