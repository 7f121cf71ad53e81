"""Connection registry — which users have live WebSockets, and where.

Learn: The gateway owns one ConnectionRegistry. Handlers register a
socket on accept and unregister it in their finally block, so the
registry never outlives a connection. Keys are user ids; a user may have
several sockets (tabs, devices), each tagged with the board it watches.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any


@dataclass(eq=False)
class Connection:
    user_id: str
    board_id: str
    socket: Any


@dataclass
class ConnectionRegistry:
    _by_user: dict[str, set[Connection]] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def add(self, user_id: str, board_id: str, socket: Any) -> Connection:
        conn = Connection(user_id=user_id, board_id=board_id, socket=socket)
        async with self._lock:
            self._by_user.setdefault(user_id, set()).add(conn)
        return conn

    async def remove(self, conn: Connection) -> None:
        async with self._lock:
            conns = self._by_user.get(conn.user_id)
            if not conns:
                return
            conns.discard(conn)
            if not conns:
                del self._by_user[conn.user_id]

    def online_users(self, board_id: str | None = None) -> set[str]:
        if board_id is None:
            return set(self._by_user)
        return {
            user_id
            for user_id, conns in self._by_user.items()
            if any(c.board_id == board_id for c in conns)
        }

    def __len__(self) -> int:
        return sum(len(conns) for conns in self._by_user.values())


# One registry per process, owned by the WebSocket gateway
registry = ConnectionRegistry()
