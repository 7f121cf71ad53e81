"""Event store — append-only log of board mutations.

Learn: Every committed board mutation also INSERTs an event
{type: "card.moved", data: {card_id, from_column_id, to_column_id}}.
The rows back the board activity feed; the same payload is published to
the board's real-time channel.

append() only flushes. The caller's commit makes the event durable in the
same transaction as the mutation it describes.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.db.models import Event


def board_stream(board_id) -> str:
    return f"board:{board_id}"


class EventStore:
    """Append-only event store backed by the primary database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        stream_id: str,
        event_type: str,
        data: dict,
        actor_id: str | None = None,
    ) -> Event:
        """Append an event to a stream. Returns the created event."""
        event = Event(
            stream_id=stream_id,
            type=event_type,
            actor_id=actor_id,
            data=data,
        )
        self.db.add(event)
        await self.db.flush()  # get the auto-generated id
        return event

    async def read_stream(
        self,
        stream_id: str,
        after_id: int = 0,
        limit: int = 100,
    ) -> list[Event]:
        """Read events for a specific stream, optionally after a given position."""
        result = await self.db.execute(
            select(Event)
            .where(Event.stream_id == stream_id, Event.id > after_id)
            .order_by(Event.id)
            .limit(limit)
        )
        return list(result.scalars().all())
