"""Event type constants.

Learn: Centralizing event types as constants prevents typos and
makes it easy to discover all event types in the system. The same
strings are used for the activity log and the real-time channel.
"""

# ─── Boards ──────────────────────────────────────────────

BOARD_CREATED = "board.created"
BOARD_UPDATED = "board.updated"

# ─── Columns ─────────────────────────────────────────────

COLUMN_CREATED = "column.created"
COLUMN_UPDATED = "column.updated"
COLUMN_DELETED = "column.deleted"

# ─── Cards ───────────────────────────────────────────────

CARD_CREATED = "card.created"
CARD_MOVED = "card.moved"
