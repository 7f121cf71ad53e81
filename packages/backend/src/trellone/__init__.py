"""Trellone — Kanban board collaboration backend.

Boards own ordered columns, columns own ordered cards. The package
provides JWT authentication with rotating refresh tokens, membership
checks, board mutations (card moves included) and real-time fan-out.
"""

__version__ = "0.1.0"
