"""Refresh token store — server-side record of exchangeable refresh tokens.

Learn: A refresh token JWT is only honoured while its row exists here.
Rows are removed on logout (revoke) and on refresh (rotate), which makes
every refresh token single-use:

    login   → issue(T1)
    refresh → rotate(T1 → T2)     T1 can never be exchanged again
    logout  → revoke(T2)

rotate() deletes with a conditional DELETE and checks the affected row
count inside the same transaction that inserts the replacement. If two
requests race with the same old token, only one DELETE removes the row;
the other raises UsedOrNonexistentRefreshToken and inserts nothing.
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.db.models import RefreshToken, utcnow
from trellone.errors import UsedOrNonexistentRefreshToken


class RefreshTokenStore:
    """Persistence for refresh tokens, keyed by the raw token string."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def issue(
        self,
        user_id: uuid.UUID,
        token: str,
        iat: datetime,
        exp: datetime,
        *,
        commit: bool = True,
    ) -> RefreshToken:
        """Persist a new refresh token. A user may hold several (one per device)."""
        record = RefreshToken(user_id=user_id, token=token, iat=iat, exp=exp)
        self.db.add(record)
        await self.db.flush()
        if commit:
            await self.db.commit()
        return record

    async def find(self, token: str) -> RefreshToken | None:
        """Return the live record for `token`; expired rows count as absent."""
        result = await self.db.execute(
            select(RefreshToken).where(
                RefreshToken.token == token,
                RefreshToken.exp > utcnow(),
            )
        )
        return result.scalars().first()

    async def revoke(self, token: str) -> bool:
        """Delete a token. Revoking an absent token is not an error."""
        result = await self.db.execute(
            delete(RefreshToken).where(RefreshToken.token == token)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def rotate(
        self,
        old_token: str,
        user_id: uuid.UUID,
        new_token: str,
        iat: datetime,
        exp: datetime,
    ) -> RefreshToken:
        """Replace `old_token` with `new_token` in one transaction.

        Raises UsedOrNonexistentRefreshToken if `old_token` was already
        rotated out or revoked; nothing is written in that case.
        """
        try:
            result = await self.db.execute(
                delete(RefreshToken).where(
                    RefreshToken.token == old_token,
                    RefreshToken.user_id == user_id,
                )
            )
            if result.rowcount != 1:
                raise UsedOrNonexistentRefreshToken()
            record = await self.issue(user_id, new_token, iat, exp, commit=False)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return record

    async def revoke_all_for_user(self, user_id: uuid.UUID, *, commit: bool = True) -> int:
        """Sign a user out of every device."""
        result = await self.db.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user_id)
        )
        if commit:
            await self.db.commit()
        return result.rowcount

    async def purge_expired(self) -> int:
        result = await self.db.execute(
            delete(RefreshToken).where(RefreshToken.exp <= utcnow())
        )
        await self.db.commit()
        return result.rowcount
