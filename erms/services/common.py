from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from erms.exceptions import ConcurrencyError

EDIT_CONFLICT_MESSAGE = "The record was modified by another user. Your edit was canceled."


def check_version(entity, submitted: int | None, message: str) -> None:
    """Reject an edit made against an older copy of the row."""
    if submitted is not None and submitted != entity.row_version:
        raise ConcurrencyError(message)


async def commit_or_conflict(db: AsyncSession, message: str) -> None:
    try:
        await db.commit()
    except StaleDataError as exc:
        await db.rollback()
        raise ConcurrencyError(message) from exc
