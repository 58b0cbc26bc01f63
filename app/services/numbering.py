"""Per-clinic monthly document numbers (``PAY-202406-0001``)."""

from datetime import date
from uuid import UUID

from sqlalchemy import Table, and_, select
from sqlalchemy.ext.asyncio import AsyncSession


async def next_document_number(
    db: AsyncSession,
    table: Table,
    column_name: str,
    clinic_id: UUID,
    prefix: str,
    today: date | None = None,
) -> str:
    """
    Allocate the next ``{prefix}-YYYYMM-NNNN`` number for a clinic.

    The sequence restarts every month. The numbering column carries a
    unique constraint, so a concurrent duplicate fails the insert instead
    of being stored twice.
    """
    today = today or date.today()
    month_prefix = f"{prefix}-{today:%Y%m}-"
    column = table.c[column_name]

    stmt = (
        select(column)
        .where(and_(table.c.clinic_id == clinic_id, column.like(f"{month_prefix}%")))
        .order_by(column.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    last = result.scalar_one_or_none()

    sequence = int(last.rsplit("-", 1)[1]) + 1 if last else 1
    return f"{month_prefix}{sequence:04d}"
