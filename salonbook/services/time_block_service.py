from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.core.errors import InvalidInput, NotFound
from salonbook.models.calendar import TimeBlock, TimeBlockCreate
from salonbook.services.dates import combine, parse_date


async def create_time_block(session: AsyncSession, data: TimeBlockCreate) -> TimeBlock:
    d = parse_date(data.date)
    start = combine(d, data.start_time)
    end = combine(d, data.end_time)
    if end <= start:
        raise InvalidInput("End time must be after start time")
    block = TimeBlock(date=d, start_at=start, end_at=end, reason=data.reason)
    session.add(block)
    await session.flush()
    await session.refresh(block)
    return block


async def list_time_blocks(session: AsyncSession, d: date | None = None) -> list[TimeBlock]:
    q = select(TimeBlock).order_by(TimeBlock.start_at)
    if d is not None:
        q = q.where(TimeBlock.date == d)
    result = await session.execute(q)
    return list(result.scalars().all())


async def delete_time_block(session: AsyncSession, block_id: int) -> None:
    block = await session.get(TimeBlock, block_id)
    if block is None:
        raise NotFound(f"Time block #{block_id} not found")
    await session.delete(block)
    await session.flush()
