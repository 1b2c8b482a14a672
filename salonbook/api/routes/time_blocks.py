from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from salonbook.api.deps import get_admin_user, get_session
from salonbook.models.calendar import TimeBlock, TimeBlockCreate
from salonbook.models.user import User
from salonbook.services.time_block_service import create_time_block, delete_time_block, list_time_blocks

router = APIRouter(prefix="/time-blocks", tags=["time-blocks"])


@router.get("", response_model=list[TimeBlock])
async def get_time_blocks(
    date_param: date | None = Query(None, alias="date"),
    session: AsyncSession = Depends(get_session),
) -> list[TimeBlock]:
    return await list_time_blocks(session, date_param)


@router.post("", response_model=TimeBlock, status_code=status.HTTP_201_CREATED)
async def post_time_block(
    body: TimeBlockCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_admin_user),
) -> TimeBlock:
    return await create_time_block(session, body)


@router.delete("/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_time_block(
    block_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_admin_user),
) -> None:
    await delete_time_block(session, block_id)
