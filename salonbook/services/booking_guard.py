import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

# First key of the two-int advisory lock; the second is the date ordinal.
_ADVISORY_NAMESPACE = 0x5A10


class BookingGuard:
    """Serializes the overlap check and the write that follows it, per day.

    Within one process an ``asyncio.Lock`` per calendar day is held; on
    PostgreSQL a transaction-scoped advisory lock on the same day is taken as
    well so concurrent workers queue behind each other. The caller must commit
    before leaving :meth:`hold`.
    """

    def __init__(self) -> None:
        self._locks: dict[date, asyncio.Lock] = {}
        self._holders: dict[date, int] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    def _lock_for(self, d: date) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            # asyncio locks are bound to the loop that first waits on them
            self._locks = {}
            self._holders = {}
            self._loop = loop
        return self._locks.setdefault(d, asyncio.Lock())

    @asynccontextmanager
    async def hold(self, session: AsyncSession, d: date) -> AsyncIterator[None]:
        lock = self._lock_for(d)
        self._holders[d] = self._holders.get(d, 0) + 1
        try:
            async with lock:
                bind = session.bind
                if bind is not None and bind.dialect.name == "postgresql":
                    await session.execute(
                        select(func.pg_advisory_xact_lock(_ADVISORY_NAMESPACE, d.toordinal()))
                    )
                yield
        finally:
            self._release(d)

    def _release(self, d: date) -> None:
        # Drop the day's lock once nobody holds or waits for it
        remaining = self._holders.get(d, 0) - 1
        if remaining > 0:
            self._holders[d] = remaining
        else:
            self._holders.pop(d, None)
            self._locks.pop(d, None)


booking_guard = BookingGuard()
