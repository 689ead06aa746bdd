"""
Atomic generation of order display ids (ORD-01001, ORD-01002, ...).

    service = OrderNumberService(db)
    display_id = await service.get_next_display_id()
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.order import OrderSequence


ORDER_SEQUENCE = "orders"


class OrderNumberService:
    """
    Uses SELECT FOR UPDATE on the sequence row so no two orders share a
    display id under concurrent load.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_or_create_sequence(self) -> OrderSequence:
        result = await self.db.execute(
            select(OrderSequence)
            .where(OrderSequence.name == ORDER_SEQUENCE)
            .with_for_update()
        )
        sequence = result.scalar_one_or_none()
        if sequence is None:
            sequence = OrderSequence(
                name=ORDER_SEQUENCE,
                current_number=settings.ORDER_DISPLAY_ID_START - 1,
                prefix="ORD",
                padding=5,
            )
            self.db.add(sequence)
            await self.db.flush()
        return sequence

    async def get_next_display_id(self) -> str:
        sequence = await self._get_or_create_sequence()
        sequence.current_number += 1
        await self.db.flush()
        return sequence.format(sequence.current_number)
