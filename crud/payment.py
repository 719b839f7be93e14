"""
PaymentRepository for database operations on Payment model
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import Payment


class PaymentRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_reference(self, reference: str) -> Optional[Payment]:
        result = await self.db.execute(select(Payment).where(Payment.reference == reference))
        return result.scalar_one_or_none()

    async def create(self, data: dict) -> Payment:
        payment = Payment(**data)
        self.db.add(payment)
        await self.db.flush()
        return payment
