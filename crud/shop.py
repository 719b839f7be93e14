"""
ShopRepository for database operations on Shop model
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import Shop


class ShopRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, shop_id: str) -> Optional[Shop]:
        result = await self.db.execute(select(Shop).where(Shop.id == shop_id))
        return result.scalar_one_or_none()

    async def create(self, shop_id: str, name: str, owner_email: Optional[str] = None) -> Shop:
        shop = Shop(
            id=shop_id,
            name=name,
            owner_email=owner_email.lower() if owner_email else None,
        )
        self.db.add(shop)
        await self.db.flush()
        await self.db.refresh(shop)
        return shop
