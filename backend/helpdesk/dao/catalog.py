"""
Catalog Data Access Objects.

Ticket types, categories, modules and form fields are shared by all
tenants, so these DAOs apply no tenant filter. Listings are ordered by
name; form fields keep their configured sort order.
"""

from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dao.base import BaseDAO
from helpdesk.models.catalog import TicketType, TicketCategory, TicketModule, TicketFormField


class TicketTypeDAO(BaseDAO[TicketType]):
    def __init__(self, session: AsyncSession):
        super().__init__(TicketType, session)

    async def list_active(self) -> List[TicketType]:
        result = await self.session.execute(
            select(TicketType)
            .where(TicketType.is_active.is_(True))
            .order_by(TicketType.name, TicketType.id)
        )
        return list(result.scalars().all())

    async def get_active(self, id: int) -> Optional[TicketType]:
        result = await self.session.execute(
            select(TicketType).where(TicketType.id == id, TicketType.is_active.is_(True))
        )
        return result.scalar_one_or_none()


class TicketCategoryDAO(BaseDAO[TicketCategory]):
    def __init__(self, session: AsyncSession):
        super().__init__(TicketCategory, session)

    async def list_active(self) -> List[TicketCategory]:
        result = await self.session.execute(
            select(TicketCategory)
            .where(TicketCategory.is_active.is_(True))
            .order_by(TicketCategory.name, TicketCategory.id)
        )
        return list(result.scalars().all())

    async def get_active(self, id: int) -> Optional[TicketCategory]:
        result = await self.session.execute(
            select(TicketCategory).where(TicketCategory.id == id, TicketCategory.is_active.is_(True))
        )
        return result.scalar_one_or_none()


class TicketModuleDAO(BaseDAO[TicketModule]):
    def __init__(self, session: AsyncSession):
        super().__init__(TicketModule, session)

    async def list_active_for_category(self, category_id: int) -> List[TicketModule]:
        result = await self.session.execute(
            select(TicketModule)
            .where(TicketModule.category_id == category_id, TicketModule.is_active.is_(True))
            .order_by(TicketModule.name, TicketModule.id)
        )
        return list(result.scalars().all())

    async def get_active(self, id: int) -> Optional[TicketModule]:
        result = await self.session.execute(
            select(TicketModule).where(TicketModule.id == id, TicketModule.is_active.is_(True))
        )
        return result.scalar_one_or_none()


class FormFieldDAO(BaseDAO[TicketFormField]):
    def __init__(self, session: AsyncSession):
        super().__init__(TicketFormField, session)

    async def list_active_for_type(self, ticket_type_id: int) -> List[TicketFormField]:
        result = await self.session.execute(
            select(TicketFormField)
            .where(
                TicketFormField.ticket_type_id == ticket_type_id,
                TicketFormField.is_active.is_(True),
            )
            .order_by(TicketFormField.sort_order, TicketFormField.id)
        )
        return list(result.scalars().all())
