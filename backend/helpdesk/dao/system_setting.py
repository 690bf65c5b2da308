"""System setting Data Access Object."""

from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dao.base import BaseDAO
from helpdesk.models.system_setting import SystemSetting


class SystemSettingDAO(BaseDAO[SystemSetting]):
    def __init__(self, session: AsyncSession):
        super().__init__(SystemSetting, session)

    async def get_by_key(self, key: str) -> Optional[SystemSetting]:
        result = await self.session.execute(
            select(SystemSetting).where(SystemSetting.setting_key == key)
        )
        return result.scalar_one_or_none()

    async def list_visible(self, category: Optional[str] = None) -> List[SystemSetting]:
        query = select(SystemSetting).where(SystemSetting.is_visible.is_(True))
        if category:
            query = query.where(SystemSetting.category == category)
        result = await self.session.execute(
            query.order_by(SystemSetting.category, SystemSetting.setting_key)
        )
        return list(result.scalars().all())

    async def list_categories(self) -> List[str]:
        result = await self.session.execute(
            select(SystemSetting.category)
            .where(SystemSetting.is_visible.is_(True))
            .distinct()
            .order_by(SystemSetting.category)
        )
        return list(result.scalars().all())

    async def list_unprotected(self) -> List[SystemSetting]:
        result = await self.session.execute(
            select(SystemSetting)
            .where(SystemSetting.is_system_setting.is_(False))
            .order_by(SystemSetting.category, SystemSetting.setting_key)
        )
        return list(result.scalars().all())
