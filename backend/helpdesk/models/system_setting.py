"""
System setting model.

WHY: Global key/value configuration editable at runtime. Values are stored
as text and validated against the declared data type before every write.
"""

import enum
from sqlalchemy import Column, String, Text, Boolean, Enum

from helpdesk.models.base import Base, TimestampMixin, PrimaryKeyMixin


class SettingDataType(str, enum.Enum):
    """Declared type of a setting's value."""

    STRING = "string"
    BOOLEAN = "boolean"
    NUMBER = "number"
    JSON = "json"


class SystemSetting(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Global configuration entry.

    ``is_system_setting`` marks protected entries: they are readable but
    never modified or reset through the API.
    """

    __tablename__ = "system_settings"

    setting_key = Column(String(100), unique=True, nullable=False, index=True)
    setting_value = Column(Text, nullable=False, default="")
    data_type = Column(Enum(SettingDataType, name="settingdatatype"), nullable=False, default=SettingDataType.STRING)
    display_name = Column(String(200), nullable=True)
    description = Column(String(500), nullable=True)
    category = Column(String(50), nullable=False, default="General")
    is_system_setting = Column(Boolean, default=False, nullable=False)
    is_visible = Column(Boolean, default=True, nullable=False)
    default_value = Column(Text, nullable=True)
    validation_rules = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SystemSetting(key={self.setting_key}, type={self.data_type})>"
