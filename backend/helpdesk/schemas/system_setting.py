"""
Pydantic schemas for system settings endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from helpdesk.models.system_setting import SettingDataType
from helpdesk.schemas.common import CamelModel


class SettingCreate(CamelModel):
    setting_key: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.\-]+$")
    setting_value: str = ""
    data_type: str = Field("string", description="string, boolean, number or json")
    display_name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    category: str = Field("General", min_length=1, max_length=50)
    is_system_setting: bool = False
    is_visible: bool = True
    default_value: Optional[str] = None
    validation_rules: Optional[str] = None


class SettingValueUpdate(CamelModel):
    setting_value: str


class SettingResponse(CamelModel):
    id: int
    setting_key: str
    setting_value: str
    data_type: SettingDataType
    display_name: Optional[str] = None
    description: Optional[str] = None
    category: str
    is_system_setting: bool
    is_visible: bool
    default_value: Optional[str] = None
    validation_rules: Optional[str] = None
    updated_at: Optional[datetime] = None


class SettingGroup(CamelModel):
    category: str
    settings: List[SettingResponse]


class SettingMutationResponse(CamelModel):
    message: str
    setting: SettingResponse


class BulkUpdateRequest(CamelModel):
    settings: Dict[str, str] = Field(..., description="Setting key to new value")


class BulkUpdateResponse(CamelModel):
    message: str
    updated_count: int
    errors: List[str] = Field(default_factory=list)


class ResetDefaultsRequest(CamelModel):
    keys: List[str] = Field(..., min_length=1)


class ResetDefaultsResponse(CamelModel):
    message: str
    reset_count: int


class TestConnectionRequest(CamelModel):
    connection_type: str = Field(..., description="email, pmo or database")
    settings: Dict[str, Any] = Field(default_factory=dict)


class TestConnectionResponse(CamelModel):
    status: str
    message: str
