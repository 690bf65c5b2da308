"""
Pydantic schemas for the ticket catalog (types, categories, modules, form fields).
"""

import json
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from helpdesk.models.catalog import FormFieldType
from helpdesk.schemas.common import CamelModel


def _json_text(v: Optional[str]) -> Optional[str]:
    """Empty text becomes None; anything else must parse as JSON."""
    if v is None or not v.strip():
        return None
    try:
        json.loads(v)
    except ValueError:
        raise ValueError("must be valid JSON")
    return v


class TicketTypeCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    icon: str = Field("📋", max_length=50)
    color: str = Field("#6366f1", max_length=20)
    sort_order: int = 0


class TicketTypeUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=20)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=20)
    sort_order: int = 0


class ModuleCreate(CategoryCreate):
    pass


class CategoryResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    sort_order: int
    is_active: bool


class ModuleResponse(CategoryResponse):
    category_id: int


class FormFieldBase(CamelModel):
    field_name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=200)
    field_type: FormFieldType = FormFieldType.TEXT
    default_value: Optional[str] = Field(None, max_length=500)
    placeholder_text: Optional[str] = Field(None, max_length=200)
    help_text: Optional[str] = Field(None, max_length=500)
    is_required: bool = False
    sort_order: int = 0
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=1)
    validation_rules: Optional[str] = Field(None, description="JSON text")
    options: Optional[str] = Field(None, description="JSON text, for select/radio/checkbox")

    @field_validator("validation_rules", "options")
    @classmethod
    def validate_json_text(cls, v: Optional[str]) -> Optional[str]:
        return _json_text(v)


class FormFieldCreate(FormFieldBase):
    pass


class FormFieldUpdate(CamelModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=200)
    field_type: Optional[FormFieldType] = None
    default_value: Optional[str] = Field(None, max_length=500)
    placeholder_text: Optional[str] = Field(None, max_length=200)
    help_text: Optional[str] = Field(None, max_length=500)
    is_required: Optional[bool] = None
    sort_order: Optional[int] = None
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=1)
    validation_rules: Optional[str] = None
    options: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("validation_rules", "options")
    @classmethod
    def validate_json_text(cls, v: Optional[str]) -> Optional[str]:
        return _json_text(v)


class FormFieldResponse(FormFieldBase):
    id: int
    ticket_type_id: int
    is_active: bool


class TicketTypeResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    icon: str
    color: str
    sort_order: int
    is_active: bool
    created_at: datetime


class TicketTypeDetail(TicketTypeResponse):
    form_fields: List[FormFieldResponse] = Field(default_factory=list)


class TicketTypeMutationResponse(CamelModel):
    message: str
    ticket_type: TicketTypeResponse


class CategoryMutationResponse(CamelModel):
    message: str
    category: CategoryResponse


class ModuleMutationResponse(CamelModel):
    message: str
    module: ModuleResponse


class FormFieldMutationResponse(CamelModel):
    message: str
    form_field: FormFieldResponse


class FieldTypeResponse(CamelModel):
    value: FormFieldType
    label: str
    description: str
