"""
Ticket catalog API endpoints.

WHAT: Ticket types, categories, modules and the dynamic form fields of
each ticket type.

WHY: The catalog is shared by every company. Any authenticated account
reads it to fill in the ticket form; SuperAdmin and Admin maintain it.
Inactive entries are hidden from listings and cannot be referenced by new
tickets.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.deps import require_operation
from helpdesk.core.exceptions import ConflictError, ResourceNotFoundError
from helpdesk.core.policy import Operation, RequestContext
from helpdesk.db.session import get_db
from helpdesk.dao.catalog import FormFieldDAO, TicketCategoryDAO, TicketModuleDAO, TicketTypeDAO
from helpdesk.models.catalog import FormFieldType, TicketFormField
from helpdesk.schemas.catalog import (
    CategoryCreate,
    CategoryMutationResponse,
    CategoryResponse,
    FieldTypeResponse,
    FormFieldCreate,
    FormFieldMutationResponse,
    FormFieldResponse,
    FormFieldUpdate,
    ModuleCreate,
    ModuleMutationResponse,
    ModuleResponse,
    TicketTypeCreate,
    TicketTypeDetail,
    TicketTypeMutationResponse,
    TicketTypeResponse,
    TicketTypeUpdate,
)
from helpdesk.schemas.common import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickettypes", tags=["catalog"])

FIELD_TYPE_LABELS = {
    FormFieldType.TEXT: ("Text", "Single-line text input"),
    FormFieldType.TEXTAREA: ("Multi-line text", "Long text input"),
    FormFieldType.SELECT: ("Select list", "Dropdown list"),
    FormFieldType.RADIO: ("Radio buttons", "Single choice"),
    FormFieldType.CHECKBOX: ("Checkbox", "Yes/no choice"),
    FormFieldType.EMAIL: ("Email", "Email address input"),
    FormFieldType.NUMBER: ("Number", "Numeric input"),
    FormFieldType.DATE: ("Date", "Date picker"),
    FormFieldType.FILE: ("File", "File upload"),
}


async def _active_type(db: AsyncSession, ticket_type_id: int):
    ticket_type = await TicketTypeDAO(db).get_active(ticket_type_id)
    if ticket_type is None:
        raise ResourceNotFoundError(message="Ticket type not found", ticket_type_id=ticket_type_id)
    return ticket_type


async def _field_for_write(db: AsyncSession, field_id: int) -> TicketFormField:
    field = await FormFieldDAO(db).get_by_id(field_id)
    if field is None or not field.is_active:
        raise ResourceNotFoundError(message="Form field not found", form_field_id=field_id)
    return field


# ============================================================================
# Static routes (declared before /{ticket_type_id})
# ============================================================================


@router.get("/field-types", response_model=List[FieldTypeResponse], summary="List form field types")
async def list_field_types(
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_READ)),
) -> List[FieldTypeResponse]:
    return [
        FieldTypeResponse(value=field_type, label=label, description=description)
        for field_type, (label, description) in FIELD_TYPE_LABELS.items()
    ]


@router.get("/categories", response_model=List[CategoryResponse], summary="List categories")
async def list_categories(
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_READ)),
    db: AsyncSession = Depends(get_db),
) -> List[CategoryResponse]:
    return [CategoryResponse.model_validate(c) for c in await TicketCategoryDAO(db).list_active()]


@router.post(
    "/categories",
    response_model=CategoryMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create category",
)
async def create_category(
    data: CategoryCreate,
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> CategoryMutationResponse:
    category = await TicketCategoryDAO(db).create(**data.model_dump(), is_active=True)
    logger.info(f"Category {category.id} created by user {ctx.account_id}")
    return CategoryMutationResponse(
        message="Category created successfully",
        category=CategoryResponse.model_validate(category),
    )


@router.get(
    "/categories/{category_id}/modules",
    response_model=List[ModuleResponse],
    summary="List modules of a category",
)
async def list_modules(
    category_id: int,
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_READ)),
    db: AsyncSession = Depends(get_db),
) -> List[ModuleResponse]:
    modules = await TicketModuleDAO(db).list_active_for_category(category_id)
    return [ModuleResponse.model_validate(m) for m in modules]


@router.post(
    "/categories/{category_id}/modules",
    response_model=ModuleMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create module",
)
async def create_module(
    category_id: int,
    data: ModuleCreate,
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> ModuleMutationResponse:
    if await TicketCategoryDAO(db).get_active(category_id) is None:
        raise ResourceNotFoundError(message="Category not found", category_id=category_id)

    module = await TicketModuleDAO(db).create(category_id=category_id, **data.model_dump(), is_active=True)
    logger.info(f"Module {module.id} created in category {category_id} by user {ctx.account_id}")
    return ModuleMutationResponse(
        message="Module created successfully",
        module=ModuleResponse.model_validate(module),
    )


@router.put(
    "/formfields/{field_id}",
    response_model=FormFieldMutationResponse,
    summary="Update form field",
)
async def update_form_field(
    field_id: int,
    data: FormFieldUpdate,
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> FormFieldMutationResponse:
    field = await _field_for_write(db, field_id)
    field = await FormFieldDAO(db).update(field, **data.model_dump(exclude_unset=True))
    logger.info(f"Form field {field.id} updated by user {ctx.account_id}")
    return FormFieldMutationResponse(
        message="Form field updated successfully",
        form_field=FormFieldResponse.model_validate(field),
    )


@router.delete(
    "/formfields/{field_id}",
    response_model=MessageResponse,
    summary="Deactivate form field",
)
async def delete_form_field(
    field_id: int,
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    field = await _field_for_write(db, field_id)
    await FormFieldDAO(db).update(field, is_active=False)
    logger.info(f"Form field {field.id} deactivated by user {ctx.account_id}")
    return MessageResponse(message="Form field deleted")


# ============================================================================
# Ticket types
# ============================================================================


@router.get("", response_model=List[TicketTypeResponse], summary="List ticket types")
async def list_ticket_types(
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_READ)),
    db: AsyncSession = Depends(get_db),
) -> List[TicketTypeResponse]:
    return [TicketTypeResponse.model_validate(t) for t in await TicketTypeDAO(db).list_active()]


@router.post(
    "",
    response_model=TicketTypeMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create ticket type",
)
async def create_ticket_type(
    data: TicketTypeCreate,
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> TicketTypeMutationResponse:
    ticket_type = await TicketTypeDAO(db).create(**data.model_dump(), is_active=True)
    logger.info(f"Ticket type {ticket_type.id} created by user {ctx.account_id}")
    return TicketTypeMutationResponse(
        message="Ticket type created successfully",
        ticket_type=TicketTypeResponse.model_validate(ticket_type),
    )


@router.get("/{ticket_type_id}", response_model=TicketTypeDetail, summary="Get ticket type")
async def get_ticket_type(
    ticket_type_id: int,
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_READ)),
    db: AsyncSession = Depends(get_db),
) -> TicketTypeDetail:
    """Ticket type with its active form fields in sort order."""
    ticket_type = await _active_type(db, ticket_type_id)
    fields = await FormFieldDAO(db).list_active_for_type(ticket_type.id)

    return TicketTypeDetail(
        **TicketTypeResponse.model_validate(ticket_type).model_dump(),
        form_fields=[FormFieldResponse.model_validate(f) for f in fields],
    )


@router.put(
    "/{ticket_type_id}",
    response_model=TicketTypeMutationResponse,
    summary="Update ticket type",
)
async def update_ticket_type(
    ticket_type_id: int,
    data: TicketTypeUpdate,
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> TicketTypeMutationResponse:
    dao = TicketTypeDAO(db)
    ticket_type = await dao.get_by_id(ticket_type_id)
    if ticket_type is None:
        raise ResourceNotFoundError(message="Ticket type not found", ticket_type_id=ticket_type_id)

    ticket_type = await dao.update(ticket_type, **data.model_dump(exclude_unset=True))
    logger.info(f"Ticket type {ticket_type.id} updated by user {ctx.account_id}")
    return TicketTypeMutationResponse(
        message="Ticket type updated successfully",
        ticket_type=TicketTypeResponse.model_validate(ticket_type),
    )


@router.get(
    "/{ticket_type_id}/formfields",
    response_model=List[FormFieldResponse],
    summary="List form fields of a ticket type",
)
async def list_form_fields(
    ticket_type_id: int,
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_READ)),
    db: AsyncSession = Depends(get_db),
) -> List[FormFieldResponse]:
    await _active_type(db, ticket_type_id)
    fields = await FormFieldDAO(db).list_active_for_type(ticket_type_id)
    return [FormFieldResponse.model_validate(f) for f in fields]


@router.post(
    "/{ticket_type_id}/formfields",
    response_model=FormFieldMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create form field",
)
async def create_form_field(
    ticket_type_id: int,
    data: FormFieldCreate,
    ctx: RequestContext = Depends(require_operation(Operation.CATALOG_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> FormFieldMutationResponse:
    """
    Raises:
        ResourceNotFoundError (404): If the ticket type is missing or inactive
        ConflictError (409): If an active field of the type has the same name
    """
    await _active_type(db, ticket_type_id)

    dao = FormFieldDAO(db)
    existing = await dao.list_active_for_type(ticket_type_id)
    if any(f.field_name == data.field_name for f in existing):
        raise ConflictError(message="Field name already used by this ticket type", field_name=data.field_name)

    field = await dao.create(ticket_type_id=ticket_type_id, **data.model_dump(), is_active=True)
    logger.info(f"Form field {field.id} added to ticket type {ticket_type_id} by user {ctx.account_id}")
    return FormFieldMutationResponse(
        message="Form field created successfully",
        form_field=FormFieldResponse.model_validate(field),
    )
