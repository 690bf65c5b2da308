"""
Ticket API endpoints.

WHAT: RESTful API for support tickets, their comments and attachments.

WHY: Tickets are the core of the helpdesk:
1. Any company member can raise and comment on tickets of its company
2. Staff move tickets through Open -> InProgress -> Resolved -> Closed
3. Internal comments are hidden from Customer and User accounts

HOW: Handlers are thin. TicketService does the authorization, tenant
scoping, lifecycle checks and notifications; this module converts between
HTTP payloads and service calls.
"""

import json
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.core.deps import require_operation
from helpdesk.core.exceptions import ValidationError
from helpdesk.core.policy import Operation, RequestContext
from helpdesk.db.session import get_db
from helpdesk.models.ticket import Ticket, TicketAttachment, TicketComment, TicketPriority
from helpdesk.schemas.common import PaginatedResponse, paginated
from helpdesk.schemas.ticket import (
    AttachmentMutationResponse,
    AttachmentResponse,
    CommentCreate,
    CommentMutationResponse,
    CommentResponse,
    FormValueResponse,
    TicketCreate,
    TicketDetail,
    TicketListItem,
    TicketMutationResponse,
    TicketStatusUpdate,
    truncate_description,
)
from helpdesk.services.file_storage import UploadedFile
from helpdesk.services.ticket_service import TicketService


router = APIRouter(prefix="/tickets", tags=["tickets"])


def _list_fields(ticket: Ticket) -> dict:
    return dict(
        id=ticket.id,
        ticket_number=ticket.ticket_number,
        title=ticket.title,
        status=ticket.status,
        priority=ticket.priority,
        company_id=ticket.company_id,
        company_name=ticket.company.name if ticket.company else None,
        created_by_user_id=ticket.created_by_user_id,
        created_by_name=ticket.created_by.full_name if ticket.created_by else None,
        assigned_to_user_id=ticket.assigned_to_user_id,
        assigned_to_name=ticket.assigned_to.full_name if ticket.assigned_to else None,
        ticket_type_id=ticket.ticket_type_id,
        ticket_type_name=ticket.ticket_type.name if ticket.ticket_type else None,
        category_id=ticket.category_id,
        category_name=ticket.category.name if ticket.category else None,
        module_id=ticket.module_id,
        module_name=ticket.module.name if ticket.module else None,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
    )


def ticket_to_list_item(ticket: Ticket) -> TicketListItem:
    """Convert a Ticket loaded with LIST_OPTIONS to a listing row."""
    return TicketListItem(description=truncate_description(ticket.description), **_list_fields(ticket))


def comment_to_response(comment: TicketComment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        ticket_id=comment.ticket_id,
        user_id=comment.user_id,
        user_name=comment.user.full_name if comment.user else "",
        comment=comment.comment,
        is_internal=comment.is_internal,
        is_system_message=comment.is_system_message,
        created_at=comment.created_at,
    )


def ticket_to_detail(ctx: RequestContext, ticket: Ticket) -> TicketDetail:
    """
    Convert a Ticket loaded with DETAIL_OPTIONS to the detail view.

    Internal comments are dropped for callers who may not see them.
    """
    return TicketDetail(
        description=ticket.description,
        resolved_at=ticket.resolved_at,
        closed_at=ticket.closed_at,
        comments=[comment_to_response(c) for c in TicketService.visible_comments(ctx, ticket)],
        attachments=[AttachmentResponse.model_validate(a) for a in ticket.attachments],
        form_values=[
            FormValueResponse(
                form_field_id=entry.form_field_id,
                field_name=entry.form_field.field_name,
                display_name=entry.form_field.display_name,
                field_value=entry.field_value,
            )
            for entry in ticket.form_data
        ],
        **_list_fields(ticket),
    )


async def _read_upload(upload: UploadFile) -> UploadedFile:
    return UploadedFile(
        filename=upload.filename or "file",
        content=await upload.read(),
        content_type=upload.content_type,
    )


def _parse_priority(value: Optional[str]) -> Optional[TicketPriority]:
    if not value:
        return None
    try:
        return TicketPriority(value)
    except ValueError:
        raise ValidationError(message=f"Unknown priority: {value}", priority=value)


def _parse_form_values(raw: Optional[str]) -> dict:
    """``formValues`` arrives as a JSON object text in multipart requests."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
        return {int(key): (None if value is None else str(value)) for key, value in parsed.items()}
    except (ValueError, AttributeError):
        raise ValidationError(message="formValues must be a JSON object keyed by form field id")


# ============================================================================
# Reads
# ============================================================================


@router.get(
    "",
    response_model=PaginatedResponse[TicketListItem],
    status_code=status.HTTP_200_OK,
    summary="List tickets",
    description="Tickets visible to the caller, newest first",
)
async def list_tickets(
    page: int = Query(1, ge=1, description="1-based page number"),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, alias="pageSize"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    company_id: Optional[int] = Query(None, alias="companyId", description="Filter by company"),
    ctx: RequestContext = Depends(require_operation(Operation.TICKET_READ)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    tickets, total = await TicketService(db).list_tickets(
        ctx, page=page, page_size=page_size, status=status_filter, company_id=company_id
    )
    return paginated([ticket_to_list_item(t) for t in tickets], total, page, page_size)


@router.get(
    "/{ticket_id}",
    response_model=TicketDetail,
    summary="Get ticket",
)
async def get_ticket(
    ticket_id: int,
    ctx: RequestContext = Depends(require_operation(Operation.TICKET_READ)),
    db: AsyncSession = Depends(get_db),
) -> TicketDetail:
    """
    Raises:
        TicketNotFoundError (404): If absent or owned by another company
    """
    ticket = await TicketService(db).get_ticket(ctx, ticket_id)
    return ticket_to_detail(ctx, ticket)


# ============================================================================
# Creation
# ============================================================================


@router.post(
    "",
    response_model=TicketMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create ticket",
)
async def create_ticket(
    data: TicketCreate,
    ctx: RequestContext = Depends(require_operation(Operation.TICKET_CREATE)),
    db: AsyncSession = Depends(get_db),
) -> TicketMutationResponse:
    """
    Create a ticket in the caller's company.

    Raises:
        MissingTenantError (400): If the caller has no company
        ValidationError (400): On unknown catalog references or bad form values
        TicketNumberConflictError (409): If no unique number could be allocated
    """
    ticket = await TicketService(db).create_ticket(
        ctx,
        title=data.title,
        description=data.description,
        ticket_type_id=data.ticket_type_id,
        category_id=data.category_id,
        module_id=data.module_id,
        priority=data.priority,
        form_values=data.form_values,
    )
    return TicketMutationResponse(
        message=f"Ticket {ticket.ticket_number} created successfully",
        ticket=ticket_to_detail(ctx, ticket),
    )


@router.post(
    "/with-attachments",
    response_model=TicketMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create ticket with attachments",
    description="Multipart variant of ticket creation",
)
async def create_ticket_with_attachments(
    title: str = Form(..., min_length=1, max_length=200),
    description: str = Form(..., min_length=1),
    ticket_type_id: int = Form(..., alias="ticketTypeId"),
    category_id: Optional[int] = Form(None, alias="categoryId"),
    module_id: Optional[int] = Form(None, alias="moduleId"),
    priority: Optional[str] = Form(None),
    form_values: Optional[str] = Form(None, alias="formValues"),
    files: Optional[List[UploadFile]] = File(None),
    ctx: RequestContext = Depends(require_operation(Operation.TICKET_CREATE)),
    db: AsyncSession = Depends(get_db),
) -> TicketMutationResponse:
    """
    Raises:
        FileStorageError (503): If an attachment could not be stored; the
            ticket itself is kept and its number is in the error details
    """
    uploads = [await _read_upload(f) for f in files or []]
    ticket = await TicketService(db).create_ticket(
        ctx,
        title=title,
        description=description,
        ticket_type_id=ticket_type_id,
        category_id=category_id,
        module_id=module_id,
        priority=_parse_priority(priority),
        form_values=_parse_form_values(form_values),
        attachments=uploads,
    )
    return TicketMutationResponse(
        message=f"Ticket {ticket.ticket_number} created successfully",
        ticket=ticket_to_detail(ctx, ticket),
    )


# ============================================================================
# Status, comments, attachments
# ============================================================================


@router.put(
    "/{ticket_id}/status",
    response_model=TicketMutationResponse,
    summary="Change ticket status",
    description="Staff only; optionally sets the assignee",
)
async def change_status(
    ticket_id: int,
    data: TicketStatusUpdate,
    ctx: RequestContext = Depends(require_operation(Operation.TICKET_TRANSITION)),
    db: AsyncSession = Depends(get_db),
) -> TicketMutationResponse:
    """
    Raises:
        InvalidStateTransitionError (409): On unknown status or illegal move
        ConflictError (409): If the ticket changed concurrently
    """
    ticket = await TicketService(db).change_status(
        ctx, ticket_id, data.status, assigned_to_user_id=data.assigned_to_user_id
    )
    return TicketMutationResponse(
        message="Ticket status updated",
        ticket=ticket_to_detail(ctx, ticket),
    )


@router.post(
    "/{ticket_id}/comments",
    response_model=CommentMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add comment",
)
async def add_comment(
    ticket_id: int,
    data: CommentCreate,
    ctx: RequestContext = Depends(require_operation(Operation.TICKET_COMMENT)),
    db: AsyncSession = Depends(get_db),
) -> CommentMutationResponse:
    comment = await TicketService(db).add_comment(ctx, ticket_id, data.comment, is_internal=data.is_internal)
    return CommentMutationResponse(
        message="Comment added",
        comment=comment_to_response(comment),
    )


@router.post(
    "/{ticket_id}/attachments",
    response_model=AttachmentMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload attachment",
)
async def add_attachment(
    ticket_id: int,
    file: UploadFile = File(...),
    ctx: RequestContext = Depends(require_operation(Operation.TICKET_ATTACH)),
    db: AsyncSession = Depends(get_db),
) -> AttachmentMutationResponse:
    """
    Raises:
        ValidationError (400): On a disallowed type or size
        FileStorageError (503): If the file store fails
    """
    attachment: TicketAttachment = await TicketService(db).add_attachment(
        ctx, ticket_id, await _read_upload(file)
    )
    return AttachmentMutationResponse(
        message="Attachment uploaded",
        attachment=AttachmentResponse.model_validate(attachment),
    )
