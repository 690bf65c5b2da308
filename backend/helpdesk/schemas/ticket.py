"""
Pydantic schemas for ticket endpoints.

WHAT: Request/response schemas for tickets, comments and attachments.

WHY: Priority is a closed enum here, so an unknown value is rejected at the
boundary. Status is accepted as a string and parsed by the lifecycle, which
reports unknown statuses as an invalid state rather than a malformed body.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from helpdesk.models.ticket import TicketPriority, TicketStatus
from helpdesk.schemas.common import CamelModel

LIST_DESCRIPTION_LENGTH = 100


def truncate_description(text: str, length: int = LIST_DESCRIPTION_LENGTH) -> str:
    return text if len(text) <= length else text[:length] + "..."


class TicketCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    ticket_type_id: int
    category_id: Optional[int] = None
    module_id: Optional[int] = None
    priority: Optional[TicketPriority] = Field(None, description="Defaults to Medium")
    form_values: Optional[Dict[int, Optional[str]]] = Field(
        None, description="Dynamic form values keyed by form field id"
    )


class TicketStatusUpdate(CamelModel):
    status: str = Field(..., description="Open, InProgress, Resolved or Closed")
    assigned_to_user_id: Optional[int] = None


class CommentCreate(CamelModel):
    comment: str = Field(..., min_length=1, max_length=10000)
    is_internal: bool = False


class CommentResponse(CamelModel):
    id: int
    ticket_id: int
    user_id: int
    user_name: str
    comment: str
    is_internal: bool
    is_system_message: bool
    created_at: datetime


class AttachmentResponse(CamelModel):
    id: int
    ticket_id: int
    file_name: str
    storage_path: str
    content_type: str
    file_size: int
    uploaded_by_user_id: int
    created_at: datetime


class FormValueResponse(CamelModel):
    form_field_id: int
    field_name: str
    display_name: str
    field_value: Optional[str] = None


class TicketListItem(CamelModel):
    """Ticket row in listings; description truncated to 100 characters."""

    id: int
    ticket_number: str
    title: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    company_id: int
    company_name: Optional[str] = None
    created_by_user_id: int
    created_by_name: Optional[str] = None
    assigned_to_user_id: Optional[int] = None
    assigned_to_name: Optional[str] = None
    ticket_type_id: int
    ticket_type_name: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    module_id: Optional[int] = None
    module_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class TicketDetail(TicketListItem):
    """Full ticket with the comments the caller may see."""

    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    comments: List[CommentResponse] = Field(default_factory=list)
    attachments: List[AttachmentResponse] = Field(default_factory=list)
    form_values: List[FormValueResponse] = Field(default_factory=list)


class TicketMutationResponse(CamelModel):
    message: str
    ticket: TicketDetail


class CommentMutationResponse(CamelModel):
    message: str
    comment: CommentResponse


class AttachmentMutationResponse(CamelModel):
    message: str
    attachment: AttachmentResponse
