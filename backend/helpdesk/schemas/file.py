"""
Pydantic schemas for file store endpoints.
"""

from datetime import datetime

from helpdesk.schemas.common import CamelModel


class FileInfoResponse(CamelModel):
    path: str
    file_name: str
    size: int
    content_type: str
    created_at: datetime
    modified_at: datetime


class FileUploadResponse(CamelModel):
    message: str
    file_path: str
    file_name: str
    size: int
