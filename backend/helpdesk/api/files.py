"""
File store API endpoints.

WHAT: Upload, download, delete, describe and list files in the local file
store.

WHY: Ticket attachments have their own endpoint; these routes expose the
store directly for other uploads (logos, exports). Paths in requests are
the relative handles returned by upload and are confined to the upload
root.

HOW:
- Handles under ``tickets/<id>/`` belong to a ticket. Access to them goes
  through the tenant-scoped ticket lookup, so a caller who cannot see the
  ticket gets 404 for its files too.
- Uploads into the ticket tree are refused; they go through
  ``POST /tickets/{id}/attachments``.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.deps import require_operation
from helpdesk.core.exceptions import ResourceNotFoundError, ValidationError
from helpdesk.core.policy import Operation, RequestContext, ResourceKind
from helpdesk.dao.tenant_scope import TenantScopedRepository
from helpdesk.db.session import get_db
from helpdesk.schemas.common import MessageResponse
from helpdesk.schemas.file import FileInfoResponse, FileUploadResponse
from helpdesk.services.file_storage import (
    DEFAULT_FOLDER,
    FileStorageService,
    UploadedFile,
    get_file_storage,
    validate_folder,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


async def _check_ticket_files(
    path: str,
    ctx: RequestContext,
    db: AsyncSession,
    storage: FileStorageService,
) -> None:
    """
    Raises:
        ResourceNotFoundError: If ``path`` lies under a ticket the caller
            cannot see
    """
    segment = storage.ticket_segment(path)
    if segment is None:
        return
    try:
        await TenantScopedRepository(db).get(ResourceKind.TICKET, ctx, int(segment))
    except (ValueError, ResourceNotFoundError):
        logger.info(f"User {ctx.account_id} denied ticket file {path}")
        raise ResourceNotFoundError(message="File not found", path=path)


@router.post(
    "/upload",
    response_model=FileUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload file",
)
async def upload_file(
    file: UploadFile = File(...),
    folder: str = Query(DEFAULT_FOLDER),
    ctx: RequestContext = Depends(require_operation(Operation.FILE_ACCESS)),
    storage: FileStorageService = Depends(get_file_storage),
) -> FileUploadResponse:
    """
    Raises:
        ValidationError (400): On a disallowed type, size or folder
        FileStorageError (503): If the write fails
    """
    if storage.ticket_segment(validate_folder(folder)) is not None:
        raise ValidationError(
            message="Ticket attachments must be uploaded to the ticket",
            folder=folder,
        )

    upload = UploadedFile(
        filename=file.filename or "file",
        content=await file.read(),
        content_type=file.content_type,
    )
    handle = await storage.store(upload, folder=folder)
    logger.info(f"User {ctx.account_id} uploaded {handle}")
    return FileUploadResponse(
        message="File uploaded successfully",
        file_path=handle,
        file_name=upload.filename,
        size=upload.size,
    )


@router.get(
    "/download/{file_path:path}",
    summary="Download file",
    response_class=Response,
)
async def download_file(
    file_path: str,
    ctx: RequestContext = Depends(require_operation(Operation.FILE_ACCESS)),
    db: AsyncSession = Depends(get_db),
    storage: FileStorageService = Depends(get_file_storage),
) -> Response:
    await _check_ticket_files(file_path, ctx, db, storage)
    info = await storage.info(file_path)
    content = await storage.retrieve(file_path)
    return Response(
        content=content,
        media_type=info.content_type,
        headers={"Content-Disposition": f'attachment; filename="{info.file_name}"'},
    )


@router.delete(
    "/delete",
    response_model=MessageResponse,
    summary="Delete file",
)
async def delete_file(
    file_path: str = Query(..., alias="filePath"),
    ctx: RequestContext = Depends(require_operation(Operation.FILE_ACCESS)),
    db: AsyncSession = Depends(get_db),
    storage: FileStorageService = Depends(get_file_storage),
) -> MessageResponse:
    await _check_ticket_files(file_path, ctx, db, storage)
    if not await storage.delete(file_path):
        raise ResourceNotFoundError(message="File not found", path=file_path)
    logger.info(f"User {ctx.account_id} deleted {file_path}")
    return MessageResponse(message="File deleted successfully")


@router.get(
    "/info/{file_path:path}",
    response_model=FileInfoResponse,
    summary="Describe file",
)
async def file_info(
    file_path: str,
    ctx: RequestContext = Depends(require_operation(Operation.FILE_ACCESS)),
    db: AsyncSession = Depends(get_db),
    storage: FileStorageService = Depends(get_file_storage),
) -> FileInfoResponse:
    await _check_ticket_files(file_path, ctx, db, storage)
    return FileInfoResponse.model_validate(await storage.info(file_path))


@router.get(
    "/list",
    response_model=List[FileInfoResponse],
    summary="List files in a folder",
)
async def list_files(
    folder: str = Query(DEFAULT_FOLDER),
    ctx: RequestContext = Depends(require_operation(Operation.FILE_ACCESS)),
    db: AsyncSession = Depends(get_db),
    storage: FileStorageService = Depends(get_file_storage),
) -> List[FileInfoResponse]:
    await _check_ticket_files(validate_folder(folder), ctx, db, storage)
    return [FileInfoResponse.model_validate(f) for f in await storage.list(folder)]
