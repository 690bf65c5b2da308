"""
System settings API endpoints.

WHAT: Read, create and update global typed settings; bulk update, reset to
defaults, export and collaborator connection tests.

WHY: Settings are global configuration. Admins may read them; only the
SuperAdmin changes them. Protected (system) settings are read-only for
everyone.
"""

import json
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.deps import require_operation
from helpdesk.core.policy import Operation, RequestContext
from helpdesk.db.session import get_db
from helpdesk.schemas.system_setting import (
    BulkUpdateRequest,
    BulkUpdateResponse,
    ResetDefaultsRequest,
    ResetDefaultsResponse,
    SettingCreate,
    SettingGroup,
    SettingMutationResponse,
    SettingResponse,
    SettingValueUpdate,
    TestConnectionRequest,
    TestConnectionResponse,
)
from helpdesk.services.settings_service import SystemSettingsService


router = APIRouter(prefix="/systemsettings", tags=["system settings"])


@router.get("", response_model=List[SettingGroup], summary="List settings by category")
async def list_settings(
    category: Optional[str] = Query(None),
    ctx: RequestContext = Depends(require_operation(Operation.SETTING_READ)),
    db: AsyncSession = Depends(get_db),
) -> List[SettingGroup]:
    grouped = await SystemSettingsService(db).list_grouped(category)
    return [
        SettingGroup(
            category=name,
            settings=[SettingResponse.model_validate(s) for s in settings],
        )
        for name, settings in sorted(grouped.items())
    ]


@router.get("/categories", response_model=List[str], summary="List setting categories")
async def list_categories(
    ctx: RequestContext = Depends(require_operation(Operation.SETTING_READ)),
    db: AsyncSession = Depends(get_db),
) -> List[str]:
    return await SystemSettingsService(db).list_categories()


@router.get("/export", summary="Export settings as JSON", response_class=Response)
async def export_settings(
    ctx: RequestContext = Depends(require_operation(Operation.SETTING_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Unprotected settings as a downloadable JSON document."""
    document = await SystemSettingsService(db).export()
    filename = f"system-settings-{datetime.utcnow():%Y-%m-%d}.json"
    return Response(
        content=json.dumps(document, indent=2, ensure_ascii=False),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.put("/bulk", response_model=BulkUpdateResponse, summary="Update several settings")
async def bulk_update(
    data: BulkUpdateRequest,
    ctx: RequestContext = Depends(require_operation(Operation.SETTING_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> BulkUpdateResponse:
    """Valid entries are applied; the rest are reported in ``errors``."""
    updated, errors = await SystemSettingsService(db).bulk_update(data.settings)
    return BulkUpdateResponse(
        message=f"{updated} settings updated",
        updated_count=updated,
        errors=errors,
    )


@router.post("/reset-defaults", response_model=ResetDefaultsResponse, summary="Reset settings to defaults")
async def reset_defaults(
    data: ResetDefaultsRequest,
    ctx: RequestContext = Depends(require_operation(Operation.SETTING_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> ResetDefaultsResponse:
    count = await SystemSettingsService(db).reset_defaults(data.keys)
    return ResetDefaultsResponse(message=f"{count} settings reset to defaults", reset_count=count)


@router.post("/test-connection", response_model=TestConnectionResponse, summary="Test a collaborator connection")
async def test_connection(
    data: TestConnectionRequest,
    ctx: RequestContext = Depends(require_operation(Operation.SETTING_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> TestConnectionResponse:
    """
    Probe email, database or PMO. A failed probe answers 200 with
    ``status == "error"``.

    Raises:
        ValidationError (400): On an unknown connection type
    """
    result = await SystemSettingsService(db).test_connection(data.connection_type, data.settings)
    return TestConnectionResponse(**result)


@router.post(
    "",
    response_model=SettingMutationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create setting",
)
async def create_setting(
    data: SettingCreate,
    ctx: RequestContext = Depends(require_operation(Operation.SETTING_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> SettingMutationResponse:
    """
    Raises:
        ConflictError (409): If the key exists
        InvalidStateTransitionError (409): On an unsupported data type
        ValidationError (400): If the value does not match the data type
    """
    fields = data.model_dump(exclude={"setting_key", "setting_value", "data_type"})
    setting = await SystemSettingsService(db).create(
        data.setting_key,
        data.setting_value,
        data.data_type,
        **fields,
    )
    return SettingMutationResponse(
        message="Setting created successfully",
        setting=SettingResponse.model_validate(setting),
    )


@router.get("/{key}", response_model=SettingResponse, summary="Get setting")
async def get_setting(
    key: str,
    ctx: RequestContext = Depends(require_operation(Operation.SETTING_READ)),
    db: AsyncSession = Depends(get_db),
) -> SettingResponse:
    return SettingResponse.model_validate(await SystemSettingsService(db).get(key))


@router.put("/{key}", response_model=SettingMutationResponse, summary="Update setting value")
async def update_setting(
    key: str,
    data: SettingValueUpdate,
    ctx: RequestContext = Depends(require_operation(Operation.SETTING_WRITE)),
    db: AsyncSession = Depends(get_db),
) -> SettingMutationResponse:
    """
    Raises:
        ProtectedSettingError (409): If the setting is a system setting
        ValidationError (400): If the value does not match the data type
    """
    setting = await SystemSettingsService(db).update_value(key, data.setting_value)
    return SettingMutationResponse(
        message="Setting updated successfully",
        setting=SettingResponse.model_validate(setting),
    )
