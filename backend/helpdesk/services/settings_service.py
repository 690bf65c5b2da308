"""
System settings service.

WHAT: Typed, validated access to the global key/value settings, plus bulk
update, reset to defaults, export and connection tests.

WHY: Setting values are free text in the database but each has a declared
type. Every write goes through ``validate_value`` so a boolean setting can
never hold "maybe". Protected (system) settings are read-only through the
API whatever the caller's role.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import settings
from helpdesk.core.exceptions import (
    ConflictError,
    EmailServiceError,
    ExternalServiceError,
    InvalidStateTransitionError,
    ProtectedSettingError,
    ResourceNotFoundError,
    ValidationError,
)
from helpdesk.dao.system_setting import SystemSettingDAO
from helpdesk.models.system_setting import SettingDataType, SystemSetting
from helpdesk.services.email import EmailService, get_email_service

logger = logging.getLogger(__name__)

CONNECTION_TYPES = ("email", "pmo", "database")


def parse_data_type(value: Any) -> SettingDataType:
    """
    Raises:
        InvalidStateTransitionError: If the data type is not supported
    """
    if isinstance(value, SettingDataType):
        return value
    try:
        return SettingDataType(str(value).lower())
    except ValueError:
        raise InvalidStateTransitionError(
            message=f"Unsupported setting data type: {value}",
            data_type=value,
        )


def is_valid_value(data_type: SettingDataType, value: str) -> bool:
    """
    Whether ``value`` parses as ``data_type``.

    Example:
        >>> is_valid_value(SettingDataType.BOOLEAN, "True")
        True
        >>> is_valid_value(SettingDataType.NUMBER, "ten")
        False
    """
    if data_type == SettingDataType.BOOLEAN:
        return value.strip().lower() in ("true", "false")
    if data_type == SettingDataType.NUMBER:
        try:
            float(value)
        except ValueError:
            return False
        return value.strip().lower() not in ("nan", "inf", "-inf", "infinity", "-infinity")
    if data_type == SettingDataType.JSON:
        try:
            json.loads(value)
        except ValueError:
            return False
        return True
    return True


def validate_value(setting_key: str, data_type: SettingDataType, value: str) -> str:
    """
    Raises:
        ValidationError: If the value does not parse as the declared type
    """
    if not is_valid_value(data_type, value):
        raise ValidationError(
            message=f"Invalid value for {data_type.value} setting {setting_key}",
            setting_key=setting_key,
            data_type=data_type.value,
        )
    if data_type == SettingDataType.BOOLEAN:
        return value.strip().lower()
    return value


def _ensure_mutable(setting: SystemSetting) -> None:
    if setting.is_system_setting:
        raise ProtectedSettingError(setting_key=setting.setting_key)


class SystemSettingsService:
    """Operations on SystemSetting rows for one request."""

    def __init__(self, session: AsyncSession, email_service: Optional[EmailService] = None):
        self.session = session
        self.dao = SystemSettingDAO(session)
        self._email_service = email_service

    @property
    def email_service(self) -> EmailService:
        return self._email_service or get_email_service()

    async def list_grouped(self, category: Optional[str] = None) -> Dict[str, List[SystemSetting]]:
        """Visible settings grouped by category, categories and keys sorted."""
        grouped: Dict[str, List[SystemSetting]] = {}
        for setting in await self.dao.list_visible(category):
            grouped.setdefault(setting.category, []).append(setting)
        return grouped

    async def list_categories(self) -> List[str]:
        return await self.dao.list_categories()

    async def get(self, key: str) -> SystemSetting:
        setting = await self.dao.get_by_key(key)
        if setting is None:
            raise ResourceNotFoundError(message="Setting not found", setting_key=key)
        return setting

    async def create(
        self,
        setting_key: str,
        setting_value: str,
        data_type: Any = SettingDataType.STRING,
        **fields: Any,
    ) -> SystemSetting:
        """
        Raises:
            ConflictError: If the key already exists
            InvalidStateTransitionError: If the data type is not supported
            ValidationError: If the value does not match the data type
        """
        declared = parse_data_type(data_type)
        value = validate_value(setting_key, declared, setting_value)
        default = fields.get("default_value")
        if default is not None:
            fields["default_value"] = validate_value(setting_key, declared, default)

        if await self.dao.get_by_key(setting_key):
            raise ConflictError(message="Setting key already exists", setting_key=setting_key)

        async with self.dao.unique_guard("Setting key already exists", setting_key=setting_key):
            setting = await self.dao.create(
                setting_key=setting_key,
                setting_value=value,
                data_type=declared,
                **fields,
            )
        logger.info(f"Created setting {setting_key}")
        return setting

    async def update_value(self, key: str, value: str) -> SystemSetting:
        """
        Raises:
            ResourceNotFoundError: If the key does not exist
            ProtectedSettingError: If the setting is protected
            ValidationError: If the value does not match the data type
        """
        setting = await self.get(key)
        _ensure_mutable(setting)
        checked = validate_value(key, setting.data_type, value)
        setting = await self.dao.update(setting, setting_value=checked)
        logger.info(f"Updated setting {key}")
        return setting

    async def bulk_update(self, values: Dict[str, str]) -> Tuple[int, List[str]]:
        """
        Apply several updates, skipping the ones that fail.

        Returns:
            Tuple of (number updated, one error message per skipped key)
        """
        updated = 0
        errors: List[str] = []
        for key, value in values.items():
            setting = await self.dao.get_by_key(key)
            if setting is None:
                errors.append(f"{key}: setting not found")
            elif setting.is_system_setting:
                errors.append(f"{key}: system settings cannot be modified")
            elif not is_valid_value(setting.data_type, value):
                errors.append(f"{key}: invalid {setting.data_type.value} value")
            else:
                setting.setting_value = validate_value(key, setting.data_type, value)
                updated += 1
        await self.session.flush()
        logger.info(f"Bulk settings update: {updated} updated, {len(errors)} skipped")
        return updated, errors

    async def reset_defaults(self, keys: List[str]) -> int:
        """
        Restore defaults for the given keys. Protected settings and settings
        without a default are skipped.

        Returns:
            Number of settings reset
        """
        reset = 0
        for key in keys:
            setting = await self.dao.get_by_key(key)
            if setting is None or setting.is_system_setting or setting.default_value is None:
                continue
            setting.setting_value = setting.default_value
            reset += 1
        await self.session.flush()
        return reset

    async def export(self) -> Dict[str, Any]:
        """Unprotected settings as a JSON-serializable document."""
        return {
            "exported_at": datetime.utcnow().isoformat(),
            "settings": [
                {
                    "setting_key": s.setting_key,
                    "setting_value": s.setting_value,
                    "data_type": s.data_type.value,
                    "category": s.category,
                    "display_name": s.display_name,
                    "description": s.description,
                    "default_value": s.default_value,
                }
                for s in await self.dao.list_unprotected()
            ],
        }

    # =========================================================================
    # Connection tests
    # =========================================================================

    async def test_connection(self, connection_type: str, options: Dict[str, Any]) -> Dict[str, Any]:
        """
        Probe a collaborator. A failed probe is reported, not raised.

        Raises:
            ValidationError: If the connection type is unknown or a required
                option is missing
        """
        kind = connection_type.lower()
        if kind not in CONNECTION_TYPES:
            raise ValidationError(
                message=f"Unsupported connection type: {connection_type}",
                connection_type=connection_type,
            )

        try:
            if kind == "email":
                message = await self._probe_email(options)
            elif kind == "pmo":
                message = await self._probe_pmo(options)
            else:
                message = await self._probe_database()
        except (ExternalServiceError, httpx.HTTPError, SQLAlchemyError) as e:
            logger.warning(f"{kind} connection test failed: {e}")
            return {"status": "error", "message": str(e)}

        return {"status": "success", "message": message}

    async def _probe_email(self, options: Dict[str, Any]) -> str:
        to_email = options.get("test_email") or options.get("to")
        if not to_email:
            raise ValidationError(message="test_email is required for an email connection test")
        result = await self.email_service.send_test_email(to_email)
        if not result.success:
            raise EmailServiceError(message=f"Email provider error: {result.error}")
        return f"Test email sent to {to_email}"

    async def _probe_pmo(self, options: Dict[str, Any]) -> str:
        base_url = options.get("base_url") or settings.PMO_BASE_URL
        if not base_url:
            raise ValidationError(message="base_url is required for a PMO connection test")
        async with httpx.AsyncClient(timeout=settings.COLLABORATOR_TIMEOUT_SECONDS) as client:
            response = await client.get(base_url)
        if response.status_code >= 400:
            raise ExternalServiceError(message=f"PMO answered HTTP {response.status_code}")
        return f"PMO reachable (HTTP {response.status_code})"

    async def _probe_database(self) -> str:
        await self.session.execute(text("SELECT 1"))
        return "Database connection OK"
