"""
Tests for the system settings service.

WHY: Setting values are free text with a declared type. These tests make
sure a value can never be stored in a shape its type rejects, and that
protected settings stay untouched.
"""

import pytest
from unittest.mock import AsyncMock, patch

from helpdesk.core.exceptions import (
    ConflictError,
    InvalidStateTransitionError,
    ProtectedSettingError,
    ResourceNotFoundError,
    ValidationError,
)
from helpdesk.dao.system_setting import SystemSettingDAO
from helpdesk.models.system_setting import SettingDataType
from helpdesk.services.email import EmailResult, EmailService, MockEmailProvider
from helpdesk.services.settings_service import (
    SystemSettingsService,
    is_valid_value,
    parse_data_type,
    validate_value,
)
from tests.factories import SettingFactory


class TestValueValidation:
    @pytest.mark.parametrize(
        "data_type, value, valid",
        [
            (SettingDataType.BOOLEAN, "true", True),
            (SettingDataType.BOOLEAN, "FALSE", True),
            (SettingDataType.BOOLEAN, "yes", False),
            (SettingDataType.NUMBER, "42", True),
            (SettingDataType.NUMBER, "-3.5", True),
            (SettingDataType.NUMBER, "ten", False),
            (SettingDataType.NUMBER, "nan", False),
            (SettingDataType.JSON, '{"a": 1}', True),
            (SettingDataType.JSON, "[1, 2", False),
            (SettingDataType.STRING, "anything at all", True),
        ],
    )
    def test_is_valid_value(self, data_type, value, valid):
        assert is_valid_value(data_type, value) is valid

    def test_boolean_normalized(self):
        assert validate_value("k", SettingDataType.BOOLEAN, " True ") == "true"

    def test_invalid_raises(self):
        with pytest.raises(ValidationError):
            validate_value("k", SettingDataType.NUMBER, "x")

    def test_parse_data_type(self):
        assert parse_data_type("Boolean") == SettingDataType.BOOLEAN

    def test_unsupported_data_type(self):
        with pytest.raises(InvalidStateTransitionError):
            parse_data_type("datetime")


class TestSystemSettingsService:
    @pytest.mark.asyncio
    async def test_create_and_get(self, db_session):
        service = SystemSettingsService(db_session)

        created = await service.create("tickets.auto_close_days", "7", "number", category="Tickets")

        fetched = await service.get("tickets.auto_close_days")
        assert fetched.id == created.id
        assert fetched.data_type == SettingDataType.NUMBER

    @pytest.mark.asyncio
    async def test_create_duplicate_key(self, db_session):
        await SettingFactory.create(db_session, setting_key="site.name")

        with pytest.raises(ConflictError):
            await SystemSettingsService(db_session).create("site.name", "x")

    @pytest.mark.asyncio
    async def test_create_key_race_is_conflict(self, db_session):
        """
        WHY: When the existence check misses a concurrent insert, the unique
        constraint must still answer with a conflict and leave the session
        usable.
        """
        await SettingFactory.create(db_session, setting_key="site.name", setting_value="Acme")
        service = SystemSettingsService(db_session)

        with patch.object(SystemSettingDAO, "get_by_key", AsyncMock(return_value=None)):
            with pytest.raises(ConflictError):
                await service.create("site.name", "x")

        assert (await service.get("site.name")).setting_value == "Acme"

    @pytest.mark.asyncio
    async def test_create_rejects_bad_default(self, db_session):
        with pytest.raises(ValidationError):
            await SystemSettingsService(db_session).create("flag", "true", "boolean", default_value="maybe")

    @pytest.mark.asyncio
    async def test_get_missing(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            await SystemSettingsService(db_session).get("nope")

    @pytest.mark.asyncio
    async def test_update_checks_type(self, db_session):
        await SettingFactory.create(db_session, setting_key="flag", setting_value="true", data_type=SettingDataType.BOOLEAN)
        service = SystemSettingsService(db_session)

        with pytest.raises(ValidationError):
            await service.update_value("flag", "maybe")

        updated = await service.update_value("flag", "False")
        assert updated.setting_value == "false"

    @pytest.mark.asyncio
    async def test_protected_setting_not_updatable(self, db_session):
        await SettingFactory.create(db_session, setting_key="system.version", is_system_setting=True)

        with pytest.raises(ProtectedSettingError):
            await SystemSettingsService(db_session).update_value("system.version", "2")

    @pytest.mark.asyncio
    async def test_bulk_update_reports_skips(self, db_session):
        await SettingFactory.create(db_session, setting_key="a", setting_value="1", data_type=SettingDataType.NUMBER)
        await SettingFactory.create(db_session, setting_key="b", setting_value="1", data_type=SettingDataType.NUMBER)
        await SettingFactory.create(db_session, setting_key="locked", is_system_setting=True)

        updated, errors = await SystemSettingsService(db_session).bulk_update(
            {"a": "2", "b": "two", "locked": "x", "missing": "y"}
        )

        assert updated == 1
        assert len(errors) == 3
        assert (await SystemSettingsService(db_session).get("a")).setting_value == "2"
        assert (await SystemSettingsService(db_session).get("b")).setting_value == "1"

    @pytest.mark.asyncio
    async def test_reset_defaults(self, db_session):
        await SettingFactory.create(db_session, setting_key="a", setting_value="changed", default_value="orig")
        await SettingFactory.create(db_session, setting_key="no_default", setting_value="v")
        await SettingFactory.create(
            db_session, setting_key="locked", setting_value="v", default_value="d", is_system_setting=True
        )
        service = SystemSettingsService(db_session)

        count = await service.reset_defaults(["a", "no_default", "locked", "missing"])

        assert count == 1
        assert (await service.get("a")).setting_value == "orig"
        assert (await service.get("locked")).setting_value == "v"

    @pytest.mark.asyncio
    async def test_grouped_hides_invisible(self, db_session):
        await SettingFactory.create(db_session, setting_key="b.one", category="Email")
        await SettingFactory.create(db_session, setting_key="a.one", category="General")
        await SettingFactory.create(db_session, setting_key="hidden", category="General", is_visible=False)

        grouped = await SystemSettingsService(db_session).list_grouped()

        assert sorted(grouped) == ["Email", "General"]
        assert [s.setting_key for s in grouped["General"]] == ["a.one"]

    @pytest.mark.asyncio
    async def test_export_skips_protected(self, db_session):
        await SettingFactory.create(db_session, setting_key="public")
        await SettingFactory.create(db_session, setting_key="locked", is_system_setting=True)

        document = await SystemSettingsService(db_session).export()

        assert [s["setting_key"] for s in document["settings"]] == ["public"]
        assert "exported_at" in document


class TestConnectionTests:
    @pytest.mark.asyncio
    async def test_unknown_type(self, db_session):
        with pytest.raises(ValidationError):
            await SystemSettingsService(db_session).test_connection("ftp", {})

    @pytest.mark.asyncio
    async def test_database(self, db_session):
        result = await SystemSettingsService(db_session).test_connection("database", {})

        assert result["status"] == "success"

    @pytest.mark.asyncio
    async def test_email_success(self, db_session):
        service = SystemSettingsService(db_session, email_service=EmailService(provider=MockEmailProvider()))

        result = await service.test_connection("email", {"test_email": "ops@example.com"})

        assert result["status"] == "success"
        assert MockEmailProvider.sent_emails[0].to_email == "ops@example.com"

    @pytest.mark.asyncio
    async def test_email_failure_is_reported(self, db_session):
        email_service = EmailService(provider=MockEmailProvider())
        email_service.send_test_email = AsyncMock(return_value=EmailResult(success=False, error="bad key"))

        result = await SystemSettingsService(db_session, email_service=email_service).test_connection(
            "email", {"test_email": "ops@example.com"}
        )

        assert result["status"] == "error"
        assert "bad key" in result["message"]

    @pytest.mark.asyncio
    async def test_email_requires_address(self, db_session):
        with pytest.raises(ValidationError):
            await SystemSettingsService(db_session).test_connection("email", {})
