"""
Integration tests for system settings.

WHAT: Tests reading, writing, bulk updates, defaults, export and
connection tests of platform settings.

WHY: Admins may read settings but only the SuperAdmin may change them,
and system settings are protected from edits through the API.
"""

import json

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.factories import CompanyFactory, SettingFactory, UserFactory
from helpdesk.models.system_setting import SettingDataType


@pytest.fixture
async def people(db_session: AsyncSession):
    company = await CompanyFactory.create(db_session)
    return {
        "root": await UserFactory.create_super_admin(db_session),
        "admin": await UserFactory.create_admin(db_session, company),
        "support": await UserFactory.create_support(db_session, company),
    }


class TestSettingsAccess:
    """Role checks on /api/systemsettings."""

    @pytest.mark.asyncio
    async def test_admin_reads_but_cannot_write(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        await SettingFactory.create(db_session, setting_key="support.email")

        read = await client.get("/api/systemsettings/support.email", headers=headers_for(people["admin"]))
        write = await client.put(
            "/api/systemsettings/support.email",
            headers=headers_for(people["admin"]),
            json={"settingValue": "help@example.com"},
        )

        assert read.status_code == 200
        assert read.json()["settingValue"] == "support@example.com"
        assert write.status_code == 403

    @pytest.mark.asyncio
    async def test_support_cannot_read(self, client: AsyncClient, headers_for, people):
        response = await client.get("/api/systemsettings", headers=headers_for(people["support"]))

        assert response.status_code == 403


class TestSettingsCrud:
    """Create, read and update single settings."""

    @pytest.mark.asyncio
    async def test_create_setting(self, client: AsyncClient, headers_for, people):
        response = await client.post(
            "/api/systemsettings",
            headers=headers_for(people["root"]),
            json={
                "settingKey": "tickets.autoCloseDays",
                "settingValue": "7",
                "dataType": "number",
                "category": "Tickets",
                "defaultValue": "7",
            },
        )

        assert response.status_code == 201
        assert response.json()["message"] == "Setting created successfully"
        assert response.json()["setting"]["dataType"] == "number"

    @pytest.mark.asyncio
    async def test_duplicate_key(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        await SettingFactory.create(db_session, setting_key="dup.key")

        response = await client.post(
            "/api/systemsettings",
            headers=headers_for(people["root"]),
            json={"settingKey": "dup.key", "settingValue": "x"},
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_value_must_match_type(self, client: AsyncClient, headers_for, people):
        response = await client.post(
            "/api/systemsettings",
            headers=headers_for(people["root"]),
            json={"settingKey": "flag", "settingValue": "maybe", "dataType": "boolean"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unsupported_data_type(self, client: AsyncClient, headers_for, people):
        response = await client.post(
            "/api/systemsettings",
            headers=headers_for(people["root"]),
            json={"settingKey": "when", "settingValue": "2024-01-01", "dataType": "date"},
        )

        assert response.status_code == 409
        assert response.json()["kind"] == "invalid_state"

    @pytest.mark.asyncio
    async def test_protected_setting_rejects_update(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        """
        WHY: System settings are managed by deployment, not by the API.
        """
        await SettingFactory.create(db_session, setting_key="db.version", is_system_setting=True)

        response = await client.put(
            "/api/systemsettings/db.version",
            headers=headers_for(people["root"]),
            json={"settingValue": "2"},
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_missing_setting(self, client: AsyncClient, headers_for, people):
        response = await client.get("/api/systemsettings/nope", headers=headers_for(people["root"]))

        assert response.status_code == 404


class TestSettingsBatch:
    """Grouped listing, bulk update, reset and export."""

    @pytest.mark.asyncio
    async def test_grouped_by_category(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        await SettingFactory.create(db_session, setting_key="a", category="Email")
        await SettingFactory.create(db_session, setting_key="b", category="General")
        await SettingFactory.create(db_session, setting_key="hidden", category="General", is_visible=False)

        response = await client.get("/api/systemsettings", headers=headers_for(people["admin"]))
        categories = await client.get("/api/systemsettings/categories", headers=headers_for(people["admin"]))

        groups = {g["category"]: [s["settingKey"] for s in g["settings"]] for g in response.json()}
        assert groups == {"Email": ["a"], "General": ["b"]}
        assert set(categories.json()) >= {"Email", "General"}

    @pytest.mark.asyncio
    async def test_bulk_update_reports_errors(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        """
        WHY: One bad entry must not block the valid ones.
        """
        await SettingFactory.create(db_session, setting_key="ok", setting_value="1", data_type=SettingDataType.NUMBER)
        await SettingFactory.create(db_session, setting_key="bad", setting_value="1", data_type=SettingDataType.NUMBER)

        response = await client.put(
            "/api/systemsettings/bulk",
            headers=headers_for(people["root"]),
            json={"settings": {"ok": "2", "bad": "two", "missing": "x"}},
        )

        assert response.status_code == 200
        assert response.json()["updatedCount"] == 1
        assert len(response.json()["errors"]) == 2

    @pytest.mark.asyncio
    async def test_reset_defaults(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        await SettingFactory.create(db_session, setting_key="page.size", setting_value="50", default_value="10")

        response = await client.post(
            "/api/systemsettings/reset-defaults",
            headers=headers_for(people["root"]),
            json={"keys": ["page.size"]},
        )
        current = await client.get("/api/systemsettings/page.size", headers=headers_for(people["root"]))

        assert response.json()["resetCount"] == 1
        assert current.json()["settingValue"] == "10"

    @pytest.mark.asyncio
    async def test_export_download(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        await SettingFactory.create(db_session, setting_key="export.me", category="General")
        await SettingFactory.create(db_session, setting_key="secret.one", is_system_setting=True)

        response = await client.get("/api/systemsettings/export", headers=headers_for(people["root"]))

        assert response.status_code == 200
        assert response.headers["content-disposition"].startswith('attachment; filename="system-settings-')
        assert "export.me" in response.text
        assert "secret.one" not in response.text
        json.loads(response.text)

    @pytest.mark.asyncio
    async def test_export_is_super_admin_only(self, client: AsyncClient, headers_for, people):
        response = await client.get("/api/systemsettings/export", headers=headers_for(people["admin"]))

        assert response.status_code == 403


class TestConnectionProbe:
    """Tests for POST /api/systemsettings/test-connection."""

    @pytest.mark.asyncio
    async def test_database_probe(self, client: AsyncClient, headers_for, people):
        response = await client.post(
            "/api/systemsettings/test-connection",
            headers=headers_for(people["root"]),
            json={"connectionType": "database"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "success"

    @pytest.mark.asyncio
    async def test_unknown_type(self, client: AsyncClient, headers_for, people):
        response = await client.post(
            "/api/systemsettings/test-connection",
            headers=headers_for(people["root"]),
            json={"connectionType": "ftp"},
        )

        assert response.status_code == 400
