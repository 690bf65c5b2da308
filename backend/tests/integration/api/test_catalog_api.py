"""
Integration tests for the ticket catalog.

WHAT: Tests ticket types, categories, modules and form fields.

WHY: The catalog is global. Every role reads it, only administrators
change it, and form field names are unique per ticket type.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.factories import CatalogFactory, CompanyFactory, UserFactory


@pytest.fixture
async def people(db_session: AsyncSession):
    company = await CompanyFactory.create(db_session)
    return {
        "admin": await UserFactory.create_admin(db_session, company),
        "customer": await UserFactory.create_customer(db_session, company),
    }


class TestTicketTypes:
    """Tests for /api/tickettypes."""

    @pytest.mark.asyncio
    async def test_list_active_types(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        """
        WHY: Retired types must not be offered on the ticket form.
        """
        await CatalogFactory.create_ticket_type(db_session, name="Incident", sort_order=2)
        await CatalogFactory.create_ticket_type(db_session, name="Question", sort_order=1)
        await CatalogFactory.create_ticket_type(db_session, name="Legacy", is_active=False)

        response = await client.get("/api/tickettypes", headers=headers_for(people["customer"]))

        assert response.status_code == 200
        names = [t["name"] for t in response.json()]
        assert "Legacy" not in names
        assert set(names) == {"Incident", "Question"}

    @pytest.mark.asyncio
    async def test_customer_cannot_create(self, client: AsyncClient, headers_for, people):
        response = await client.post(
            "/api/tickettypes", headers=headers_for(people["customer"]), json={"name": "Mine"}
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_create_and_update(self, client: AsyncClient, headers_for, people):
        headers = headers_for(people["admin"])

        created = await client.post(
            "/api/tickettypes", headers=headers, json={"name": "Change request", "color": "#00ff00"}
        )
        type_id = created.json()["ticketType"]["id"]
        updated = await client.put(
            f"/api/tickettypes/{type_id}", headers=headers, json={"description": "Scoped work"}
        )

        assert created.status_code == 201
        assert created.json()["ticketType"]["icon"]
        assert updated.status_code == 200
        assert updated.json()["ticketType"]["description"] == "Scoped work"
        assert updated.json()["ticketType"]["color"] == "#00ff00"

    @pytest.mark.asyncio
    async def test_detail_lists_active_fields_in_order(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        ticket_type = await CatalogFactory.create_ticket_type(db_session)
        await CatalogFactory.create_form_field(db_session, ticket_type, field_name="second", sort_order=2)
        await CatalogFactory.create_form_field(db_session, ticket_type, field_name="first", sort_order=1)
        await CatalogFactory.create_form_field(db_session, ticket_type, field_name="gone", is_active=False)

        response = await client.get(
            f"/api/tickettypes/{ticket_type.id}", headers=headers_for(people["customer"])
        )

        assert [f["fieldName"] for f in response.json()["formFields"]] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_missing_type(self, client: AsyncClient, headers_for, people):
        response = await client.get("/api/tickettypes/999", headers=headers_for(people["customer"]))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_field_types(self, client: AsyncClient, headers_for, people):
        response = await client.get("/api/tickettypes/field-types", headers=headers_for(people["customer"]))

        values = [t["value"] for t in response.json()]
        assert values[0] == "text"
        assert len(values) == 9
        assert all(t["label"] for t in response.json())


class TestFormFields:
    """Tests for form field routes under /api/tickettypes."""

    @pytest.mark.asyncio
    async def test_create_field(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        ticket_type = await CatalogFactory.create_ticket_type(db_session)

        response = await client.post(
            f"/api/tickettypes/{ticket_type.id}/formfields",
            headers=headers_for(people["admin"]),
            json={
                "fieldName": "severity",
                "displayName": "Severity",
                "fieldType": "select",
                "options": '["low", "high"]',
                "isRequired": True,
            },
        )

        assert response.status_code == 201
        field = response.json()["formField"]
        assert field["ticketTypeId"] == ticket_type.id
        assert field["fieldType"] == "select"
        assert field["isRequired"] is True

    @pytest.mark.asyncio
    async def test_duplicate_field_name(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        """
        WHY: Form values are reported by field name, so names must not clash.
        """
        ticket_type = await CatalogFactory.create_ticket_type(db_session)
        await CatalogFactory.create_form_field(db_session, ticket_type, field_name="order_number")

        response = await client.post(
            f"/api/tickettypes/{ticket_type.id}/formfields",
            headers=headers_for(people["admin"]),
            json={"fieldName": "order_number", "displayName": "Again"},
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_options_must_be_json(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        ticket_type = await CatalogFactory.create_ticket_type(db_session)

        response = await client.post(
            f"/api/tickettypes/{ticket_type.id}/formfields",
            headers=headers_for(people["admin"]),
            json={"fieldName": "pick", "displayName": "Pick", "fieldType": "radio", "options": "a, b"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_and_delete_field(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        ticket_type = await CatalogFactory.create_ticket_type(db_session)
        field = await CatalogFactory.create_form_field(db_session, ticket_type)
        headers = headers_for(people["admin"])

        updated = await client.put(
            f"/api/tickettypes/formfields/{field.id}", headers=headers, json={"displayName": "Order #"}
        )
        deleted = await client.delete(f"/api/tickettypes/formfields/{field.id}", headers=headers)
        listing = await client.get(f"/api/tickettypes/{ticket_type.id}/formfields", headers=headers)

        assert updated.json()["formField"]["displayName"] == "Order #"
        assert deleted.json()["message"] == "Form field deleted"
        assert listing.json() == []


class TestCategoriesAndModules:
    """Tests for /api/tickettypes/categories."""

    @pytest.mark.asyncio
    async def test_create_category_and_module(self, client: AsyncClient, headers_for, people):
        headers = headers_for(people["admin"])

        category = await client.post(
            "/api/tickettypes/categories", headers=headers, json={"name": "Billing"}
        )
        category_id = category.json()["category"]["id"]
        module = await client.post(
            f"/api/tickettypes/categories/{category_id}/modules", headers=headers, json={"name": "Invoices"}
        )
        modules = await client.get(f"/api/tickettypes/categories/{category_id}/modules", headers=headers)

        assert category.status_code == 201
        assert module.status_code == 201
        assert module.json()["module"]["categoryId"] == category_id
        assert [m["name"] for m in modules.json()] == ["Invoices"]

    @pytest.mark.asyncio
    async def test_categories_ordered_by_name(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, people
    ):
        await CatalogFactory.create_category(db_session, name="Shipping")
        await CatalogFactory.create_category(db_session, name="Billing")

        response = await client.get("/api/tickettypes/categories", headers=headers_for(people["customer"]))

        assert [c["name"] for c in response.json()] == ["Billing", "Shipping"]

    @pytest.mark.asyncio
    async def test_module_for_missing_category(self, client: AsyncClient, headers_for, people):
        response = await client.post(
            "/api/tickettypes/categories/999/modules",
            headers=headers_for(people["admin"]),
            json={"name": "Orphan"},
        )

        assert response.status_code == 404
