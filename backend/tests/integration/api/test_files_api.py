"""
Integration tests for the file store routes.

WHAT: Tests upload, download, info, listing and deletion through /api/files.

WHY: Stored files are addressed by opaque handles. The routes must never
read or write outside the store root, and files under a ticket are only
reachable by callers who can see that ticket.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.factories import CatalogFactory, CompanyFactory, TicketFactory, UserFactory


@pytest.fixture
async def user(db_session: AsyncSession):
    company = await CompanyFactory.create(db_session)
    return await UserFactory.create_customer(db_session, company)


async def upload(client: AsyncClient, headers: dict, name: str = "notes.txt", content: bytes = b"hello", **params):
    return await client.post(
        "/api/files/upload",
        headers=headers,
        params=params,
        files={"file": (name, content, "text/plain")},
    )


class TestFileUpload:
    """Tests for POST /api/files/upload."""

    @pytest.mark.asyncio
    async def test_upload_returns_handle(self, client: AsyncClient, headers_for, user):
        response = await upload(client, headers_for(user), folder="reports")

        assert response.status_code == 201
        data = response.json()
        assert data["filePath"].startswith("reports/notes_")
        assert data["filePath"].endswith(".txt")
        assert data["fileName"] == "notes.txt"
        assert data["size"] == 5

    @pytest.mark.asyncio
    async def test_upload_requires_authentication(self, client: AsyncClient):
        response = await client.post(
            "/api/files/upload", files={"file": ("notes.txt", b"hello", "text/plain")}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_disallowed_extension(self, client: AsyncClient, headers_for, user):
        response = await upload(client, headers_for(user), name="script.sh")

        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

    @pytest.mark.asyncio
    async def test_invalid_folder(self, client: AsyncClient, headers_for, user):
        """
        WHY: Folder names are restricted so a handle cannot point outside the store.
        """
        response = await upload(client, headers_for(user), folder="a b")

        assert response.status_code == 400


class TestFileAccess:
    """Tests for download, info, list and delete."""

    @pytest.mark.asyncio
    async def test_download(self, client: AsyncClient, headers_for, user):
        headers = headers_for(user)
        handle = (await upload(client, headers, content=b"file body")).json()["filePath"]

        response = await client.get(f"/api/files/download/{handle}", headers=headers)

        assert response.status_code == 200
        assert response.content == b"file body"
        assert "attachment" in response.headers["content-disposition"]

    @pytest.mark.asyncio
    async def test_info_and_list(self, client: AsyncClient, headers_for, user):
        headers = headers_for(user)
        handle = (await upload(client, headers, folder="shared")).json()["filePath"]

        info = await client.get(f"/api/files/info/{handle}", headers=headers)
        listing = await client.get("/api/files/list", params={"folder": "shared"}, headers=headers)

        assert info.status_code == 200
        assert info.json()["path"] == handle
        assert info.json()["size"] == 5
        assert [f["path"] for f in listing.json()] == [handle]

    @pytest.mark.asyncio
    async def test_list_missing_folder_is_empty(self, client: AsyncClient, headers_for, user):
        response = await client.get("/api/files/list", params={"folder": "nothing"}, headers=headers_for(user))

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, headers_for, user):
        headers = headers_for(user)
        handle = (await upload(client, headers)).json()["filePath"]

        first = await client.delete("/api/files/delete", params={"filePath": handle}, headers=headers)
        second = await client.delete("/api/files/delete", params={"filePath": handle}, headers=headers)
        download = await client.get(f"/api/files/download/{handle}", headers=headers)

        assert first.status_code == 200
        assert second.status_code == 404
        assert download.status_code == 404


@pytest.fixture
async def ticket_file(client: AsyncClient, db_session: AsyncSession, headers_for):
    """An Acme ticket with one attachment, plus a customer of another company."""
    acme = await CompanyFactory.create(db_session, name="Acme")
    globex = await CompanyFactory.create(db_session, name="Globex")
    owner = await UserFactory.create_customer(db_session, acme, email="owner@acme.example")
    ticket_type = await CatalogFactory.create_ticket_type(db_session)
    ticket = await TicketFactory.create(db_session, acme, owner, ticket_type)

    response = await client.post(
        f"/api/tickets/{ticket.id}/attachments",
        headers=headers_for(owner),
        files={"file": ("secret.txt", b"acme confidential", "text/plain")},
    )
    return {
        "ticket": ticket,
        "owner": owner,
        "outsider": await UserFactory.create_customer(db_session, globex, email="outsider@globex.example"),
        "handle": response.json()["attachment"]["storagePath"],
    }


class TestTicketFileIsolation:
    """Files under tickets/<id>/ follow the ticket's tenant scope."""

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_read_or_delete(
        self, client: AsyncClient, headers_for, ticket_file, file_storage
    ):
        """
        WHY: Ticket ids are sequential, so without the ticket check any
        customer could walk tickets/1, tickets/2, ... and read other
        companies' attachments.
        """
        headers = headers_for(ticket_file["outsider"])
        handle = ticket_file["handle"]
        folder = f"tickets/{ticket_file['ticket'].id}"

        listing = await client.get("/api/files/list", params={"folder": folder}, headers=headers)
        download = await client.get(f"/api/files/download/{handle}", headers=headers)
        info = await client.get(f"/api/files/info/{handle}", headers=headers)
        delete = await client.delete("/api/files/delete", params={"filePath": handle}, headers=headers)

        for response in (listing, download, info, delete):
            assert response.status_code == 404
            assert response.json()["kind"] == "not_found"
        assert await file_storage.retrieve(handle) == b"acme confidential"

    @pytest.mark.asyncio
    async def test_dot_segments_do_not_bypass_ticket_check(
        self, client: AsyncClient, headers_for, ticket_file, file_storage
    ):
        handle = ticket_file["handle"]

        response = await client.delete(
            "/api/files/delete",
            params={"filePath": f"uploads/../{handle}"},
            headers=headers_for(ticket_file["outsider"]),
        )

        assert response.status_code == 404
        assert await file_storage.retrieve(handle) == b"acme confidential"

    @pytest.mark.asyncio
    async def test_owner_and_super_admin_can_read(
        self, client: AsyncClient, db_session: AsyncSession, headers_for, ticket_file
    ):
        root = await UserFactory.create_super_admin(db_session)
        handle = ticket_file["handle"]

        own = await client.get(f"/api/files/download/{handle}", headers=headers_for(ticket_file["owner"]))
        platform = await client.get(
            "/api/files/list",
            params={"folder": f"tickets/{ticket_file['ticket'].id}"},
            headers=headers_for(root),
        )

        assert own.status_code == 200
        assert own.content == b"acme confidential"
        assert [f["path"] for f in platform.json()] == [handle]

    @pytest.mark.asyncio
    async def test_upload_into_ticket_folder_rejected(
        self, client: AsyncClient, headers_for, ticket_file
    ):
        """
        WHY: Attachments must have a row on their ticket; the ticket route
        creates it, the generic upload does not.
        """
        response = await upload(
            client,
            headers_for(ticket_file["owner"]),
            folder=f"tickets/{ticket_file['ticket'].id}",
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "validation"
