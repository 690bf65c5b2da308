"""
Tests for the local file store.

WHY: Uploaded names come straight from clients. The store must never write
outside its root, never overwrite another upload, and must turn hostile or
exotic names into safe ASCII handles.
"""

import asyncio
import pytest
from datetime import datetime

from helpdesk.core.exceptions import FileStorageError, ResourceNotFoundError, ValidationError
from helpdesk.services.file_storage import (
    FileStorageService,
    UploadedFile,
    clean_file_stem,
    file_extension,
    validate_folder,
)


@pytest.fixture
def storage(tmp_path) -> FileStorageService:
    return FileStorageService(root=tmp_path, max_bytes=1024)


class TestNames:
    @pytest.mark.parametrize(
        "filename, stem",
        [
            ("report.pdf", "report"),
            ("../../etc/passwd", "passwd"),
            ("C:\\Users\\me\\notes.txt", "notes"),
            ("Rapor Özeti (son).pdf", "Rapor_Ozeti_son"),
            ("Straße.docx", "Strasse"),
            (".hidden", "hidden"),
            ("日本語.png", "file"),
        ],
    )
    def test_clean_file_stem(self, filename, stem):
        assert clean_file_stem(filename) == stem

    def test_extension_lowercased(self):
        assert file_extension("Scan.PDF") == ".pdf"

    def test_no_extension(self):
        assert file_extension("README") == ""

    @pytest.mark.parametrize("folder", ["../x", "a//b", "", "a/../b", "a b"])
    def test_invalid_folders(self, folder):
        with pytest.raises(ValidationError):
            validate_folder(folder)

    def test_nested_folder(self):
        assert validate_folder("/tickets/12/") == "tickets/12"

    def test_handle_format(self, storage):
        handle = storage.generate_handle("tickets/3", "My File.PNG", now=datetime(2026, 3, 1, 10, 15, 0))

        assert handle.startswith("tickets/3/My_File_20260301_101500_")
        assert handle.endswith(".png")

    @pytest.mark.parametrize(
        "handle, segment",
        [
            ("tickets/12/a.txt", "12"),
            ("/tickets/12", "12"),
            ("uploads/../tickets/7/a.txt", "7"),
            ("tickets", ""),
            ("uploads/a.txt", None),
            ("ticketsx/1/a.txt", None),
        ],
    )
    def test_ticket_segment(self, storage, handle, segment):
        assert storage.ticket_segment(handle) == segment


class TestValidation:
    def test_type_not_allowed(self, storage):
        with pytest.raises(ValidationError):
            storage.check_upload(UploadedFile("tool.exe", b"MZ"))

    def test_empty_file_rejected(self, storage):
        with pytest.raises(ValidationError):
            storage.check_upload(UploadedFile("empty.txt", b""))

    def test_too_large_rejected(self, storage):
        with pytest.raises(ValidationError):
            storage.check_upload(UploadedFile("big.txt", b"x" * 1025))

    def test_at_limit_accepted(self, storage):
        storage.check_upload(UploadedFile("ok.txt", b"x" * 1024))


class TestOperations:
    @pytest.mark.asyncio
    async def test_store_and_retrieve(self, storage):
        handle = await storage.store(UploadedFile("notes.txt", b"hello"), "uploads")

        assert await storage.retrieve(handle) == b"hello"

    @pytest.mark.asyncio
    async def test_same_name_never_collides(self, storage):
        first = await storage.store(UploadedFile("a.txt", b"1"))
        second = await storage.store(UploadedFile("a.txt", b"2"))

        assert first != second
        assert await storage.retrieve(first) == b"1"

    @pytest.mark.asyncio
    async def test_info(self, storage):
        handle = await storage.store(UploadedFile("data.csv", b"a,b\n"))

        info = await storage.info(handle)

        assert info.path == handle
        assert info.size == 4
        assert info.content_type == "text/csv"

    @pytest.mark.asyncio
    async def test_list_newest_first(self, storage):
        await storage.store(UploadedFile("one.txt", b"1"), "docs")
        await storage.store(UploadedFile("two.txt", b"2"), "docs")

        files = await storage.list("docs")

        assert len(files) == 2
        assert files[0].modified_at >= files[1].modified_at

    @pytest.mark.asyncio
    async def test_list_missing_folder_is_empty(self, storage):
        assert await storage.list("nothing_here") == []

    @pytest.mark.asyncio
    async def test_delete(self, storage):
        handle = await storage.store(UploadedFile("gone.txt", b"x"))

        assert await storage.delete(handle) is True
        assert await storage.delete(handle) is False
        with pytest.raises(ResourceNotFoundError):
            await storage.retrieve(handle)

    @pytest.mark.parametrize("handle", ["../outside.txt", "uploads/../../outside.txt", "/"])
    @pytest.mark.asyncio
    async def test_path_escape_rejected(self, storage, handle):
        with pytest.raises(ValidationError):
            await storage.retrieve(handle)

    @pytest.mark.asyncio
    async def test_timeout_becomes_storage_error(self, storage, monkeypatch):
        """
        WHY: A hung disk must surface as 503 instead of a stuck request.
        """
        storage.timeout = 0.01

        async def never(func, *args):
            await asyncio.sleep(1)

        monkeypatch.setattr(asyncio, "to_thread", never)

        with pytest.raises(FileStorageError):
            await storage.store(UploadedFile("slow.txt", b"x"))

    @pytest.mark.asyncio
    async def test_os_error_becomes_storage_error(self, storage, monkeypatch):
        async def broken(func, *args):
            raise PermissionError("read-only file system")

        monkeypatch.setattr(asyncio, "to_thread", broken)

        with pytest.raises(FileStorageError):
            await storage.store(UploadedFile("ro.txt", b"x"))
