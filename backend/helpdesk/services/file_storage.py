"""
Local file store for ticket attachments and general uploads.

WHAT: Validates, stores, reads, describes and deletes files under
UPLOAD_ROOT, returning relative POSIX handles such as
``tickets/12/screenshot_20260301_101500_a1b2c3d4.png``.

WHY: The store is an external collaborator from the ticket service's
point of view. Disk I/O runs in a worker thread and is bounded by the
collaborator timeout so a hung filesystem cannot stall a request.

HOW:
- Original names are transliterated to ASCII and stripped of separators
  and unsafe characters; the handle adds a timestamp and 8 random hex
  digits, so two uploads of the same name never collide.
- Every handle is resolved against the root and rejected if it escapes it.
"""

import asyncio
import logging
import mimetypes
import re
import secrets
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, List, Optional, TypeVar

from helpdesk.core.config import settings
from helpdesk.core.exceptions import (
    FileStorageError,
    ResourceNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_FOLDER = "uploads"

# Ticket attachments live under tickets/<ticket id>/
TICKET_FOLDER = "tickets"

# Letters NFKD does not decompose to ASCII
_TRANSLITERATION = str.maketrans({"ı": "i", "İ": "I", "ß": "ss", "ø": "o", "Ø": "O", "ł": "l", "Ł": "L"})
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]+")
_FOLDER_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass
class UploadedFile:
    """File received from a client."""

    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class StoredFileInfo:
    path: str
    file_name: str
    size: int
    content_type: str
    created_at: datetime
    modified_at: datetime


def clean_file_stem(filename: str) -> str:
    """
    ASCII-only, separator-free stem of ``filename``.

    Example:
        >>> clean_file_stem("../../Rapor Özeti (son).pdf")
        'Rapor_Ozeti_son'
    """
    name = PurePosixPath(filename.replace("\\", "/").replace("\x00", "")).name
    stem = name.rsplit(".", 1)[0] if "." in name.lstrip(".") else name.lstrip(".")
    stem = unicodedata.normalize("NFKD", stem.translate(_TRANSLITERATION))
    stem = stem.encode("ascii", "ignore").decode("ascii")
    stem = _UNSAFE_CHARS.sub("_", stem).strip("_")
    return stem[:100] or "file"


def file_extension(filename: str) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name
    suffix = PurePosixPath(name).suffix.lower()
    return suffix if re.fullmatch(r"\.[a-z0-9]{1,10}", suffix) else ""


def ticket_folder(ticket_id: int) -> str:
    return f"{TICKET_FOLDER}/{ticket_id}"


def validate_folder(folder: str) -> str:
    """
    Raises:
        ValidationError: If any path segment is empty, ``..`` or unsafe
    """
    segments = [segment for segment in folder.strip("/").split("/")]
    if not folder.strip("/") or not all(_FOLDER_SEGMENT.match(s) for s in segments):
        raise ValidationError(message="Invalid folder name", folder=folder)
    return "/".join(segments)


class FileStorageService:
    """
    Disk-backed file store.

    Example:
        >>> storage = FileStorageService(root=tmp_path)
        >>> handle = await storage.store(UploadedFile("a.txt", b"hi"), "uploads")
        >>> await storage.retrieve(handle)
        b'hi'
    """

    def __init__(
        self,
        root: Optional[Path] = None,
        max_bytes: Optional[int] = None,
        allowed_extensions: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
    ):
        self.root = Path(root or settings.UPLOAD_ROOT).resolve()
        self.max_bytes = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_SIZE_BYTES
        self.allowed_extensions = frozenset(
            ext.lower() for ext in (allowed_extensions or settings.ALLOWED_UPLOAD_EXTENSIONS)
        )
        self.timeout = timeout if timeout is not None else settings.COLLABORATOR_TIMEOUT_SECONDS

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_type(self, file: UploadedFile) -> bool:
        return file_extension(file.filename) in self.allowed_extensions

    def validate_size(self, file: UploadedFile, max_bytes: Optional[int] = None) -> bool:
        limit = self.max_bytes if max_bytes is None else max_bytes
        return 0 < file.size <= limit

    def check_upload(self, file: UploadedFile) -> None:
        """
        Raises:
            ValidationError: If the type or size is not accepted
        """
        if not self.validate_type(file):
            raise ValidationError(
                message="File type is not allowed",
                file_name=file.filename,
                allowed=sorted(self.allowed_extensions),
            )
        if not self.validate_size(file):
            raise ValidationError(
                message=f"File must be between 1 byte and {self.max_bytes // (1024 * 1024)}MB",
                file_name=file.filename,
                size=file.size,
            )

    # =========================================================================
    # Paths
    # =========================================================================

    def generate_handle(self, folder: str, filename: str, now: Optional[datetime] = None) -> str:
        stamp = (now or datetime.utcnow()).strftime("%Y%m%d_%H%M%S")
        name = f"{clean_file_stem(filename)}_{stamp}_{secrets.token_hex(4)}{file_extension(filename)}"
        return f"{validate_folder(folder)}/{name}"

    def resolve(self, handle: str) -> Path:
        """
        Absolute path of ``handle`` inside the root.

        Raises:
            ValidationError: If the handle points outside the root
        """
        path = (self.root / handle.replace("\\", "/").lstrip("/")).resolve()
        if path == self.root or not path.is_relative_to(self.root):
            raise ValidationError(message="Invalid file path", path=handle)
        return path

    def ticket_segment(self, handle: str) -> Optional[str]:
        """
        Second segment of a handle inside the ticket attachment tree.

        The handle is normalized first, so ``uploads/../tickets/3/a.txt``
        yields ``"3"``. Returns None for handles outside that tree and an
        empty string for the tree root itself.
        """
        parts = self.resolve(handle).relative_to(self.root).parts
        if parts[0] != TICKET_FOLDER:
            return None
        return parts[1] if len(parts) > 1 else ""

    async def _run(self, operation: str, func: Callable[..., T], *args) -> T:
        """Run blocking disk I/O in a thread, bounded by the timeout."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"File store {operation} timed out after {self.timeout}s")
            raise FileStorageError(message="File storage timed out", operation=operation)
        except OSError as e:
            logger.error(f"File store {operation} failed: {e}")
            raise FileStorageError(operation=operation)

    # =========================================================================
    # Operations
    # =========================================================================

    async def store(self, file: UploadedFile, folder: str = DEFAULT_FOLDER) -> str:
        """
        Validate and write ``file``.

        Returns:
            Relative handle of the stored file

        Raises:
            ValidationError: If type, size or folder is not accepted
            FileStorageError: If the write fails or times out
        """
        self.check_upload(file)
        handle = self.generate_handle(folder, file.filename)
        path = self.resolve(handle)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "xb") as fh:
                fh.write(file.content)

        await self._run("store", write)
        logger.info(f"Stored {file.size} bytes as {handle}")
        return handle

    async def retrieve(self, handle: str) -> bytes:
        """
        Raises:
            ResourceNotFoundError: If no file exists at ``handle``
        """
        path = self.resolve(handle)
        if not await self._run("stat", path.is_file):
            raise ResourceNotFoundError(message="File not found", path=handle)
        return await self._run("retrieve", path.read_bytes)

    async def delete(self, handle: str) -> bool:
        """Remove a file. Returns False if it did not exist."""
        path = self.resolve(handle)

        def remove() -> bool:
            if not path.is_file():
                return False
            path.unlink()
            return True

        deleted = await self._run("delete", remove)
        if deleted:
            logger.info(f"Deleted {handle}")
        return deleted

    def _describe(self, path: Path) -> StoredFileInfo:
        stat = path.stat()
        return StoredFileInfo(
            path=path.relative_to(self.root).as_posix(),
            file_name=path.name,
            size=stat.st_size,
            content_type=mimetypes.guess_type(path.name)[0] or "application/octet-stream",
            created_at=datetime.utcfromtimestamp(stat.st_ctime),
            modified_at=datetime.utcfromtimestamp(stat.st_mtime),
        )

    async def info(self, handle: str) -> StoredFileInfo:
        """
        Raises:
            ResourceNotFoundError: If no file exists at ``handle``
        """
        path = self.resolve(handle)
        if not await self._run("stat", path.is_file):
            raise ResourceNotFoundError(message="File not found", path=handle)
        return await self._run("info", self._describe, path)

    async def list(self, folder: str = DEFAULT_FOLDER) -> List[StoredFileInfo]:
        """Files directly inside ``folder``, newest first. Empty if the folder is missing."""
        directory = self.resolve(validate_folder(folder))

        def scan() -> List[StoredFileInfo]:
            if not directory.is_dir():
                return []
            files = [self._describe(p) for p in directory.iterdir() if p.is_file()]
            return sorted(files, key=lambda f: f.modified_at, reverse=True)

        return await self._run("list", scan)


_file_storage: Optional[FileStorageService] = None


def get_file_storage() -> FileStorageService:
    """FastAPI dependency returning the shared file store."""
    global _file_storage

    if _file_storage is None:
        _file_storage = FileStorageService()

    return _file_storage
