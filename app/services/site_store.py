import asyncio
import os
import re
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

import aiofiles
import aiofiles.os

import config
from app.models.site import SiteSummary, StoredFile, UploadedFile, UploadResult
from app.services.errors import (
    DisallowedFileType,
    FileNotFound,
    InvalidSubdomainFormat,
    MissingIndexFile,
    MissingSubdomain,
    NoFilesProvided,
    OversizeRequest,
    PathOutsideSite,
    SiteNotFound,
    StorageFailure,
)
from logger_config import setup_logger

logger = setup_logger()

SUBDOMAIN_PATTERN = re.compile(r'^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$')
UNSAFE_FILENAME_CHARS = re.compile(r'[^a-zA-Z0-9.\-_]')
INDEX_FILE = "index.html"

CONTENT_TYPES = {
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".json": "application/json",
    ".txt": "text/plain",
    ".webp": "image/webp",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class AsyncReader(Protocol):
    """Anything with an awaitable read(size), such as fastapi's UploadFile."""

    async def read(self, size: int = -1) -> bytes:
        ...


@dataclass
class IncomingFile:
    """A file received for upload, not yet written to disk."""
    filename: str
    source: AsyncReader
    size: int
    content_type: Optional[str] = None


@dataclass
class ResolvedFile:
    path: Path
    media_type: str


def is_valid_subdomain(subdomain: Optional[str]) -> bool:
    return bool(subdomain) and SUBDOMAIN_PATTERN.fullmatch(subdomain) is not None


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [A-Za-z0-9.-_] with an underscore."""
    return UNSAFE_FILENAME_CHARS.sub("_", filename)


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)


class SiteStore:
    """Owns the on-disk tree of hosted sites: one directory per subdomain."""

    def __init__(self, root_dir: Path, temp_dir: Path, hosting_domain: str = config.HOSTING_DOMAIN):
        self.root_dir = root_dir
        self.temp_dir = temp_dir
        self.hosting_domain = hosting_domain

    async def initialize(self):
        """Create the storage directories and clear leftovers of interrupted uploads."""
        logger.info("Initializing site store...")

        self.root_dir.mkdir(exist_ok=True, parents=True)
        self.temp_dir.mkdir(exist_ok=True, parents=True)
        logger.debug(f"Storage directories created/verified: {self.root_dir}, {self.temp_dir}")

        files_removed = 0
        for file in self.temp_dir.glob("*"):
            if file.is_file():
                await aiofiles.os.unlink(file)
                files_removed += 1
        logger.info(f"Cleaned temporary directory, removed {files_removed} files")

        site_count = sum(1 for entry in self.root_dir.iterdir() if entry.is_dir())
        logger.info(f"Hosting {site_count} sites from {self.root_dir}")

    def site_dir(self, subdomain: str) -> Path:
        return self.root_dir / subdomain

    def site_url(self, subdomain: str) -> str:
        return f"https://{subdomain}.{self.hosting_domain}"

    async def _existing_site_dir(self, subdomain: str) -> Path:
        # A name outside the grammar can never have been uploaded, so it is
        # reported as missing rather than joined onto the root.
        if not is_valid_subdomain(subdomain):
            raise SiteNotFound("Site not found")
        site_dir = self.site_dir(subdomain)
        if not await aiofiles.os.path.isdir(site_dir):
            raise SiteNotFound("Site not found")
        return site_dir

    def _validate_upload(self, subdomain: Optional[str], files: Sequence[IncomingFile]):
        """Check the whole batch before anything touches the disk."""
        if not subdomain:
            raise MissingSubdomain("Subdomain is required")
        if not is_valid_subdomain(subdomain):
            raise InvalidSubdomainFormat(
                "Invalid subdomain. Use 1-63 characters, letters, numbers, hyphens. "
                "Must start and end with letter/number."
            )

        if not files:
            raise NoFilesProvided("No files uploaded")
        if len(files) > config.MAX_FILES:
            raise OversizeRequest(f"Too many files. Maximum is {config.MAX_FILES}")

        for incoming in files:
            extension = os.path.splitext(incoming.filename)[1].lower()
            if extension not in config.ALLOWED_EXTENSIONS:
                raise DisallowedFileType(f"File type {extension or incoming.filename} not allowed")
            if incoming.size > config.MAX_FILE_SIZE:
                raise OversizeRequest(
                    f"File {incoming.filename} exceeds maximum allowed size ({config.MAX_FILE_SIZE} bytes)"
                )

        index_count = sum(1 for incoming in files if incoming.filename.lower() == INDEX_FILE)
        if index_count == 0:
            raise MissingIndexFile("You must include an index.html file")
        if index_count > 1:
            raise MissingIndexFile("You must include exactly one index.html file")

    @staticmethod
    def _stored_name(filename: str) -> str:
        # The index page is always stored under its canonical name so the
        # site root resolves on case-sensitive filesystems.
        if filename.lower() == INDEX_FILE:
            return INDEX_FILE
        return sanitize_filename(filename)

    async def _write_file(self, target: Path, source: AsyncReader) -> int:
        """Stream source into target through a temp file; returns bytes written."""
        temp_path = self.temp_dir / f"{uuid.uuid4().hex}.upload"
        try:
            size = 0
            async with aiofiles.open(temp_path, 'wb') as f:
                while chunk := await source.read(config.CHUNK_SIZE):
                    size += len(chunk)
                    await f.write(chunk)
            await aiofiles.os.replace(temp_path, target)
            return size
        except OSError:
            if await aiofiles.os.path.exists(temp_path):
                await aiofiles.os.unlink(temp_path)
            raise

    async def create_or_update(self, subdomain: Optional[str], files: Sequence[IncomingFile]) -> UploadResult:
        """Validate an upload and merge its files into the site directory."""
        self._validate_upload(subdomain, files)
        logger.debug(f"Upload validation passed for {subdomain}: {len(files)} files")

        site_dir = self.site_dir(subdomain)
        uploaded: List[UploadedFile] = []
        try:
            await aiofiles.os.makedirs(site_dir, exist_ok=True)
            await aiofiles.os.makedirs(self.temp_dir, exist_ok=True)
            for incoming in files:
                stored_name = self._stored_name(incoming.filename)
                size = await self._write_file(site_dir / stored_name, incoming.source)
                logger.debug(f"Stored {incoming.filename} as {site_dir / stored_name} ({size} bytes)")
                uploaded.append(UploadedFile(
                    name=incoming.filename,
                    size=size,
                    path=f"/sites/{subdomain}/{stored_name}",
                ))
        except OSError as e:
            logger.error(f"Error storing files for {subdomain}: {str(e)}", exc_info=True)
            raise StorageFailure("Error storing files") from e

        return UploadResult(subdomain=subdomain, url=self.site_url(subdomain), files=uploaded)

    async def list_files(self, subdomain: str) -> List[StoredFile]:
        site_dir = await self._existing_site_dir(subdomain)
        try:
            files = []
            for name in await aiofiles.os.listdir(site_dir):
                stat = await aiofiles.os.stat(site_dir / name)
                files.append(StoredFile(
                    name=name,
                    size=stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                ))
            return files
        except OSError as e:
            logger.error(f"Error listing files for {subdomain}: {str(e)}", exc_info=True)
            raise StorageFailure("Error listing files") from e

    async def delete_site(self, subdomain: str):
        """Recursively remove a site. Not transactional: a failure midway leaves what remains."""
        site_dir = await self._existing_site_dir(subdomain)
        try:
            await asyncio.to_thread(shutil.rmtree, site_dir)
        except OSError as e:
            logger.error(f"Error deleting site {subdomain}: {str(e)}", exc_info=True)
            raise StorageFailure("Error deleting site") from e

    async def list_sites(self) -> List[SiteSummary]:
        if not await aiofiles.os.path.isdir(self.root_dir):
            return []
        try:
            sites = []
            for entry in await aiofiles.os.listdir(self.root_dir):
                site_dir = self.root_dir / entry
                if not await aiofiles.os.path.isdir(site_dir):
                    continue
                names = await aiofiles.os.listdir(site_dir)
                sites.append(SiteSummary(
                    name=entry,
                    url=self.site_url(entry),
                    file_count=len(names),
                    files=names,
                ))
            return sites
        except OSError as e:
            logger.error(f"Error listing sites: {str(e)}", exc_info=True)
            raise StorageFailure("Error listing sites") from e

    async def resolve_for_serving(self, subdomain: str, request_path: str) -> ResolvedFile:
        """Map a request path to a file in the site, falling back to index.html."""
        site_dir = await self._existing_site_dir(subdomain)
        site_root = site_dir.resolve()

        relative = request_path.lstrip("/") or INDEX_FILE
        file_path = Path(os.path.normpath(site_root / relative))
        if not file_path.is_relative_to(site_root):
            logger.warning(f"Rejected path outside site {subdomain}: {request_path}")
            raise PathOutsideSite("Access denied")

        if await aiofiles.os.path.isfile(file_path):
            return ResolvedFile(path=file_path, media_type=content_type_for(file_path))

        # SPA fallback
        index_path = site_root / INDEX_FILE
        if await aiofiles.os.path.isfile(index_path):
            logger.debug(f"{subdomain}: {request_path} not found, serving {INDEX_FILE}")
            return ResolvedFile(path=index_path, media_type=content_type_for(index_path))
        raise FileNotFound("File not found")
