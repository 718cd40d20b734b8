from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import FileResponse

from app.models.site import DeleteResult, FileList, SiteList, UploadResult
from app.services.site_store import IncomingFile, SiteStore
from logger_config import setup_logger

logger = setup_logger()

router = APIRouter()


def get_site_store(request: Request) -> SiteStore:
    return request.app.state.site_store


def to_incoming_file(upload: UploadFile) -> IncomingFile:
    # Get content length from the spooled file
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return IncomingFile(
        filename=upload.filename,
        source=upload,
        size=size,
        content_type=upload.content_type,
    )


@router.post("/api/upload", response_model=UploadResult)
async def upload_site(
    subdomain: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    store: SiteStore = Depends(get_site_store),
):
    """Create a site, or merge files into an existing one."""
    # Browsers send an empty part when no file was chosen
    incoming = [to_incoming_file(f) for f in files or [] if f.filename]
    logger.info(f"Receiving upload request for subdomain: {subdomain} ({len(incoming)} files)")

    result = await store.create_or_update(subdomain, incoming)

    logger.info(f"Site {subdomain} updated with {len(result.files)} files")
    return result


@router.get("/api/files/{subdomain}", response_model=FileList)
async def list_site_files(subdomain: str, store: SiteStore = Depends(get_site_store)):
    return FileList(files=await store.list_files(subdomain))


@router.delete("/api/sites/{subdomain}", response_model=DeleteResult)
async def delete_site(subdomain: str, store: SiteStore = Depends(get_site_store)):
    logger.info(f"Receiving delete request for site: {subdomain}")
    await store.delete_site(subdomain)
    logger.info(f"Successfully deleted site: {subdomain}")
    return DeleteResult(message="Site deleted successfully")


@router.get("/api/sites", response_model=SiteList)
async def list_sites(store: SiteStore = Depends(get_site_store)):
    sites = await store.list_sites()
    return SiteList(total=len(sites), sites=sites)


@router.api_route("/sites/{subdomain}", methods=["GET", "HEAD"])
@router.api_route("/sites/{subdomain}/{file_path:path}", methods=["GET", "HEAD"])
async def serve_site_file(subdomain: str, file_path: str = "", store: SiteStore = Depends(get_site_store)):
    """Serve a file from a hosted site, with index.html as the SPA fallback."""
    resolved = await store.resolve_for_serving(subdomain, file_path)
    return FileResponse(resolved.path, media_type=resolved.media_type)
