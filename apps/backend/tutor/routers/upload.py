import base64
import logging
import re
import time
import uuid
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from tutor.ai import orchestrator
from tutor.ai.gateway import GatewayClient, GatewayError
from tutor.dependencies import get_blob_store, get_gateway, get_repository, require_role
from tutor.db.repository import BookRepository
from tutor.schemas.books import FailedUpload, UploadedPage, UploadPagesResponse, User
from tutor.utils.storage import LocalBlobStore, page_image_path

router = APIRouter(prefix="/books", tags=["upload"])

_PAGE_NUMBER = re.compile(r"page-(\d+)\.", re.IGNORECASE)
MAX_PAGE_BYTES = 50 * 1024 * 1024


def page_number_for(filename: str, position: int) -> int:
    """Page number from a ``page-<n>.<ext>`` filename, else the 1-based upload position."""
    match = _PAGE_NUMBER.search(filename or "")
    return int(match.group(1)) if match else position


@router.post("/{book_id}/pages", response_model=UploadPagesResponse, status_code=201)
async def upload_pages(
    book_id: str,
    pages: List[UploadFile] = File(...),
    user: User = Depends(require_role("parent", "admin")),
    gateway: GatewayClient = Depends(get_gateway),
    repo: BookRepository = Depends(get_repository),
    blobs: LocalBlobStore = Depends(get_blob_store),
):
    book = await repo.get_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    if user.role != "admin" and book.uploaded_by != user.id:
        raise HTTPException(status_code=403, detail="Permission denied")
    if not pages:
        raise HTTPException(status_code=400, detail="No files uploaded")

    uploaded: List[UploadedPage] = []
    failed: List[FailedUpload] = []

    for position, file in enumerate(pages, start=1):
        filename = file.filename or f"page-{position}.png"
        content_type = file.content_type or ""
        if not content_type.startswith("image/"):
            failed.append(FailedUpload(filename=filename, error="Invalid file type. Only images are allowed."))
            continue

        page_number = page_number_for(filename, position)
        if await repo.find_page_by_number(book_id, page_number):
            failed.append(FailedUpload(filename=filename, error=f"Page {page_number} already exists"))
            continue

        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "png"
        blob_path = page_image_path(book_id, f"{int(time.time() * 1000)}-{page_number}-{uuid.uuid4().hex[:8]}.{ext}")
        data = await file.read(MAX_PAGE_BYTES + 1)
        if len(data) > MAX_PAGE_BYTES:
            failed.append(FailedUpload(filename=filename, error=f"File too large. Maximum size is {MAX_PAGE_BYTES // (1024 * 1024)}MB."))
            continue
        try:
            image_url = await blobs.put(blob_path, data, content_type)
        except OSError as e:
            failed.append(FailedUpload(filename=filename, error=str(e)))
            continue

        # description is optional at upload time; batch analysis can fill it later
        description = None
        data_url = f"data:{content_type};base64,{base64.b64encode(data).decode('utf-8')}"
        try:
            analysis = await orchestrator.analyze_image(
                data_url,
                gateway,
                context=f"Page {page_number} from children's book",
                policy=orchestrator.ErrorPolicy.FAIL_ON_ERROR,
            )
            description = analysis.value.description
        except GatewayError as e:
            logging.info(f"AI image analysis failed during upload of {filename}, continuing without description: {e}")

        try:
            page = await repo.create_page(book_id, page_number, image_url, description)
        except Exception as e:
            logging.error(f"Failed to create page {page_number} for book {book_id}: {e}", exc_info=True)
            await blobs.remove([blob_path])
            failed.append(FailedUpload(filename=filename, error="Database error"))
            continue

        uploaded.append(UploadedPage(
            id=page.id,
            page_number=page.page_number,
            image_url=image_url,
            filename=filename,
            has_description=bool(description),
        ))

    return UploadPagesResponse(
        message=f"Uploaded {len(uploaded)} pages successfully",
        uploaded_pages=uploaded,
        failed_uploads=failed,
        total_files=len(pages),
    )
