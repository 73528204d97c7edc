from __future__ import annotations
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from tutor.ai import orchestrator
from tutor.ai.batch import run_batch
from tutor.ai.gateway import GatewayClient, GatewayError, GatewayTimeout, GatewayUnconfigured
from tutor.dependencies import get_current_user, get_gateway, get_repository, require_admin
from tutor.db.repository import BookRepository
from tutor.schemas.books import BookDetail, BookList, User
from tutor.schemas.evaluation import EvaluationRequest
from tutor.schemas.messages import DiscussBookRequest, DiscussBookResponse
from tutor.schemas.images import (
    AnalyzeImageRequest,
    AnalyzeImageResponse,
    BatchAnalyzeRequest,
    BatchAnalyzeResponse,
    RegenerateDescriptionResponse,
)
from tutor.schemas.vocabulary import ExtractVocabularyRequest, ExtractVocabularyResponse, VocabularyItem
from tutor.utils.side_effects import best_effort

router = APIRouter(prefix="/books", tags=["books"])


@router.get("", response_model=BookList)
async def list_books(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=100),
    difficulty: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    repo: BookRepository = Depends(get_repository),
):
    books, total = await repo.list_books(
        difficulty=difficulty,
        category=category,
        search=search,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return BookList(books=books, total=total, page=page, limit=limit)


@router.post("/evaluate-pronunciation")
async def evaluate_pronunciation(
    req: EvaluationRequest,
    user: User = Depends(get_current_user),
    gateway: GatewayClient = Depends(get_gateway),
):
    if not req.transcript or not req.target_text:
        raise HTTPException(status_code=400, detail="Transcript and target text are required")

    result = await orchestrator.evaluate_pronunciation(
        req.transcript,
        req.target_text,
        gateway,
        confidence=req.confidence,
    )
    return {**result.value.model_dump(), "source": result.source.value}


async def _store_word(repo: BookRepository, item: VocabularyItem, user_id: str, stored: list[str]) -> None:
    if await repo.find_vocabulary_word(item.word):
        return
    await repo.insert_vocabulary_word(item, created_by=user_id)
    stored.append(item.word)


@router.post("/extract-vocabulary", response_model=ExtractVocabularyResponse)
async def extract_vocabulary(
    req: ExtractVocabularyRequest,
    user: User = Depends(get_current_user),
    gateway: GatewayClient = Depends(get_gateway),
    repo: BookRepository = Depends(get_repository),
):
    if not req.description:
        raise HTTPException(status_code=400, detail="Description is required")

    result = await orchestrator.extract_vocabulary(
        req.description,
        gateway,
        difficulty_level=req.difficulty_level,
        max_words=req.max_words,
    )

    # words already in the store are left as they are
    stored: list[str] = []
    for item in result.value:
        await best_effort(
            f"store vocabulary word '{item.word}'",
            lambda item=item: _store_word(repo, item, user.id, stored),
        )

    return ExtractVocabularyResponse(
        message=f"Extracted {len(result.value)} vocabulary words",
        vocabulary=result.value,
        stored_count=len(stored),
        source=result.source.value,
    )


@router.post("/analyze-image", response_model=AnalyzeImageResponse)
async def analyze_image(
    req: AnalyzeImageRequest,
    user: User = Depends(get_current_user),
    gateway: GatewayClient = Depends(get_gateway),
    repo: BookRepository = Depends(get_repository),
):
    if not req.image_url:
        raise HTTPException(status_code=400, detail="Image URL is required")

    result = await orchestrator.analyze_image(
        req.image_url,
        gateway,
        context=req.context,
        page_id=req.page_id,
        pages=repo,
    )
    saved = bool(req.page_id) and all(s.succeeded for s in result.side_effects)
    return AnalyzeImageResponse(
        description=result.value.description,
        vocabulary=result.value.vocabulary,
        updated_page=saved,
        source=result.source.value,
    )


@router.post("/discuss", response_model=DiscussBookResponse)
async def discuss_book(
    req: DiscussBookRequest,
    user: User = Depends(get_current_user),
    gateway: GatewayClient = Depends(get_gateway),
    repo: BookRepository = Depends(get_repository),
):
    if not req.book_id or not req.message:
        raise HTTPException(status_code=400, detail="Book ID and message are required")

    book = await repo.get_book(req.book_id)
    if not book or not book.is_public:
        raise HTTPException(status_code=404, detail="Book not found")
    page = await repo.find_page_by_number(book.id, req.page_number) if req.page_number else None

    result = await orchestrator.discuss_book(req.message, req.conversation_history, book, gateway, page=page)
    await best_effort(
        f"save discussion for book {book.id}",
        lambda: repo.save_discussion(user.id, book.id, req.page_number, req.message, result.value),
    )
    return DiscussBookResponse(
        message="Discussion response generated",
        response=result.value,
        book_title=book.title,
        page_number=req.page_number,
        source=result.source.value,
    )


@router.get("/{book_id}", response_model=BookDetail)
async def get_book(book_id: str, repo: BookRepository = Depends(get_repository)):
    book = await repo.get_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    pages = await repo.list_pages(book_id)
    return BookDetail(**book.model_dump(), pages=pages)


@router.post("/{book_id}/analyze-images", response_model=BatchAnalyzeResponse)
async def analyze_book_images(
    book_id: str,
    req: Optional[BatchAnalyzeRequest] = None,
    admin: User = Depends(require_admin),
    gateway: GatewayClient = Depends(get_gateway),
    repo: BookRepository = Depends(get_repository),
):
    if not await repo.get_book(book_id):
        raise HTTPException(status_code=404, detail="Book not found")

    report = await run_batch(
        book_id,
        gateway,
        repo,
        force_reanalyze=req.force_reanalyze if req else False,
        delay_s=gateway.config.batch_delay_s,
    )
    return BatchAnalyzeResponse(message="Batch image analysis completed", summary=report)


@router.post("/{book_id}/pages/{page_id}/regenerate-description", response_model=RegenerateDescriptionResponse)
async def regenerate_description(
    book_id: str,
    page_id: str,
    user: User = Depends(get_current_user),
    gateway: GatewayClient = Depends(get_gateway),
    repo: BookRepository = Depends(get_repository),
):
    logging.info(f"Regenerating description for page {page_id}")
    page = await repo.get_page(page_id)
    if not page or page.book_id != book_id:
        raise HTTPException(status_code=404, detail="Book page not found")
    if not page.image_url:
        raise HTTPException(status_code=400, detail="Book page has no image")

    try:
        result = await orchestrator.analyze_image(
            page.image_url,
            gateway,
            context=f"Page {page.page_number} from children's book",
            policy=orchestrator.ErrorPolicy.FAIL_ON_ERROR,
        )
    except GatewayTimeout as e:
        raise HTTPException(status_code=408, detail=f"Image analysis timed out: {e}")
    except GatewayUnconfigured:
        raise HTTPException(status_code=503, detail="AI image analysis is not configured")
    except GatewayError as e:
        logging.error(f"AI image analysis failed for page {page_id}: {e}")
        raise HTTPException(status_code=503, detail="Failed to analyze image")

    description = result.value.description
    try:
        await repo.update_page_description(page.id, description)
    except Exception as e:
        logging.error(f"Failed to update page {page_id} with new description: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to save new description")

    return RegenerateDescriptionResponse(message="Description regenerated successfully", description=description)
