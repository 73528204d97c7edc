from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, List

from tutor.ai.gateway import GatewayClient, GatewayError
from tutor.ai.orchestrator import ErrorPolicy, analyze_image
from tutor.db.repository import PageStore
from tutor.schemas.images import BatchItemOutcome, BatchReport, BatchStatus


async def run_batch(
    book_id: str,
    gateway: GatewayClient,
    pages: PageStore,
    force_reanalyze: bool = False,
    delay_s: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> BatchReport:
    """Describe every page of a book that has no description yet.

    Pages are handled one at a time in page-number order with ``delay_s``
    between AI calls. A provider failure marks only that page as failed; the
    heuristic is never substituted here.
    """
    items = sorted(await pages.list_pages(book_id), key=lambda p: p.page_number)
    details: List[BatchItemOutcome] = []
    ai_calls = 0

    for page in items:
        if page.image_description and page.image_description.strip() and not force_reanalyze:
            details.append(BatchItemOutcome(item_id=page.id, ordinal=page.page_number, status=BatchStatus.SKIPPED))
            continue

        if not page.image_url:
            details.append(BatchItemOutcome(
                item_id=page.id,
                ordinal=page.page_number,
                status=BatchStatus.FAILED,
                error_message="Page has no image",
            ))
            continue

        if ai_calls and delay_s > 0 and gateway.available:
            await sleep(delay_s)
        ai_calls += 1

        try:
            result = await analyze_image(
                page.image_url,
                gateway,
                context=f"Page {page.page_number} from children's book",
                page_id=page.id,
                pages=pages,
                policy=ErrorPolicy.FAIL_ON_ERROR,
                profile=gateway.config.batch_vision,
            )
        except GatewayError as e:
            logging.error(f"Error analyzing page {page.page_number} of book {book_id}: {e}")
            details.append(BatchItemOutcome(
                item_id=page.id,
                ordinal=page.page_number,
                status=BatchStatus.FAILED,
                error_message=str(e),
            ))
            continue

        unsaved = [s for s in result.side_effects if not s.succeeded]
        details.append(BatchItemOutcome(
            item_id=page.id,
            ordinal=page.page_number,
            status=BatchStatus.ANALYZED,
            description=result.value.description,
            error_message=f"Description not saved: {unsaved[0].error}" if unsaved else None,
        ))

    report = BatchReport(
        total_items=len(items),
        analyzed=sum(1 for d in details if d.status is BatchStatus.ANALYZED),
        skipped=sum(1 for d in details if d.status is BatchStatus.SKIPPED),
        failed=sum(1 for d in details if d.status is BatchStatus.FAILED),
        details=details,
    )
    logging.info(
        f"Batch analysis for book {book_id}: {report.analyzed} analyzed, "
        f"{report.skipped} skipped, {report.failed} failed"
    )
    return report
