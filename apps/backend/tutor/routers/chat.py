from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException
from tutor.ai import orchestrator
from tutor.ai.gateway import GatewayClient
from tutor.dependencies import get_gateway
from tutor.schemas.messages import SpeakingPracticeRequest, SpeakingPracticeResponse

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/speaking-practice", response_model=SpeakingPracticeResponse)
async def speaking_practice(req: SpeakingPracticeRequest, gateway: GatewayClient = Depends(get_gateway)):
    if not req.message or not req.context or not req.context.book or not req.context.current_page:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: message, context.book, and context.currentPage are required",
        )

    result = await orchestrator.speaking_practice_reply(req.message, req.history, req.context, gateway)
    return SpeakingPracticeResponse(
        response=result.value,
        source=result.source.value,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
