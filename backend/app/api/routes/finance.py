"""
Finance Chat API Routes

Charting chat for subscribers. The client sends the whole conversation;
the reply carries the assistant text and, when the model chose to draw
one, chart data ready for rendering.
"""

import logging

from fastapi import APIRouter, Depends, Response

from app.api.dependencies import require_active_subscription
from app.domain.charts import FinanceChatRequest, FinanceChatResponse
from app.domain.subscription import Subscription
from app.infrastructure.ai.gemini_service import GeminiService, get_gemini_service


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/finance",
    response_model=FinanceChatResponse,
    response_model_by_alias=True,
)
async def finance_chat(
    body: FinanceChatRequest,
    response: Response,
    subscription: Subscription = Depends(require_active_subscription),
    gemini: GeminiService = Depends(get_gemini_service),
):
    """
    Answer a financial question, optionally with a chart.

    Raises:
        HTTPException 401/403: not signed in or no active subscription
        ValidationError (400): attachment could not be decoded
        RateLimitError (429): Gemini quota exhausted
        InvalidToolOutputError (502): model produced an unusable chart
    """
    logger.info(
        f"Finance chat for user {subscription.user_id}: "
        f"{len(body.messages)} messages, file={body.file_data is not None}"
    )

    result = await gemini.chat(
        messages=body.messages,
        file_data=body.file_data,
        model=body.model,
    )

    response.headers["Cache-Control"] = "no-cache"
    return result
