"""
Provider webhook endpoints.

Video providers call back here when an asynchronous clip finishes. The
raw body is authenticated before it is parsed; redelivered callbacks are
acknowledged without being applied twice.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from clipforge.core.database import get_db
from clipforge.core.dependencies import TaskDispatch
from clipforge.core.exceptions import NotFoundError, ValidationError
from clipforge.core.security import SIGNATURE_HEADER, verify_webhook_signature
from clipforge.providers.video import WEBHOOK_PARSERS
from clipforge.schemas.common import ApiResponse
from clipforge.schemas.job import WebhookAck
from clipforge.services.reconciler import ClipReconciler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/video/{provider}",
    response_model=ApiResponse[WebhookAck],
    status_code=status.HTTP_200_OK,
    summary="Video Provider Callback",
)
async def video_provider_webhook(
    provider: str,
    request: Request,
    dispatcher: TaskDispatch,
    db: Session = Depends(get_db),
) -> ApiResponse[WebhookAck]:
    """
    Reconcile a clip from a provider callback.

    Raises:
        AuthenticationError: Missing or invalid signature
        NotFoundError: Provider has no webhook support
        ValidationError: Body is not a JSON object or lacks a job id
    """
    body = await request.body()
    verify_webhook_signature(body, request.headers.get(SIGNATURE_HEADER))

    parser = WEBHOOK_PARSERS.get(provider)
    if parser is None:
        raise NotFoundError(resource_type="WebhookProvider", resource_id=provider)

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise ValidationError(message="Webhook body is not valid JSON", details={"error": str(e)}) from e
    if not isinstance(payload, dict):
        raise ValidationError(message="Webhook body must be a JSON object")

    clip_status = parser(payload)
    if not clip_status.provider_job_id:
        raise ValidationError(message="Webhook payload has no generation id", field="id")

    logger.info(
        "Received clip callback",
        extra={
            "provider": provider,
            "provider_job_id": clip_status.provider_job_id,
            "state": clip_status.state.value,
        },
    )

    result = ClipReconciler(db, resume_pipeline=dispatcher.start_pipeline).reconcile(
        clip_status.provider_job_id,
        clip_status,
        provider=provider,
    )

    return ApiResponse(
        data=WebhookAck(
            provider=provider,
            provider_job_id=result.provider_job_id,
            outcome=result.outcome,
            resumed=result.resumed,
        )
    )
