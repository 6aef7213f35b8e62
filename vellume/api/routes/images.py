import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import BaseModel

from vellume.api.dependencies import (get_entitlement_service, get_entry_service,
                                      get_generation_orchestrator, get_usage_ledger)
from vellume.core.config import settings
from vellume.core.errors import ApiError
from vellume.core.middleware import get_current_user
from vellume.core.quota_lock import QuotaLock, get_quota_lock
from vellume.models.usage_event import UsageAction
from vellume.services.entitlement_service import EntitlementDecision, EntitlementService, Feature
from vellume.services.entry_service import EntryService
from vellume.services.generation_service import GenerationFailedError, GenerationOrchestrator
from vellume.services.image_storage import ImageStorage, get_image_storage
from vellume.services.usage_ledger import UsageLedger

router = APIRouter()
logger = logging.getLogger(__name__)


class CloudGenerationRequest(BaseModel):
    entry_text: Optional[str] = None
    journal_id: Optional[str] = None
    style: Optional[str] = "default"


def _raise_if_denied(decision: EntitlementDecision):
    if not decision.allowed:
        raise ApiError(decision.reason.value, decision.message, status.HTTP_403_FORBIDDEN)


def _file_extension(filename: Optional[str]) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].lower()
        if ext.isalnum():
            return ext
    return "png"


@router.post("/upload")
async def upload_image(
    image: Optional[UploadFile] = File(None),
    entry_id: Optional[str] = Form(None),
    current_user: dict = Depends(get_current_user),
    entitlements: EntitlementService = Depends(get_entitlement_service),
    ledger: UsageLedger = Depends(get_usage_ledger),
    entry_service: EntryService = Depends(get_entry_service),
    storage: ImageStorage = Depends(get_image_storage),
    quota_lock: QuotaLock = Depends(get_quota_lock),
):
    """
    Store an image rendered on-device and attach it to an entry.
    Counts toward the free weekly image limit.
    """
    user_id = current_user['uid']
    logger.info(f"upload_image: Entry - user: {user_id}, entry: {entry_id}")

    async with quota_lock.hold(user_id):
        _raise_if_denied(entitlements.check(user_id, Feature.UPLOAD))

        if image is None:
            raise ApiError("MISSING_IMAGE", "Image file is required", 400)

        data = await image.read(settings.max_upload_bytes + 1)
        if len(data) > settings.max_upload_bytes:
            raise ApiError("INVALID_BODY", f"Image exceeds the {settings.max_upload_bytes} byte upload limit", 400)

        key = f"{user_id}/{uuid.uuid4()}.{_file_extension(image.filename)}"
        image_url = storage.put(key, data, image.content_type or "image/png")

        entry_service.attach_image(user_id, entry_id, image_url)
        ledger.record_usage(user_id, UsageAction.IMAGE_GENERATED.value)

    logger.info(f"upload_image: Success - user: {user_id}, url: {image_url}")
    return {"image_url": image_url}


@router.post("/generate-cloud")
async def generate_cloud_image(
    request: CloudGenerationRequest,
    current_user: dict = Depends(get_current_user),
    entitlements: EntitlementService = Depends(get_entitlement_service),
    ledger: UsageLedger = Depends(get_usage_ledger),
    entry_service: EntryService = Depends(get_entry_service),
    storage: ImageStorage = Depends(get_image_storage),
    orchestrator: GenerationOrchestrator = Depends(get_generation_orchestrator),
    quota_lock: QuotaLock = Depends(get_quota_lock),
):
    """
    Generate a pixel-art image from entry text with the cloud model.
    Premium only. Returns 503 AI_GENERATION_FAILED when the model keeps failing;
    in that case nothing is stored and no usage is recorded.
    """
    user_id = current_user['uid']
    logger.info(f"generate_cloud_image: Entry - user: {user_id}, journal: {request.journal_id}, style: {request.style}")

    async with quota_lock.hold(user_id):
        _raise_if_denied(entitlements.check(user_id, Feature.CLOUD_GENERATION))

        if not request.entry_text:
            raise ApiError("MISSING_TEXT", "Entry text is required", 400)
        if not request.journal_id:
            raise ApiError("MISSING_JOURNAL_ID", "Journal ID is required", 400)

        key = f"{user_id}/{request.journal_id}-cloud.png"
        try:
            ImageStorage.validate_key(key)
        except ValueError:
            raise ApiError("INVALID_BODY", "Invalid journal ID", 400)

        try:
            result = await orchestrator.generate(request.entry_text, request.style)
        except GenerationFailedError:
            raise ApiError(
                "AI_GENERATION_FAILED",
                "AI generation temporarily unavailable, please try again",
                status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        image_url = storage.put(key, result.image, "image/png")
        entry_service.attach_image(user_id, request.journal_id, image_url)
        ledger.record_usage(user_id, UsageAction.CLOUD_IMAGE_GENERATED.value)

    logger.info(f"generate_cloud_image: Success - user: {user_id}, {result.generation_time_ms}ms")
    return {
        "image_url": image_url,
        "generation_time_ms": result.generation_time_ms,
    }
