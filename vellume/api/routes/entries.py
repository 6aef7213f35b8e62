import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, model_validator

from vellume.api.dependencies import get_entry_service
from vellume.core.errors import ApiError
from vellume.core.middleware import get_current_user
from vellume.services.entry_service import EntryService

logger = logging.getLogger(__name__)

# Mounted under both /api/entries and /api/journals
router = APIRouter()


class EntryCreate(BaseModel):
    content: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_entry_text(cls, data: Any) -> Any:
        """Older clients send the text as entry_text."""
        if isinstance(data, dict) and not data.get("content") and data.get("entry_text"):
            data = {**data, "content": data["entry_text"]}
        return data


@router.get("")
async def list_entries(
    current_user: dict = Depends(get_current_user),
    entry_service: EntryService = Depends(get_entry_service),
):
    entries = entry_service.list_entries(current_user['uid'])
    return {"entries": [entry.to_dict() for entry in entries]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_entry(
    request: EntryCreate,
    current_user: dict = Depends(get_current_user),
    entry_service: EntryService = Depends(get_entry_service),
):
    """Create a journal entry. `id` is repeated at the top level for older clients."""
    if not request.content:
        raise ApiError("MISSING_CONTENT", "Content is required", 400)

    entry = entry_service.create_entry(current_user['uid'], request.content)
    return {"id": entry.id, "entry": entry.to_dict()}


@router.get("/{entry_id}")
async def get_entry(
    entry_id: str,
    current_user: dict = Depends(get_current_user),
    entry_service: EntryService = Depends(get_entry_service),
):
    entry = entry_service.get_entry(current_user['uid'], entry_id)
    return {"entry": entry.to_dict()}
