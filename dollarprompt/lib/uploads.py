"""
Public prompt upload.
Anyone can share a prompt with an optional monetization link.

Order matters:
1. Validate locally - nothing touches the network on a bad form
2. Upload the image
3. Insert the row; if that fails, remove the uploaded image again
"""

import re
import uuid
from typing import Optional

import structlog

from ..core import GatewayError, ValidationFailed
from ..db import execute, remove_file, upload_file
from ..models import AdminResult, ImageFile, PromptForm

logger = structlog.get_logger("dollarprompt.uploads")

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


def object_name(filename: str) -> str:
    """Unique storage path for an uploaded file: <uuid4>-<safe filename>."""
    safe = _UNSAFE_FILENAME.sub("_", filename.strip()) or "image"
    return f"{uuid.uuid4()}-{safe}"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_prompt_form(
    form: PromptForm,
    image: Optional[ImageFile],
    require_image: bool = True,
    require_creator: bool = True,
) -> None:
    """Required-field checks. Raises ValidationFailed with a user-facing message."""
    if not form.category_id or form.category_id <= 0:
        raise ValidationFailed("A category must be selected.")
    if require_image and (image is None or not image.content):
        raise ValidationFailed("A preview image is required.")
    missing = not form.title.strip() or not form.prompt_text.strip()
    if require_creator:
        missing = missing or not (form.creator_name or "").strip()
    if missing:
        if require_creator:
            raise ValidationFailed(
                "Please fill in all required fields: Title, Your Name, and Prompt Text."
            )
        raise ValidationFailed("Please fill in all required fields: Title and Prompt Text.")


def prompt_row(form: PromptForm, image_url: Optional[str]) -> dict:
    """Row for the prompts table. Blank optional fields are stored as null."""
    row = {
        "title": form.title.strip(),
        "category_id": form.category_id,
        "prompt_text": form.prompt_text.strip(),
        "instructions": _clean(form.instructions),
        "creator_name": _clean(form.creator_name),
        "instagram_handle": _clean(form.instagram_handle),
        "ad_direct_link_url": _clean(form.ad_direct_link_url),
    }
    if image_url is not None:
        row["image_url"] = image_url
    return row


class UploadService:
    """Public prompt submissions."""

    def __init__(self, client):
        self.client = client

    async def upload_prompt(self, form: PromptForm, image: Optional[ImageFile]) -> AdminResult:
        try:
            validate_prompt_form(form, image)
        except ValidationFailed as e:
            return AdminResult(success=False, message=e.message)

        path = object_name(image.filename)
        try:
            image_url = await upload_file(self.client, path, image.content, image.content_type)
        except GatewayError as e:
            return AdminResult(success=False, message=e.message)

        try:
            response = await execute(self.client.table("prompts").insert(prompt_row(form, image_url)))
        except GatewayError as e:
            try:
                await remove_file(self.client, path)
            except GatewayError as cleanup:
                logger.warning("upload_cleanup_failed", path=path, error=cleanup.message)
            return AdminResult(success=False, message=f"Upload failed: {e.message}")

        record = response.data[0] if response.data else None
        logger.info("prompt_uploaded", path=path, creator=form.creator_name)
        return AdminResult(success=True, message="Prompt uploaded successfully!", record=record)
