"""
Admin service.
CRUD for prompts and hero images plus the ad analytics summary.

Deletes remove the row first, then the stored image. If the image cannot be
removed the delete still counts as done; the result carries a warning and the
orphaned path is logged.
"""

from typing import List, Optional

import structlog

from ..core import GatewayError, ValidationFailed
from ..db import execute, first_row, remove_file, storage_path_from_url, upload_file
from ..models import (
    AdAnalytics,
    AdminResult,
    AdView,
    HeroImage,
    HeroImageForm,
    ImageFile,
    Prompt,
    PromptForm,
)
from .uploads import object_name, prompt_row, validate_prompt_form

logger = structlog.get_logger("dollarprompt.admin")

AVERAGE_PAYOUT = 0.05  # USD per completed ad view when the network reports none


class AdminService:
    """Handles all admin-only writes. Callers check the admin policy first."""

    def __init__(self, client):
        self.client = client

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    async def _upload(self, image: ImageFile) -> str:
        return await upload_file(
            self.client, object_name(image.filename), image.content, image.content_type
        )

    async def _remove_image(self, image_url: Optional[str], what: str) -> Optional[str]:
        """Best-effort file removal. Returns a warning when it failed."""
        path = storage_path_from_url(image_url)
        if not path:
            return None
        try:
            await remove_file(self.client, path)
        except GatewayError as e:
            logger.warning("orphaned_image", what=what, path=path, error=e.message)
            return f"{what} deleted, but failed to remove image: {e.message}"
        return None

    async def _delete(self, table: str, record_id, image_url: Optional[str], what: str) -> AdminResult:
        try:
            await execute(self.client.table(table).delete().eq("id", record_id))
        except GatewayError as e:
            return AdminResult(success=False, message=e.message)

        warning = await self._remove_image(image_url, what)
        logger.info("admin_deleted", table=table, record_id=str(record_id))
        return AdminResult(success=True, message=f"{what} deleted successfully!", warning=warning)

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    async def list_prompts(self) -> List[Prompt]:
        response = await execute(
            self.client.table("prompts")
            .select("*, categories(name, slug)")
            .order("created_at", desc=True)
        )
        return [Prompt(**row) for row in response.data or []]

    async def create_prompt(
        self,
        form: PromptForm,
        image: Optional[ImageFile],
        created_by: Optional[str] = None,
    ) -> AdminResult:
        try:
            validate_prompt_form(form, image, require_creator=False)
        except ValidationFailed as e:
            return AdminResult(success=False, message=e.message)

        try:
            image_url = await self._upload(image)
        except GatewayError as e:
            return AdminResult(success=False, message=e.message)

        row = prompt_row(form, image_url)
        if created_by:
            row["created_by"] = created_by
        try:
            response = await execute(self.client.table("prompts").insert(row))
        except GatewayError as e:
            await self._remove_image(image_url, "Prompt")
            return AdminResult(success=False, message=e.message)

        record = response.data[0] if response.data else None
        return AdminResult(success=True, message="Prompt added successfully!", record=record)

    async def update_prompt(
        self,
        prompt_id: str,
        form: PromptForm,
        image: Optional[ImageFile] = None,
        current_image_url: Optional[str] = None,
    ) -> AdminResult:
        """Update fields; a new image replaces the stored one once the row is saved."""
        try:
            validate_prompt_form(form, image, require_image=False, require_creator=False)
        except ValidationFailed as e:
            return AdminResult(success=False, message=e.message)

        image_url = None
        if image is not None:
            try:
                image_url = await self._upload(image)
            except GatewayError as e:
                return AdminResult(success=False, message=e.message)

        try:
            response = await execute(
                self.client.table("prompts").update(prompt_row(form, image_url)).eq("id", prompt_id)
            )
        except GatewayError as e:
            if image_url:
                await self._remove_image(image_url, "Prompt")
            return AdminResult(success=False, message=e.message)

        warning = None
        if image_url and current_image_url:
            warning = await self._remove_image(current_image_url, "Old image")
        record = response.data[0] if response.data else None
        return AdminResult(
            success=True, message="Prompt updated successfully!", warning=warning, record=record
        )

    async def delete_prompt(self, prompt_id: str, image_url: Optional[str]) -> AdminResult:
        return await self._delete("prompts", prompt_id, image_url, "Prompt")

    # ------------------------------------------------------------------
    # Hero images
    # ------------------------------------------------------------------

    async def list_hero_images(self) -> List[HeroImage]:
        response = await execute(
            self.client.table("hero_images").select("*").order("created_at", desc=True)
        )
        return [HeroImage(**row) for row in response.data or []]

    async def get_hero_image(self, image_id: int) -> Optional[HeroImage]:
        row = await first_row(self.client.table("hero_images").select("*").eq("id", image_id))
        return HeroImage(**row) if row else None

    async def create_hero_image(self, form: HeroImageForm, image: Optional[ImageFile]) -> AdminResult:
        if image is None or not image.content:
            return AdminResult(success=False, message="Please select an image file.")

        try:
            image_url = await self._upload(image)
        except GatewayError as e:
            return AdminResult(success=False, message=e.message)

        try:
            response = await execute(
                self.client.table("hero_images").insert(
                    {"image_url": image_url, "alt_text": (form.alt_text or "").strip() or None}
                )
            )
        except GatewayError as e:
            await self._remove_image(image_url, "Hero image")
            return AdminResult(success=False, message=e.message)

        record = response.data[0] if response.data else None
        return AdminResult(success=True, message="Hero image added!", record=record)

    async def update_hero_image(
        self,
        image_id: int,
        form: HeroImageForm,
        image: Optional[ImageFile] = None,
        current_image_url: Optional[str] = None,
    ) -> AdminResult:
        row = {"alt_text": (form.alt_text or "").strip() or None}
        image_url = None
        if image is not None:
            try:
                image_url = await self._upload(image)
            except GatewayError as e:
                return AdminResult(success=False, message=e.message)
            row["image_url"] = image_url

        try:
            response = await execute(self.client.table("hero_images").update(row).eq("id", image_id))
        except GatewayError as e:
            if image_url:
                await self._remove_image(image_url, "Hero image")
            return AdminResult(success=False, message=e.message)

        warning = None
        if image_url and current_image_url:
            warning = await self._remove_image(current_image_url, "Old image")
        record = response.data[0] if response.data else None
        return AdminResult(success=True, message="Hero image updated!", warning=warning, record=record)

    async def delete_hero_image(self, image_id: int, image_url: Optional[str]) -> AdminResult:
        return await self._delete("hero_images", image_id, image_url, "Hero image")

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    async def ad_analytics(self) -> AdAnalytics:
        """Completed ad views and estimated earnings (read-only)."""
        response = await execute(self.client.table("ad_views").select("*"))
        views = [AdView(**row) for row in response.data or []]
        earnings = sum(v.payout if v.payout is not None else AVERAGE_PAYOUT for v in views)
        return AdAnalytics(total_views=len(views), estimated_earnings=round(earnings, 2))
