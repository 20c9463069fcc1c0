"""
Admin routes.
Prompt and hero image management plus ad analytics.

All writes go through the admin's own client so database policies see
their JWT; the admin policy is checked before anything runs.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from ...lib import AdminService, ContentService, WalletRegistry
from ...lib.auth import get_registry, require_admin
from ...models import (
    AdAnalytics,
    AdminResult,
    HeroImage,
    HeroImageForm,
    Identity,
    Prompt,
    PromptForm,
)
from ..forms import hero_image_form, prompt_form, read_image
from ..responses import admin_or_raise


router = APIRouter()


async def get_admin_service(
    user: Identity = Depends(require_admin),
    registry: WalletRegistry = Depends(get_registry),
) -> AdminService:
    wallet = await registry.get(user)
    return AdminService(wallet.client)


@router.get("/prompts", response_model=List[Prompt])
async def list_prompts(service: AdminService = Depends(get_admin_service)):
    return await service.list_prompts()


@router.post("/prompts", response_model=AdminResult)
async def create_prompt(
    form: PromptForm = Depends(prompt_form),
    image: Optional[UploadFile] = File(None),
    user: Identity = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    result = await service.create_prompt(form, await read_image(image), created_by=user.id)
    return admin_or_raise(result)


@router.put("/prompts/{prompt_id}", response_model=AdminResult)
async def update_prompt(
    prompt_id: str,
    form: PromptForm = Depends(prompt_form),
    image: Optional[UploadFile] = File(None),
    service: AdminService = Depends(get_admin_service),
):
    """
    Edit a prompt. A new image replaces the old one, which is then removed
    from storage (a failed removal comes back as a warning).
    """
    current = await ContentService(service.client).get_prompt(prompt_id)
    if current is None:
        raise HTTPException(status_code=404, detail="Prompt not found")
    result = await service.update_prompt(
        prompt_id, form, image=await read_image(image), current_image_url=current.image_url
    )
    return admin_or_raise(result)


@router.delete("/prompts/{prompt_id}", response_model=AdminResult)
async def delete_prompt(prompt_id: str, service: AdminService = Depends(get_admin_service)):
    """Delete the row, then its image. The delete stands even if the image stays behind."""
    current = await ContentService(service.client).get_prompt(prompt_id)
    if current is None:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return admin_or_raise(await service.delete_prompt(prompt_id, current.image_url))


@router.get("/hero-images", response_model=List[HeroImage])
async def list_hero_images(service: AdminService = Depends(get_admin_service)):
    return await service.list_hero_images()


@router.post("/hero-images", response_model=AdminResult)
async def create_hero_image(
    form: HeroImageForm = Depends(hero_image_form),
    image: Optional[UploadFile] = File(None),
    service: AdminService = Depends(get_admin_service),
):
    return admin_or_raise(await service.create_hero_image(form, await read_image(image)))


@router.put("/hero-images/{image_id}", response_model=AdminResult)
async def update_hero_image(
    image_id: int,
    form: HeroImageForm = Depends(hero_image_form),
    image: Optional[UploadFile] = File(None),
    service: AdminService = Depends(get_admin_service),
):
    current = await service.get_hero_image(image_id)
    if current is None:
        raise HTTPException(status_code=404, detail="Hero image not found")
    result = await service.update_hero_image(
        image_id, form, image=await read_image(image), current_image_url=current.image_url
    )
    return admin_or_raise(result)


@router.delete("/hero-images/{image_id}", response_model=AdminResult)
async def delete_hero_image(image_id: int, service: AdminService = Depends(get_admin_service)):
    current = await service.get_hero_image(image_id)
    if current is None:
        raise HTTPException(status_code=404, detail="Hero image not found")
    return admin_or_raise(await service.delete_hero_image(image_id, current.image_url))


@router.get("/analytics", response_model=AdAnalytics)
async def ad_analytics(service: AdminService = Depends(get_admin_service)):
    """Completed ad views and estimated earnings."""
    return await service.ad_analytics()
