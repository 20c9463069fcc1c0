"""
Multipart form parsing shared by the upload and admin routes.
"""

from typing import Optional

from fastapi import Form, UploadFile

from ..models import HeroImageForm, ImageFile, PromptForm


def _int_or_none(value: Optional[str]) -> Optional[int]:
    value = (value or "").strip()
    return int(value) if value.isdigit() else None


def prompt_form(
    title: str = Form(""),
    category_id: Optional[str] = Form(None),
    prompt_text: str = Form(""),
    instructions: Optional[str] = Form(None),
    creator_name: Optional[str] = Form(None),
    instagram_handle: Optional[str] = Form(None),
    ad_direct_link_url: Optional[str] = Form(None),
) -> PromptForm:
    # blank fields reach the services so they can answer with their own messages
    return PromptForm(
        title=title,
        category_id=_int_or_none(category_id),
        prompt_text=prompt_text,
        instructions=instructions,
        creator_name=creator_name,
        instagram_handle=instagram_handle,
        ad_direct_link_url=ad_direct_link_url,
    )


def hero_image_form(alt_text: Optional[str] = Form(None)) -> HeroImageForm:
    return HeroImageForm(alt_text=alt_text)


async def read_image(upload: Optional[UploadFile]) -> Optional[ImageFile]:
    """Read an uploaded file into memory. No file (or an empty one) is None."""
    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    if not content:
        return None
    return ImageFile(filename=upload.filename, content=content, content_type=upload.content_type)
