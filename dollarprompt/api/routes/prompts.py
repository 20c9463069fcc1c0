"""
Catalog routes.
Browsing is public; unlocking needs a wallet, liking works either way.

Design:
- Lists are newest first, one page at a time (page=0, 1, ...)
- ?q=00042 jumps to a prompt number, any other ?q searches titles
- Prompt text stays hidden until the viewer has unlocked the prompt
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, Request, UploadFile

from ...lib import BoundedCache, ClientState, ContentService, MemoryKeyValueStore, UploadService, WalletStore
from ...lib.auth import get_client, get_optional_user, get_optional_wallet, get_wallet
from ...models import Category, HomeFeed, Identity, Prompt, PromptForm, PromptPage, PromptView
from ..forms import prompt_form, read_image
from ..responses import admin_or_raise, claim_or_raise


router = APIRouter()


async def get_content_service(client=Depends(get_client)) -> ContentService:
    return ContentService(client)


def _client_state(request: Request, key: str) -> ClientState:
    states: BoundedCache[ClientState] = request.app.state.client_states
    return states.setdefault(key, lambda: ClientState(MemoryKeyValueStore()))


async def _prompt_or_404(service: ContentService, ref: str) -> Prompt:
    prompt = await service.resolve_prompt(ref)
    if prompt is None:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return prompt


def _gated(service: ContentService, page: PromptPage, wallet: Optional[WalletStore]) -> PromptPage:
    prompts = [service.view_prompt(p, wallet).prompt for p in page.prompts]
    return PromptPage(prompts=prompts, page=page.page, has_more=page.has_more)


@router.get("", response_model=PromptPage)
async def list_prompts(
    category: Optional[str] = None,
    q: Optional[str] = None,
    page: int = Query(0, ge=0),
    service: ContentService = Depends(get_content_service),
    wallet: Optional[WalletStore] = Depends(get_optional_wallet),
):
    """
    One page of prompts.

    - category: category slug (unknown slug = empty page)
    - q: five digits = prompt number, anything else = title contains
    - page: zero-based; has_more tells whether to offer "load more"
    """
    result = await service.list_prompts(category_slug=category, search=q, page=page)
    return _gated(service, result, wallet)


@router.get("/categories", response_model=List[Category])
async def list_categories(service: ContentService = Depends(get_content_service)):
    return await service.list_categories()


@router.get("/home", response_model=HomeFeed)
async def home_feed(
    service: ContentService = Depends(get_content_service),
    wallet: Optional[WalletStore] = Depends(get_optional_wallet),
):
    """Hero carousel plus the latest prompts."""
    feed = await service.home_feed()
    prompts = [service.view_prompt(p, wallet).prompt for p in feed.prompts]
    return HomeFeed(hero_images=feed.hero_images, prompts=prompts)


@router.get("/creator/{creator_name}", response_model=List[Prompt])
async def creator_prompts(
    creator_name: str,
    service: ContentService = Depends(get_content_service),
    wallet: Optional[WalletStore] = Depends(get_optional_wallet),
):
    prompts = await service.list_creator_prompts(creator_name)
    return [service.view_prompt(p, wallet).prompt for p in prompts]


@router.post("/upload")
async def upload_prompt(
    form: PromptForm = Depends(prompt_form),
    image: Optional[UploadFile] = File(None),
    client=Depends(get_client),
):
    """
    Community submission.

    Requires title, creator name, prompt text, a category and a preview image.
    """
    result = await UploadService(client).upload_prompt(form, await read_image(image))
    return admin_or_raise(result)


@router.get("/{ref}", response_model=PromptView)
async def get_prompt(
    ref: str,
    service: ContentService = Depends(get_content_service),
    wallet: Optional[WalletStore] = Depends(get_optional_wallet),
):
    """Prompt detail by id or by number (42 or 00042)."""
    prompt = await _prompt_or_404(service, ref)
    return service.view_prompt(prompt, wallet)


@router.post("/{ref}/unlock")
async def unlock_prompt(
    ref: str,
    service: ContentService = Depends(get_content_service),
    wallet: WalletStore = Depends(get_wallet),
):
    """
    Spend credits to reveal a prompt.

    Unlocking twice is free. 402 when the balance is too low.
    """
    prompt = await _prompt_or_404(service, ref)
    result = claim_or_raise(await wallet.unlock_prompt(prompt.id))
    return {
        "success": True,
        "message": result.message,
        "credits": result.credits,
        "view": service.view_prompt(prompt, wallet),
    }


@router.post("/{ref}/like")
async def like_prompt(
    ref: str,
    request: Request,
    x_client_id: Optional[str] = Header(None),
    service: ContentService = Depends(get_content_service),
    user: Optional[Identity] = Depends(get_optional_user),
):
    """
    Like a prompt once per browser (anonymous, X-Client-Id) or per account.
    """
    prompt = await _prompt_or_404(service, ref)

    if user is not None:
        state = _client_state(request, f"user:{user.id}")
        claim_or_raise(await service.like_prompt(prompt, state))
        return {"liked": True, "like_count": prompt.like_count}

    if not x_client_id:
        raise HTTPException(status_code=400, detail="X-Client-Id header required")
    state = _client_state(request, f"client:{x_client_id}")
    liked = service.like_prompt_anonymous(prompt, state)
    return {"liked": liked, "like_count": prompt.like_count}
