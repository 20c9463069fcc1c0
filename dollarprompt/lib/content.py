"""
Content service.
Catalog reads (lists, detail, home feed, creators) and likes.

Key design:
- Newest first, fixed page size, "load more" appends
- A 5-digit search is a prompt number lookup, anything else a title search
- Prompt text is withheld from viewers who have not unlocked it (CONTENT_GATE=unlock)
- Anonymous likes are fire-and-forget; signed-in likes roll back on failure
"""

import asyncio
import re
from typing import List, Optional

import structlog

from ..core import GatewayError, Settings, get_settings
from ..db import call_rpc, execute, first_row
from ..models import Category, ClaimResult, HeroImage, HomeFeed, Prompt, PromptPage, PromptView
from .client_state import ClientState
from .optimistic import ClaimInProgress, PendingClaims, run_optimistic

logger = structlog.get_logger("dollarprompt.content")

PROMPT_NUMBER_PATTERN = re.compile(r"^\d{5}$")
PROMPT_COLUMNS = "*, categories(name, slug)"


class ContentService:
    """Handles all catalog reads and likes."""

    def __init__(self, client, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()
        self.page_size = self.settings.prompts_page_size
        self.pending = PendingClaims()
        self._background = set()

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    async def list_categories(self) -> List[Category]:
        response = await execute(self.client.table("categories").select("*").order("name"))
        return [Category(**row) for row in response.data or []]

    async def get_category_by_slug(self, slug: str) -> Optional[Category]:
        row = await first_row(self.client.table("categories").select("*").eq("slug", slug))
        return Category(**row) if row else None

    async def list_prompts(
        self,
        category_slug: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 0,
    ) -> PromptPage:
        """
        One page of prompts, newest first.

        search "00042" -> prompt_id == 42
        search "cyber" -> title ILIKE %cyber%
        """
        query = self.client.table("prompts").select(PROMPT_COLUMNS)

        if category_slug and category_slug.lower() != "all":
            category = await self.get_category_by_slug(category_slug)
            if category is None:
                return PromptPage(prompts=[], page=page, has_more=False)
            query = query.eq("category_id", category.id)

        term = (search or "").strip()
        if term:
            if PROMPT_NUMBER_PATTERN.match(term):
                query = query.eq("prompt_id", int(term))
            else:
                query = query.ilike("title", f"%{term}%")

        # one extra row tells us whether another page exists
        start = max(page, 0) * self.page_size
        response = await execute(
            query.order("created_at", desc=True).range(start, start + self.page_size)
        )
        rows = response.data or []
        return PromptPage(
            prompts=[Prompt(**row) for row in rows[: self.page_size]],
            page=page,
            has_more=len(rows) > self.page_size,
        )

    async def list_creator_prompts(self, creator_name: str) -> List[Prompt]:
        response = await execute(
            self.client.table("prompts")
            .select(PROMPT_COLUMNS)
            .eq("creator_name", creator_name)
            .order("created_at", desc=True)
        )
        return [Prompt(**row) for row in response.data or []]

    async def list_hero_images(self, limit: Optional[int] = None) -> List[HeroImage]:
        query = self.client.table("hero_images").select("*").order("created_at", desc=True)
        if limit:
            query = query.limit(limit)
        response = await execute(query)
        return [HeroImage(**row) for row in response.data or []]

    async def home_feed(self) -> HomeFeed:
        """Three latest hero images and six latest prompts."""
        heroes, prompts = await asyncio.gather(
            self.list_hero_images(limit=3),
            execute(
                self.client.table("prompts")
                .select(PROMPT_COLUMNS)
                .order("created_at", desc=True)
                .limit(6)
            ),
        )
        return HomeFeed(
            hero_images=heroes,
            prompts=[Prompt(**row) for row in prompts.data or []],
        )

    # ------------------------------------------------------------------
    # Detail
    # ------------------------------------------------------------------

    async def get_prompt(self, prompt_id: str) -> Optional[Prompt]:
        row = await first_row(
            self.client.table("prompts").select(PROMPT_COLUMNS).eq("id", str(prompt_id))
        )
        return Prompt(**row) if row else None

    async def get_prompt_by_number(self, number: int) -> Optional[Prompt]:
        row = await first_row(
            self.client.table("prompts").select(PROMPT_COLUMNS).eq("prompt_id", int(number))
        )
        return Prompt(**row) if row else None

    async def resolve_prompt(self, ref: str) -> Optional[Prompt]:
        """Numeric refs are prompt numbers, anything else an opaque id."""
        ref = str(ref).strip()
        if ref.isdigit():
            return await self.get_prompt_by_number(int(ref))
        return await self.get_prompt(ref)

    def view_prompt(self, prompt: Prompt, wallet=None) -> PromptView:
        """
        The prompt as one viewer may see it.
        With the unlock gate on, text and instructions need an unlock.
        """
        if not self.settings.gate_content:
            return PromptView(prompt=prompt, locked=False)
        if wallet is not None and wallet.is_unlocked(prompt.id):
            return PromptView(prompt=prompt, locked=False)
        hidden = prompt.model_copy(update={"prompt_text": None, "instructions": None})
        return PromptView(prompt=hidden, locked=True)

    # ------------------------------------------------------------------
    # Likes
    # ------------------------------------------------------------------

    def like_prompt_anonymous(self, prompt: Prompt, state: ClientState) -> bool:
        """
        Like without an account.
        Deduped by the liked list in client state; the RPC is fire-and-forget
        and a failure is only logged - the displayed count is not rolled back.
        """
        if not state.mark_liked(prompt.id):
            return False
        prompt.like_count += 1
        task = asyncio.ensure_future(self._send_like(prompt.id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return True

    async def _send_like(self, prompt_id: str) -> None:
        try:
            await call_rpc(self.client, "increment_like_count", {"p_prompt_id": prompt_id})
        except GatewayError as e:
            logger.warning("like_failed", prompt_id=prompt_id, error=e.message)

    async def like_prompt(self, prompt: Prompt, state: ClientState) -> ClaimResult:
        """Signed-in like: counter and liked mark roll back if the RPC fails."""
        if state.has_liked(prompt.id):
            return ClaimResult(
                success=False, message="You already liked this prompt.", code="already_claimed"
            )

        def apply():
            prompt.like_count += 1
            state.mark_liked(prompt.id)

        def rollback():
            prompt.like_count -= 1
            state.unmark_liked(prompt.id)

        try:
            with self.pending.hold(("like", prompt.id)):
                await run_optimistic(
                    ("like", prompt.id),
                    apply,
                    lambda: call_rpc(
                        self.client, "increment_like_count", {"p_prompt_id": prompt.id}
                    ),
                    rollback,
                )
        except ClaimInProgress as e:
            return ClaimResult(success=False, message=e.message, code="in_progress")
        except GatewayError as e:
            return ClaimResult(success=False, message=e.message, code="gateway")

        return ClaimResult(success=True, message="Liked!")

    async def drain(self) -> None:
        """Wait for fire-and-forget likes still in flight."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)


class PromptFeed:
    """A growing prompt list: first page replaces, load_more appends."""

    def __init__(
        self,
        service: ContentService,
        category_slug: Optional[str] = None,
        search: Optional[str] = None,
    ):
        self.service = service
        self.category_slug = category_slug
        self.search = search
        self.prompts: List[Prompt] = []
        self.page = -1
        self.has_more = True

    async def load(self) -> List[Prompt]:
        result = await self.service.list_prompts(self.category_slug, self.search, page=0)
        self.prompts = list(result.prompts)
        self.page = 0
        self.has_more = result.has_more
        return self.prompts

    async def load_more(self) -> List[Prompt]:
        if not self.has_more:
            return self.prompts
        result = await self.service.list_prompts(self.category_slug, self.search, page=self.page + 1)
        self.prompts.extend(result.prompts)
        self.page = result.page
        self.has_more = result.has_more
        return self.prompts
