"""Pages module.

The listing page and the post detail page, each modelled as a small state
machine over records fetched with the content client. Presentation values
(formatted dates, reading time, rendered markup) are computed once when the
data arrives and kept apart from the fetched posts.
"""

import logging
from enum import Enum
from typing import Optional

from blog.prismic import ContentClient, NotFound
from blog.richtext import as_html
from blog.schema import (
    ListedPost,
    Post,
    PostPagination,
    PostView,
    RenderedSection,
)
from blog.utils import format_datetime, reading_time

logger = logging.getLogger(__name__)


class ListingState(Enum):
    INITIAL = "initial"
    DISPLAYING = "displaying"
    LOADING_MORE = "loading_more"
    EXHAUSTED = "exhausted"


class DetailState(Enum):
    FALLBACK = "fallback"
    LOADED = "loaded"
    NOT_FOUND = "not_found"


def present_post(post: Post, lc: str = "pt_BR", tz: str = "America/Sao_Paulo") -> ListedPost:
    return ListedPost(
        post=post, formatted_date=format_datetime(post.first_publication_date, lc, tz)
    )


def present_post_view(
    post: Post, lc: str = "pt_BR", tz: str = "America/Sao_Paulo"
) -> PostView:
    return PostView(
        post=post,
        formatted_date=format_datetime(post.first_publication_date, lc, tz),
        reading_time=reading_time(post.content),
        sections=tuple(
            RenderedSection(heading=section.heading, html=as_html(section.body))
            for section in post.content
        ),
    )


class ListingPage:
    """Posts listing with incremental loading."""

    def __init__(
        self,
        client: ContentClient,
        pagination: PostPagination,
        page_size: int = 5,
        dedupe: bool = True,
        lc: str = "pt_BR",
        tz: str = "America/Sao_Paulo",
    ):
        self.client = client
        self.page_size = page_size
        self.dedupe = dedupe
        self.lc = lc
        self.tz = tz
        self.state = ListingState.INITIAL
        self.posts: list[ListedPost] = []
        self.next_page: Optional[str] = pagination.next_page
        self._append(pagination.results)

    @classmethod
    async def load(cls, client: ContentClient, page_size: int, **kwargs) -> "ListingPage":
        """Fetch the first page of posts."""
        pagination = await client.list_posts(page_size)
        return cls(client, pagination, page_size=page_size, **kwargs)

    @classmethod
    def resume(cls, client: ContentClient, next_page: str, **kwargs) -> "ListingPage":
        """Listing that continues from a stored continuation token."""
        page = cls(client, PostPagination(next_page=next_page), **kwargs)
        page.display()
        return page

    @property
    def can_load_more(self) -> bool:
        return self.next_page is not None and self.state != ListingState.LOADING_MORE

    def display(self) -> None:
        if self.state == ListingState.INITIAL:
            self.state = self._settled_state()

    async def handle_load_more(self) -> list[ListedPost]:
        """Fetch the next page and append its posts. Returns the posts appended.

        A no-op while another fetch is in flight or when there is nothing left."""
        if not self.can_load_more:
            return []
        previous = self.state
        self.state = ListingState.LOADING_MORE
        try:
            pagination = await self.client.list_posts(self.page_size, self.next_page)
        except Exception:
            self.state = previous
            raise
        appended = self._append(pagination.results)
        self.next_page = pagination.next_page
        self.state = self._settled_state()
        logger.debug(f"Loaded {len(appended)} more posts")
        return appended

    def _settled_state(self) -> ListingState:
        return ListingState.DISPLAYING if self.next_page else ListingState.EXHAUSTED

    def _append(self, posts) -> list[ListedPost]:
        seen = {listed.post.uid for listed in self.posts if listed.post.uid}
        appended = []
        for post in posts:
            if self.dedupe and post.uid and post.uid in seen:
                logger.info(f"Skipping duplicate post {post.uid}")
                continue
            if post.uid:
                seen.add(post.uid)
            appended.append(present_post(post, self.lc, self.tz))
        self.posts.extend(appended)
        return appended


class DetailPage:
    """Single post page."""

    def __init__(self, uid: str, lc: str = "pt_BR", tz: str = "America/Sao_Paulo"):
        self.uid = uid
        self.lc = lc
        self.tz = tz
        self.state = DetailState.FALLBACK
        self.view: Optional[PostView] = None

    async def load(self, client: ContentClient) -> "DetailPage":
        try:
            post = await client.get_post_by_id(self.uid)
        except NotFound:
            self.state = DetailState.NOT_FOUND
            return self
        self.view = present_post_view(post, self.lc, self.tz)
        self.state = DetailState.LOADED
        return self
