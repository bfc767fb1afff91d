"""Static generation of pages, with revalidation after a fixed window."""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional
from sentry_sdk import capture_exception

from blog.pages import DetailPage, DetailState, ListingPage
from blog.prismic import ContentClient

logger = logging.getLogger(__name__)

LISTING_PATH = "/"


def post_path(uid: str) -> str:
    return f"/post/{uid}"


def is_not_found(page: Any) -> bool:
    return isinstance(page, DetailPage) and page.state == DetailState.NOT_FOUND


@dataclass
class CachedPage:
    page: Any
    generated_at: float
    revalidate: float
    pinned: bool = False


class PageCache:
    """Generated pages keyed by path.

    Entries older than the revalidation window are still served while a
    single background task per path regenerates them. Prebuilt pages are
    pinned; pages generated on request are evicted least recently used
    first once there are more than max_entries of them. Not found pages
    use the shorter revalidate_missing window."""

    def __init__(
        self,
        revalidate: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 1000,
        revalidate_missing: Optional[float] = None,
    ):
        self.revalidate = revalidate
        self.revalidate_missing = (
            revalidate if revalidate_missing is None else revalidate_missing
        )
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, CachedPage]" = OrderedDict()
        self._pending: Dict[str, asyncio.Task] = {}
        self._failures: "OrderedDict[str, BaseException]" = OrderedDict()

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def paths(self) -> List[str]:
        return list(self._entries)

    def get(self, path: str) -> Optional[CachedPage]:
        entry = self._entries.get(path)
        if entry is not None:
            self._entries.move_to_end(path)
        return entry

    def put(self, path: str, page: Any, pinned: bool = False) -> CachedPage:
        previous = self._entries.pop(path, None)
        entry = CachedPage(
            page=page,
            generated_at=self.clock(),
            revalidate=self.revalidate_missing if is_not_found(page) else self.revalidate,
            pinned=pinned or (previous is not None and previous.pinned),
        )
        self._entries[path] = entry
        self._failures.pop(path, None)
        self._evict()
        return entry

    def is_stale(self, entry: CachedPage) -> bool:
        return self.clock() - entry.generated_at >= entry.revalidate

    def is_pending(self, path: str) -> bool:
        return path in self._pending

    def pop_failure(self, path: str) -> Optional[BaseException]:
        return self._failures.pop(path, None)

    def regenerate(self, path: str, build: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """Start generating a path in the background, unless already under way."""
        task = self._pending.get(path)
        if task is None:
            task = asyncio.create_task(self._generate(path, build))
            self._pending[path] = task
        return task

    async def join(self, path: str) -> Optional[BaseException]:
        """Wait for a pending generation of path to finish.

        Every waiter gets the failure of that generation, if any."""
        task = self._pending.get(path)
        if task is None:
            return None
        return await asyncio.shield(task)

    async def close(self) -> None:
        for task in list(self._pending.values()):
            task.cancel()
        await asyncio.gather(*self._pending.values(), return_exceptions=True)
        self._pending.clear()

    def _evict(self) -> None:
        unpinned = [path for path, entry in self._entries.items() if not entry.pinned]
        for path in unpinned[: max(0, len(unpinned) - self.max_entries)]:
            del self._entries[path]
            logger.debug(f"Evicted {path}")

    async def _generate(
        self, path: str, build: Callable[[], Awaitable[Any]]
    ) -> Optional[BaseException]:
        try:
            self.put(path, await build())
            logger.info(f"Generated {path}")
            return None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Generating {path} failed: {e!r}")
            capture_exception(e)
            self._failures[path] = e
            while len(self._failures) > self.max_entries:
                self._failures.popitem(last=False)
            return e
        finally:
            self._pending.pop(path, None)


async def generate_static_paths(client: ContentClient, page_size: int) -> List[str]:
    """Paths of every post, following all pages of the listing."""
    paths = []
    pagination = await client.list_posts(page_size)
    while True:
        paths.extend(post_path(post.uid) for post in pagination.results if post.uid)
        if pagination.next_page is None:
            return paths
        pagination = await client.list_posts(page_size, pagination.next_page)


async def build_listing(client: ContentClient, config) -> ListingPage:
    page = await ListingPage.load(
        client,
        int(config["POSTS_PAGE_SIZE"]),
        dedupe=bool(config["DEDUPE_POSTS"]),
        lc=config["DATE_LOCALE"],
        tz=config["DATE_TIMEZONE"],
    )
    page.display()
    return page


async def build_detail(client: ContentClient, uid: str, config) -> DetailPage:
    page = DetailPage(uid, lc=config["DATE_LOCALE"], tz=config["DATE_TIMEZONE"])
    return await page.load(client)


async def prebuild(cache: PageCache, client: ContentClient, config) -> None:
    """Generate the listing page and every post page. Repository errors propagate."""
    cache.put(LISTING_PATH, await build_listing(client, config), pinned=True)
    paths = await generate_static_paths(client, int(config["POSTS_PAGE_SIZE"]))
    for path in paths:
        uid = path.rsplit("/", 1)[-1]
        cache.put(path, await build_detail(client, uid, config), pinned=True)
    logger.info(f"Prebuilt {len(paths) + 1} pages")
