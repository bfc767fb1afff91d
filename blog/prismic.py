"""Prismic content repository client"""

import asyncio
import json as JSON
import logging
from typing import Optional
import httpx
import iso8601
import pydash as py_
from furl import furl

from blog.schema import Post, PostPagination, Section

logger = logging.getLogger(__name__)

DOCUMENT_TYPE = "posts"
REQUIRED_FIELDS = ["title", "subtitle", "author"]


class ContentError(Exception):
    """Content repository error."""


class RepositoryUnavailable(ContentError):
    """The content repository could not be reached or answered with an error."""


class NotFound(ContentError):
    """No document matches the requested identifier."""


class MalformedContent(ContentError):
    """A fetched document is missing expected fields."""


class InvalidContinuation(ContentError):
    """A continuation token does not point at the content repository."""


def at(path: str, value: str) -> str:
    """Prismic 'at' predicate."""
    return f"[at({path},{JSON.dumps(value)})]"


class ContentClient:
    """Read-only client for the Prismic REST API (v2)."""

    def __init__(
        self,
        endpoint: str,
        access_token: Optional[str] = None,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.access_token = access_token
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_config(cls, config, transport=None) -> "ContentClient":
        endpoint = config.get("PRISMIC_API_ENDPOINT")
        if not endpoint:
            raise ValueError("PRISMIC_API_ENDPOINT is not configured")
        return cls(
            endpoint,
            access_token=config.get("PRISMIC_ACCESS_TOKEN"),
            timeout=float(config.get("REQUEST_TIMEOUT", 10.0)),
            max_retries=int(config.get("MAX_RETRIES", 3)),
            retry_delay=float(config.get("RETRY_DELAY", 1.0)),
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def list_posts(
        self, page_size: int, continuation_token: Optional[str] = None
    ) -> PostPagination:
        """List posts, either the first page or the page a continuation token points to."""
        if continuation_token:
            response = await self._get(self.continuation_url(continuation_token))
        else:
            response = await self.query(at("document.type", DOCUMENT_TYPE), page_size)
        return pagination_from_response(response)

    async def get_post_by_id(self, uid: str) -> Post:
        """Get a single post by its uid."""
        response = await self.query(at(f"my.{DOCUMENT_TYPE}.uid", uid), 1)
        results = response.get("results") or []
        if len(results) == 0:
            raise NotFound(f"Post not found: {uid}")
        return post_from_document(results[0])

    async def master_ref(self) -> str:
        """Current master ref, needed for every search query."""
        api = await self._get(self.endpoint, params=self._token_params())
        ref = next(
            (r.get("ref") for r in api.get("refs") or [] if r.get("isMasterRef")),
            None,
        )
        if ref is None:
            raise MalformedContent("API response has no master ref")
        return ref

    async def query(self, predicate: str, page_size: int, page: int = 1) -> dict:
        params = {
            "ref": await self.master_ref(),
            "q": f"[{predicate}]",
            "pageSize": page_size,
            "page": page,
            **self._token_params(),
        }
        return await self._get(f"{self.endpoint}/documents/search", params=params)

    def continuation_url(self, token: str) -> str:
        """Validate that a continuation token points at the repository host."""
        try:
            url = furl(token)
        except ValueError as e:
            raise InvalidContinuation(f"Invalid continuation token: {token}") from e
        if url.scheme not in ["http", "https"] or url.host != furl(self.endpoint).host:
            raise InvalidContinuation(f"Invalid continuation token: {token}")
        if self.access_token and "access_token" not in url.args:
            url.args["access_token"] = self.access_token
        return url.url

    def _token_params(self) -> dict:
        if not self.access_token:
            return {}
        return {"access_token": self.access_token}

    async def _get(self, url: str, params: Optional[dict] = None) -> dict:
        """GET with retries on transport errors and server errors."""
        for attempt in range(self.max_retries):
            try:
                response = await self._http.get(url, params=params)
            except httpx.TransportError as e:
                error = repr(e)
            else:
                if response.status_code < 500:
                    break
                error = f"HTTP {response.status_code}"
            if attempt < self.max_retries - 1:
                wait_time = self.retry_delay * (2**attempt)
                logger.warning(
                    f"Content repository error (attempt {attempt + 1}/{self.max_retries}): {error}. "
                    f"Retrying in {wait_time:.1f}s..."
                )
                await asyncio.sleep(wait_time)
        else:
            logger.error(
                f"Content repository request failed after {self.max_retries} attempts: {error}"
            )
            raise RepositoryUnavailable(error)

        if response.status_code >= 400:
            logger.warning(f"Content repository returned HTTP {response.status_code}")
            raise RepositoryUnavailable(f"HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise MalformedContent("Response is not valid JSON") from e


def pagination_from_response(response: dict) -> PostPagination:
    results = response.get("results")
    if not isinstance(results, list):
        raise MalformedContent("Search response has no results")
    return PostPagination(
        next_page=response.get("next_page") or None,
        results=tuple(post_from_document(document) for document in results),
    )


def post_from_document(document: dict) -> Post:
    """Build a post from a Prismic document, failing on missing fields."""
    doc_id = document.get("id") or "unknown"
    data = document.get("data")
    if not isinstance(data, dict):
        raise MalformedContent(f"Document {doc_id}: missing data")
    for key in REQUIRED_FIELDS:
        if not isinstance(data.get(key), str):
            raise MalformedContent(f"Document {doc_id}: missing {key}")
    content = data.get("content")
    if not isinstance(content, list):
        raise MalformedContent(f"Document {doc_id}: missing content")
    sections = []
    for index, section in enumerate(content):
        body = section.get("body") if isinstance(section, dict) else None
        if not isinstance(body, list):
            raise MalformedContent(f"Document {doc_id}: missing content.{index}.body")
        for position, block in enumerate(body):
            check_block(block, f"Document {doc_id}: content.{index}.body.{position}")
        sections.append(Section(heading=section.get("heading") or "", body=tuple(body)))
    try:
        first_publication_date = (
            iso8601.parse_date(document["first_publication_date"])
            if document.get("first_publication_date")
            else None
        )
    except iso8601.ParseError as e:
        raise MalformedContent(
            f"Document {doc_id}: invalid first_publication_date"
        ) from e

    return Post(
        id=doc_id,
        uid=document.get("uid"),
        first_publication_date=first_publication_date,
        title=data["title"],
        subtitle=data["subtitle"],
        author=data["author"],
        banner_url=py_.get(data, "banner.url"),
        content=tuple(sections),
    )


def check_block(block, where: str) -> None:
    """Rich text blocks need a type, a text unless they are images, and spans with offsets."""
    if not isinstance(block, dict) or not isinstance(block.get("type"), str):
        raise MalformedContent(f"{where}: invalid block")
    if block["type"] == "image":
        return
    if not isinstance(block.get("text"), str):
        raise MalformedContent(f"{where}: missing text")
    spans = block.get("spans") or []
    if not isinstance(spans, list):
        raise MalformedContent(f"{where}: invalid spans")
    for span in spans:
        if not isinstance(span, dict) or not all(
            isinstance(span.get(key), int) and not isinstance(span.get(key), bool)
            for key in ["start", "end"]
        ):
            raise MalformedContent(f"{where}: invalid span")
