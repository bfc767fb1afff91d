from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Section:
    """Post content section: a heading and a rich-text body."""

    heading: str
    body: tuple = ()


@dataclass(frozen=True)
class Post:
    """Post schema, as fetched from the content repository."""

    id: str
    uid: Optional[str]
    first_publication_date: Optional[datetime]
    title: str
    subtitle: str
    author: str
    banner_url: Optional[str] = None
    content: tuple = ()


@dataclass(frozen=True)
class PostPagination:
    """A page of posts and the continuation token for the next page."""

    next_page: Optional[str]
    results: tuple = ()


@dataclass(frozen=True)
class ListedPost:
    """Post as shown on the listing page."""

    post: Post
    formatted_date: Optional[str]


@dataclass(frozen=True)
class RenderedSection:
    heading: str
    html: str


@dataclass(frozen=True)
class PostView:
    """Post as shown on the detail page."""

    post: Post
    formatted_date: Optional[str]
    reading_time: int
    sections: tuple = field(default_factory=tuple)


@dataclass
class MoreQuery:
    """Query parameters for loading more posts."""

    next_page: str
