from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple


@dataclass(frozen=True, slots=True)
class Post:
    title: str
    date: dt.date
    slug: str
    source: Path
    body: str = ""
    description: str = ""
    tags: Tuple[str, ...] = ()
    draft: bool = False
    assets: Tuple[Path, ...] = ()
    extra: Dict[str, object] = field(default_factory=dict, compare=False)

    @property
    def display_date(self) -> str:
        return self.date.isoformat()

    @property
    def url(self) -> str:
        return f"posts/{self.slug}.html"

    @property
    def asset_dir(self) -> str:
        return f"posts/{self.slug}"


@dataclass(slots=True)
class Tag:
    name: str
    slug: str
    posts: List[Post] = field(default_factory=list)

    @property
    def url(self) -> str:
        return f"tags/{self.slug}.html"


@dataclass(frozen=True, slots=True)
class Site:
    title: str
    description: str = ""
    author: str = ""
    base_url: str = ""
    about_html: str = ""


@dataclass(frozen=True, slots=True)
class Page:
    path: str
    content: bytes


@dataclass(frozen=True, slots=True)
class PostView:
    """A post together with its rendered body, ready for templates."""

    post: Post
    html: str
    toc: str = ""
    summary: str = ""
    words: int = 0
    tag_links: Tuple[Tuple[str, str], ...] = ()
