from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Iterator

from .content import parse_post
from .errors import LoadError, ParseError, SiteError
from .models import Post
from .render import find_image_refs
from .utils import is_within

logger = logging.getLogger(__name__)

BUNDLE_INDEX = "index.md"


def scan_content(root: Path) -> Iterator[Path]:
    """Yield every Markdown file under ``root`` in a stable order.

    Hidden and underscore-prefixed files or directories are skipped.
    """
    for path in sorted(root.rglob("*.md"), key=lambda p: p.as_posix()):
        rel = path.relative_to(root)
        if any(part.startswith((".", "_")) for part in rel.parts):
            continue
        if path.is_file():
            yield path


class ContentStore:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def __iter__(self) -> Iterator[Path]:
        return scan_content(self.root)

    def load(self) -> list[Post]:
        return load_posts(self.root)


def default_slug(path: Path, root: Path) -> str:
    if path.name == BUNDLE_INDEX and path.parent != root:
        return path.parent.name
    return path.stem


def resolve_assets(post: Post) -> tuple[Path, ...]:
    post_dir = post.source.parent
    assets = []
    for ref in find_image_refs(post.body):
        candidate = post_dir / ref
        if not is_within(candidate, post_dir):
            raise ParseError(post.source, f"image {ref!r} points outside the post directory")
        if not candidate.is_file():
            raise ParseError(post.source, f"image {ref!r} not found")
        assets.append(candidate)
    return tuple(assets)


def load_file(path: Path, root: Path) -> Post:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(path, f"cannot read file: {exc}") from exc
    post = parse_post(text, path, default_slug(path, root))
    return dataclasses.replace(post, assets=resolve_assets(post))


def load_posts(root: Path) -> list[Post]:
    """Parse every post under ``root``.

    Keeps going after a broken file so that every problem, including slug
    collisions, is reported in a single :class:`LoadError`.
    """
    root = Path(root)
    if not root.is_dir():
        raise LoadError([ParseError(root, "posts directory not found")])

    posts: list[Post] = []
    errors: list[SiteError] = []
    owners: dict[str, Path] = {}
    for path in scan_content(root):
        try:
            post = load_file(path, root)
        except ParseError as exc:
            logger.debug("Failed to load %s: %s", path, exc.message)
            errors.append(exc)
            continue
        other = owners.get(post.slug)
        if other is not None:
            errors.append(ParseError(path, f"slug {post.slug!r} is already used by {other}"))
            continue
        owners[post.slug] = path
        logger.debug("Loaded %s as %s", path, post.slug)
        posts.append(post)

    if errors:
        raise LoadError(errors)
    logger.info("Loaded %d posts from %s", len(posts), root)
    return posts
