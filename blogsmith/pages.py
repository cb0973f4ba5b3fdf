from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from .cache import hash_text
from .content import count_words, slugify
from .models import Page, Post, PostView, Site, Tag
from .render import fix_relative_img_src, markdown_to_html, strip_tags, summarize
from .theme import Theme, page_url
from .utils import root_for

logger = logging.getLogger(__name__)

DRAFTS_DIR = "drafts"


def order_posts(posts: Iterable[Post]) -> list[Post]:
    """Newest first; posts sharing a date are ordered by slug."""
    return sorted(posts, key=lambda post: (-post.date.toordinal(), post.slug))


def unique_slug(candidate: str, key: str, used: set[str]) -> str:
    if candidate not in used:
        return candidate
    for length in (8, 12, 16):
        slug = f"{candidate}-{hash_text(key)[:length]}"
        if slug not in used:
            return slug
    counter = 2
    while f"{candidate}-{counter}" in used:
        counter += 1
    return f"{candidate}-{counter}"


def build_tag_index(posts: Iterable[Post]) -> dict[str, Tag]:
    """Group posts by case-folded tag name.

    Tags differing only in case share one page, named by the first spelling
    met in date order. Distinct tags whose slugs clash, such as ``C++`` and
    ``C#``, keep separate pages: all but the first get a hash suffix.
    """
    index: dict[str, Tag] = {}
    for post in order_posts(posts):
        for name in post.tags:
            key = name.casefold()
            tag = index.get(key)
            if tag is None:
                tag = index[key] = Tag(name=name, slug="")
            if not tag.posts or tag.posts[-1] is not post:
                tag.posts.append(post)
    used: set[str] = set()
    for key in sorted(index):
        tag = index[key]
        tag.slug = unique_slug(slugify(tag.name), key, used)
        used.add(tag.slug)
    return dict(sorted(index.items(), key=lambda item: item[1].slug))


def paginate(items: Sequence, per_page: int) -> list[list]:
    per_page = max(1, per_page)
    if not items:
        return [[]]
    return [list(items[start : start + per_page]) for start in range(0, len(items), per_page)]


def post_page_path(post: Post, private: bool = False) -> str:
    if private:
        return f"{DRAFTS_DIR}/{post.slug}.html"
    return post.url


def collect_assets(
    posts: Iterable[Post], include_drafts: bool = False, render_drafts: bool = False
) -> list[tuple[Path, str]]:
    """``(source, output path)`` for every image referenced by a rendered post.

    Images land in a directory named after the slug, beside the post page.
    """
    targets = []
    for post in order_posts(posts):
        private = post.draft and not include_drafts
        if private and not render_drafts:
            continue
        page_dir = post_page_path(post, private).rsplit("/", 1)[0]
        post_dir = post.source.parent
        for asset in post.assets:
            rel = asset.relative_to(post_dir).as_posix()
            targets.append((asset, f"{page_dir}/{post.slug}/{rel}"))
    return targets


def tag_url(tag_index: Mapping[str, Tag], name: str) -> str:
    """Page URL for tag ``name``, or "" when it has no page (a private draft's tag)."""
    tag = tag_index.get(name.casefold())
    return tag.url if tag is not None else ""


def render_post_view(
    post: Post, toc_depth: str = "2-4", tag_index: Optional[Mapping[str, Tag]] = None
) -> PostView:
    tag_index = tag_index or {}
    html_content, toc_html = markdown_to_html(post.body, toc_depth)
    html_content = fix_relative_img_src(html_content, post.slug)
    return PostView(
        post=post,
        html=html_content,
        toc=toc_html,
        summary=post.description or summarize(html_content),
        words=count_words(strip_tags(html_content)),
        tag_links=tuple((name, tag_url(tag_index, name)) for name in post.tags),
    )


def _run(func, items: list, workers: int) -> list:
    workers = max(1, int(workers or 1))
    if workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=min(workers, len(items))) as executor:
        return list(executor.map(func, items))


def render_site(
    posts: Sequence[Post],
    theme: Theme,
    site: Site,
    per_page: int = 8,
    include_drafts: bool = False,
    render_drafts: bool = False,
    workers: int = 1,
    toc_depth: str = "2-4",
) -> list[Page]:
    """Render every page of the site.

    ``include_drafts`` builds a preview where drafts are listed like any
    other post. Otherwise drafts are left out of every listing and, with
    ``render_drafts``, rendered under ``drafts/`` only.
    """
    public = order_posts(post for post in posts if include_drafts or not post.draft)
    private = []
    if render_drafts and not include_drafts:
        private = order_posts(post for post in posts if post.draft)

    private_slugs = {post.slug for post in private}
    tag_index = build_tag_index(public)
    all_tags = list(tag_index.values())
    chunks = paginate(public, per_page)

    rendered = _run(lambda post: render_post_view(post, toc_depth, tag_index), public + private, workers)
    views = {view.post.slug: view for view in rendered}

    def context(path: str, title: str, **extra: object) -> dict:
        data = {"path": path, "root": root_for(path), "title": title, "site": site, "all_tags": all_tags}
        data.update(extra)
        return data

    jobs: list[tuple[str, dict]] = []
    for post in public + private:
        path = post_page_path(post, post.slug in private_slugs)
        view = views[post.slug]
        jobs.append(("post", context(path, f"{post.title} | {site.title}", view=view, toc=view.toc)))

    total_pages = len(chunks)
    for number, chunk in enumerate(chunks, start=1):
        kind = "home" if number == 1 else "index"
        title = f"{site.title} | Home" if number == 1 else f"{site.title} | Page {number}"
        jobs.append(
            (
                kind,
                context(
                    page_url(number),
                    title,
                    posts=[views[post.slug] for post in chunk],
                    page=number,
                    total_pages=total_pages,
                ),
            )
        )

    for tag in all_tags:
        jobs.append(
            (
                "tag",
                context(tag.url, f"{tag.name} | {site.title}", tag=tag, posts=[views[p.slug] for p in tag.posts]),
            )
        )
    jobs.append(("tags", context("tags.html", f"Tags | {site.title}", tags=all_tags)))

    years: dict[int, list[PostView]] = {}
    for post in public:
        years.setdefault(post.date.year, []).append(views[post.slug])
    jobs.append(("archive", context("archive.html", f"Archive | {site.title}", groups=list(years.items()))))
    jobs.append(("404", context("404.html", f"404 | {site.title}")))

    def render_job(job: tuple[str, dict]) -> Page:
        kind, data = job
        return Page(data["path"], theme.render(kind, data).encode("utf-8"))

    pages = _run(render_job, jobs, workers)
    pages.extend(Page(path, text.encode("utf-8")) for path, text in theme.static_files.items())
    logger.info("Rendered %d pages (%d posts, %d tags)", len(pages), len(public), len(all_tags))
    return sorted(pages, key=lambda page: page.path)
