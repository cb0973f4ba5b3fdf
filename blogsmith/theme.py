from __future__ import annotations

import html
from pathlib import Path
from typing import Callable, Mapping, Optional

from .errors import RenderError
from .models import PostView, Site, Tag
from .render import highlight_css, render_template
from .utils import join_url

PageTemplate = Callable[[dict], str]

DEFAULT_LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{title}}</title>
<meta name="description" content="{{site_description}}">
<link rel="stylesheet" href="{{root}}/css/style.css">
<link rel="stylesheet" href="{{root}}/css/highlight.css">
{{extra_head}}
</head>
<body>
<header class="site-header">
<a class="site-name" href="{{root}}/index.html">{{site_name}}</a>
<nav class="site-nav">
<a href="{{root}}/index.html">Home</a>
<a href="{{root}}/archive.html">Archive</a>
<a href="{{root}}/tags.html">Tags</a>
</nav>
</header>
<div class="layout">
<main class="content">{{content}}</main>
<aside class="sidebar">{{sidebar}}</aside>
</div>
<footer class="site-footer">{{footer}}</footer>
</body>
</html>
"""

DEFAULT_CSS = """body { margin: 0; font-family: system-ui, sans-serif; line-height: 1.6; color: #222; }
a { color: #0b5fa5; }
.site-header, .site-footer { padding: 1rem 2rem; background: #f5f5f5; }
.site-header { display: flex; justify-content: space-between; align-items: center; }
.site-name { font-weight: 700; font-size: 1.25rem; text-decoration: none; }
.site-nav a { margin-left: 1rem; }
.layout { display: flex; gap: 2rem; max-width: 64rem; margin: 0 auto; padding: 2rem; }
.content { flex: 3; min-width: 0; }
.sidebar { flex: 1; }
.post-card { margin-bottom: 2rem; }
.post-meta { color: #666; font-size: 0.9rem; display: flex; gap: 1rem; flex-wrap: wrap; }
.chip { background: #eef; border-radius: 0.75rem; padding: 0 0.5rem; text-decoration: none; }
.draft-badge { background: #fdd; border-radius: 0.25rem; padding: 0 0.5rem; }
.pagination { display: flex; gap: 1rem; align-items: center; }
.page-link.is-disabled { color: #aaa; }
.page-number.is-active { font-weight: 700; }
.post-body img { max-width: 100%; }
.tag-list .count, .archive-date { color: #666; margin-left: 0.5rem; }
"""


def build_tag_list(tags: list[Tag], root: str) -> str:
    items = []
    for tag in sorted(tags, key=lambda t: (-len(t.posts), t.slug)):
        items.append(
            f'<li><a href="{root}/{tag.url}">{html.escape(tag.name)}</a>'
            f'<span class="count">{len(tag.posts)}</span></li>'
        )
    return "\n".join(items) if items else "<li>No tags yet.</li>"


def build_sidebar(tags: list[Tag], root: str, about_html: str, toc_html: str = "") -> str:
    panels = [
        '<div class="panel">'
        "<h3>About</h3>"
        f"{about_html}"
        "</div>"
    ]
    if toc_html and "<li" in toc_html:
        panels.append(
            '<div class="panel">'
            "<h3>Contents</h3>"
            f"{toc_html}"
            "</div>"
        )
    panels.append(
        '<div class="panel">'
        "<h3>Tags</h3>"
        f'<ul class="tag-list">{build_tag_list(tags, root)}</ul>'
        "</div>"
    )
    return "".join(panels)


def tag_chip(name: str, url: str, root: str) -> str:
    if not url:
        return f'<span class="chip">{html.escape(name)}</span>'
    return f'<a class="chip" href="{root}/{url}">{html.escape(name)}</a>'


def tag_chips(view: PostView, root: str) -> str:
    return " ".join(tag_chip(name, url, root) for name, url in view.tag_links)


def build_post_cards(views: list[PostView], root: str) -> str:
    cards = []
    for view in views:
        post = view.post
        url = f"{root}/{post.url}"
        cards.append(
            '<article class="post-card">'
            '<div class="post-meta">'
            f'<span class="post-date">{post.display_date}</span>'
            f'<span class="post-words">{view.words} words</span>'
            f'<span class="post-tags">{tag_chips(view, root)}</span>'
            "</div>"
            f'<h2 class="post-title"><a href="{url}">{html.escape(post.title)}</a></h2>'
            f'<p class="post-summary">{html.escape(view.summary)}</p>'
            f'<a class="post-more" href="{url}">Read more</a>'
            "</article>"
        )
    return "\n".join(cards)


def page_url(page: int) -> str:
    if page == 1:
        return "index.html"
    return f"page-{page}.html"


def build_pagination(page: int, total_pages: int) -> str:
    if total_pages <= 1:
        return ""
    items = []
    if page > 1:
        items.append(f'<a class="page-link" href="./{page_url(page - 1)}">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    numbers = []
    for num in range(1, total_pages + 1):
        if num == page:
            numbers.append(f'<span class="page-number is-active">{num}</span>')
        else:
            numbers.append(f'<a class="page-number" href="./{page_url(num)}">{num}</a>')
    items.append(f'<div class="page-numbers">{"".join(numbers)}</div>')
    if page < total_pages:
        items.append(f'<a class="page-link" href="./{page_url(page + 1)}">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def section_head(title: str, blurb: str) -> str:
    return f'<div class="section-head"><h2>{html.escape(title)}</h2><p>{html.escape(blurb)}</p></div>'


def listing_template(context: dict) -> str:
    views = context["posts"]
    if not views:
        cards = '<p class="empty">No posts yet.</p>'
    else:
        cards = build_post_cards(views, context["root"])
    return (
        section_head("Latest posts", f"Page {context['page']} of {context['total_pages']}")
        + f'<div class="post-grid">{cards}</div>'
        + build_pagination(context["page"], context["total_pages"])
    )


def post_template(context: dict) -> str:
    view: PostView = context["view"]
    post = view.post
    root = context["root"]
    badge = '<span class="draft-badge">Draft</span>' if post.draft else ""
    return (
        '<article class="post">'
        '<div class="post-meta">'
        f'<span class="post-date">{post.display_date}</span>'
        f'<span class="post-words">{view.words} words</span>'
        f"{badge}"
        f'<span class="post-tags">{tag_chips(view, root)}</span>'
        "</div>"
        f'<h1 class="post-title">{html.escape(post.title)}</h1>'
        f'<div class="post-body">{view.html}</div>'
        f'<div class="post-footer"><a href="{root}/index.html">Back to home</a></div>'
        "</article>"
    )


def tag_template(context: dict) -> str:
    tag: Tag = context["tag"]
    count = len(tag.posts)
    return (
        section_head(tag.name, f"{count} post{'s' if count != 1 else ''} tagged {tag.name}.")
        + f'<div class="post-grid">{build_post_cards(context["posts"], context["root"])}</div>'
    )


def tags_template(context: dict) -> str:
    return section_head("Tags", "Every tag used on this site.") + (
        f'<ul class="tag-list">{build_tag_list(context["tags"], context["root"])}</ul>'
    )


def archive_template(context: dict) -> str:
    root = context["root"]
    sections = []
    for year, views in context["groups"]:
        rows = []
        for view in views:
            rows.append(
                f'<li><a href="{root}/{view.post.url}">{html.escape(view.post.title)}</a>'
                f'<span class="archive-date">{view.post.display_date}</span></li>'
            )
        sections.append(
            f'<section class="archive-group"><h3>{year}</h3>'
            f'<ul class="archive-list">{"".join(rows)}</ul></section>'
        )
    if not sections:
        sections.append('<p class="archive-empty">No posts yet.</p>')
    return section_head("Archive", "All posts by year.") + "".join(sections)


def not_found_template(context: dict) -> str:
    return (
        section_head("404", "Page not found. Try heading back to the homepage.")
        + f'<p><a class="post-more" href="{context["root"]}/index.html">Back to home</a></p>'
    )


DEFAULT_TEMPLATES: dict[str, PageTemplate] = {
    "home": listing_template,
    "index": listing_template,
    "post": post_template,
    "tag": tag_template,
    "tags": tags_template,
    "archive": archive_template,
    "404": not_found_template,
}


class Theme:
    """Page templates keyed by page kind, the surrounding layout and static files."""

    def __init__(
        self,
        templates: Mapping[str, PageTemplate],
        layout: str = DEFAULT_LAYOUT,
        static_dir: Optional[Path] = None,
        static_files: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.templates = dict(templates)
        self.layout = layout
        self.static_dir = static_dir
        self.static_files = dict(static_files or {})

    def render(self, kind: str, context: dict) -> str:
        page = context.get("path", kind)
        template = self.templates.get(kind)
        if template is None:
            raise RenderError(page, f"theme has no {kind!r} template")
        try:
            site: Site = context["site"]
            root = context["root"]
            content = template(context)
            sidebar = build_sidebar(context["all_tags"], root, site.about_html, context.get("toc", ""))
            head = []
            if site.base_url:
                head.append(f'<link rel="canonical" href="{html.escape(join_url(site.base_url, page))}">')
            if context.get("extra_head"):
                head.append(context["extra_head"])
            return render_template(
                self.layout,
                title=html.escape(context["title"]),
                root=root,
                site_name=html.escape(site.title),
                site_description=html.escape(site.description),
                footer=html.escape(f"© {site.author or site.title}"),
                extra_head="\n".join(head),
                content=content,
                sidebar=sidebar,
            )
        except RenderError:
            raise
        except KeyError as exc:
            raise RenderError(page, f"missing value for {exc.args[0]!r}") from exc
        except (AttributeError, TypeError, ValueError) as exc:
            raise RenderError(page, str(exc)) from exc


def default_theme(highlight_style: str = "default") -> Theme:
    return Theme(
        DEFAULT_TEMPLATES,
        static_files={"css/style.css": DEFAULT_CSS, "css/highlight.css": highlight_css(highlight_style)},
    )


def load_theme(theme_dir: Optional[Path], highlight_style: str = "default") -> Theme:
    """Default theme, overridden by ``base.html`` and ``static/`` from ``theme_dir``."""
    theme = default_theme(highlight_style)
    if theme_dir is None:
        return theme
    theme_dir = Path(theme_dir)
    if not theme_dir.is_dir():
        raise RenderError(str(theme_dir), "theme directory not found")
    layout_path = theme_dir / "base.html"
    if layout_path.is_file():
        theme.layout = layout_path.read_text(encoding="utf-8")
    static_dir = theme_dir / "static"
    if static_dir.is_dir():
        theme.static_dir = static_dir
    return theme
