from __future__ import annotations

import html
import re

import markdown
from pygments.formatters import HtmlFormatter

from .content import is_local_ref, normalize_list_spacing

IMG_SRC_RE = re.compile(r"<img([^>]*?\s)src=([\"'])(.*?)\2", re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")
SUMMARY_LENGTH = 200


def markdown_to_html(body: str, toc_depth: str = "2-4") -> tuple[str, str]:
    """Render a post body, returning ``(html, toc_html)``."""
    md = markdown.Markdown(
        extensions=["fenced_code", "tables", "toc", "codehilite"],
        extension_configs={
            "toc": {"toc_depth": toc_depth},
            "codehilite": {"guess_lang": False, "css_class": "highlight"},
        },
    )
    html_content = md.convert(normalize_list_spacing(body))
    toc_html = md.toc
    md.reset()
    return html_content, toc_html


def highlight_css(style: str = "default") -> str:
    return HtmlFormatter(style=style).get_style_defs(".highlight")


def fix_relative_img_src(html_text: str, prefix: str) -> str:
    def repl(match: re.Match) -> str:
        attrs, quote, src = match.groups()
        if not is_local_ref(src):
            return match.group(0)
        while src.startswith("./"):
            src = src[2:]
        return f"<img{attrs}src={quote}{prefix}/{src}{quote}"

    return IMG_SRC_RE.sub(repl, html_text)


def find_image_refs(body: str) -> list[str]:
    """Local image paths a post body renders to, in order of appearance.

    Taken from the rendered HTML, so code spans and code blocks never count
    and reference-style images do.
    """
    html_text, _ = markdown_to_html(body)
    refs: dict[str, None] = {}
    for match in IMG_SRC_RE.finditer(html_text):
        src = html.unescape(match.group(3)).split("#", 1)[0].split("?", 1)[0]
        if is_local_ref(src) and src not in refs:
            refs[src] = None
    return list(refs)


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def summarize(html_text: str, limit: int = SUMMARY_LENGTH) -> str:
    summary = " ".join(html.unescape(strip_tags(html_text)).split())
    return summary[:limit] + ("..." if len(summary) > limit else "")


def render_template(template: str, **context: str) -> str:
    """Fill ``{{key}}`` slots in ``template`` in a single pass.

    Text coming from a value is never treated as a slot. Raises ``KeyError``
    for a slot with no value.
    """
    return PLACEHOLDER_RE.sub(lambda match: context[match.group(1)], template)
