from __future__ import annotations

import datetime as dt
import html as html_lib
import re
from pathlib import Path
from typing import Optional

import yaml

from .errors import ParseError
from .models import Post
from .utils import parse_bool

FRONT_MATTER_DELIMITER = "---"
KNOWN_KEYS = ("title", "date", "description", "tags", "draft", "slug")

LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
DOUBLE_QUOTE_RE = re.compile(r"^(?P<indent>[ \t]*)>>(?!>)(?P<rest>.*)$")
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")
NON_LOCAL_PREFIXES = ("http://", "https://", "//", "data:", "#", "/", "mailto:")


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def parse_list(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    else:
        items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def parse_front_matter(text: str, path: Optional[Path] = None) -> tuple[dict, str]:
    """Split ``text`` into its YAML metadata block and the Markdown body.

    The block must open on the first line and be closed by a second
    ``---`` line. Anything else is a :class:`ParseError`.
    """
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_DELIMITER:
        raise ParseError(path, "missing front matter block (expected '---' on the first line)")

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == FRONT_MATTER_DELIMITER:
            end = i
            break
    if end is None:
        raise ParseError(path, "front matter block is not closed with '---'")

    try:
        meta = yaml.safe_load("\n".join(lines[1:end]))
    except (yaml.YAMLError, ValueError) as exc:
        raise ParseError(path, f"invalid YAML in front matter: {exc}") from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise ParseError(path, "front matter must be a mapping of keys to values")

    body = "\n".join(lines[end + 1 :])
    return {str(key).strip().lower(): value for key, value in meta.items()}, body


def serialize_front_matter(meta: dict, body: str = "") -> str:
    data = {}
    for key, value in meta.items():
        if isinstance(value, (tuple, set, frozenset)):
            value = list(value)
        data[key] = value
    block = yaml.safe_dump(data, allow_unicode=True, sort_keys=False, default_flow_style=False)
    text = f"{FRONT_MATTER_DELIMITER}\n{block}{FRONT_MATTER_DELIMITER}\n"
    if body:
        text += body if body.endswith("\n") else f"{body}\n"
    return text


def parse_date(value: object, path: Optional[Path] = None) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return dt.date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return dt.datetime.fromisoformat(text).date()
        except ValueError:
            pass
        raise ParseError(path, f"date {text!r} is not an ISO-8601 date")
    if value is None or value == "":
        raise ParseError(path, "missing required field 'date'")
    raise ParseError(path, f"date {value!r} is not an ISO-8601 date")


def parse_tags(value: object, path: Optional[Path] = None) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = parse_list(value)
    elif isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if isinstance(item, (dict, list)) or item is None:
                raise ParseError(path, f"tag {item!r} is not a string")
            items.append(str(item).strip())
    else:
        raise ParseError(path, "tags must be a list of strings")
    seen: dict[str, None] = {}
    for item in items:
        if item and item not in seen:
            seen[item] = None
    return tuple(seen)


def _parse_title(value: object, path: Optional[Path]) -> str:
    if isinstance(value, bool) or isinstance(value, (dict, list)):
        raise ParseError(path, "title must be a string")
    title = "" if value is None else str(value).strip()
    if not title:
        raise ParseError(path, "missing required field 'title'")
    return title


def parse_post(text: str, source: Path, slug: Optional[str] = None) -> Post:
    """Build a :class:`Post` from raw file content.

    ``slug`` is the slug derived from the file location; an explicit
    ``slug`` key in the front matter takes precedence.
    """
    meta, body = parse_front_matter(text, source)
    title = _parse_title(meta.get("title"), source)
    date = parse_date(meta.get("date"), source)
    description = meta.get("description")
    if description is not None and not isinstance(description, str):
        raise ParseError(source, "description must be a string")
    explicit_slug = str(meta.get("slug") or "").strip()
    if explicit_slug:
        slug = explicit_slug
    return Post(
        title=title,
        date=date,
        slug=slugify(slug or source.stem),
        source=source,
        body=body,
        description=(description or "").strip(),
        tags=parse_tags(meta.get("tags"), source),
        draft=parse_bool(meta.get("draft")),
        extra={key: value for key, value in meta.items() if key not in KNOWN_KEYS},
    )


def post_front_matter(post: Post) -> dict:
    meta: dict = {"title": post.title, "date": post.date}
    if post.description:
        meta["description"] = post.description
    if post.tags:
        meta["tags"] = list(post.tags)
    if post.draft:
        meta["draft"] = True
    meta.update(post.extra)
    return meta


def is_local_ref(src: str) -> bool:
    return bool(src) and not src.startswith(NON_LOCAL_PREFIXES) and "://" not in src


def normalize_list_spacing(text: str) -> str:
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        quote_match = DOUBLE_QUOTE_RE.match(line)
        if quote_match:
            rest = quote_match.group("rest").lstrip()
            if rest:
                line = f'{quote_match.group("indent")}> {rest}'
            else:
                line = f'{quote_match.group("indent")}>'
        list_match = LIST_MARKER_RE.match(line)
        if list_match:
            if not list_match.group("indent"):
                if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                    out.append("")
        out.append(line)
    return "\n".join(out)


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count
