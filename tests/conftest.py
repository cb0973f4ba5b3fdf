import json
from pathlib import Path

import pytest

from blogsmith.loader import load_posts
from blogsmith.models import Site
from blogsmith.pages import render_site
from blogsmith.theme import default_theme


def make_post_text(title="Untitled", date="2021-01-01", body="Hello world.", **meta):
    lines = ["---", f"title: {json.dumps(title)}", f"date: {date}"]
    for key, value in meta.items():
        lines.append(f"{key}: {json.dumps(value)}")
    lines.append("---")
    lines.append(body)
    return "\n".join(lines) + "\n"


@pytest.fixture
def posts_dir(tmp_path: Path) -> Path:
    path = tmp_path / "posts"
    path.mkdir()
    return path


@pytest.fixture
def write_post(posts_dir: Path):
    def _write(rel: str, **kwargs) -> Path:
        path = posts_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(make_post_text(**kwargs), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def site() -> Site:
    return Site(title="Test Blog", description="Notes.", author="Tester")


@pytest.fixture
def build_pages(posts_dir: Path, site: Site):
    """Load the posts directory and render it, returning ``{path: html}``."""

    def _build(**kwargs) -> dict:
        posts = load_posts(posts_dir)
        pages = render_site(posts, default_theme(), site, **kwargs)
        return {page.path: page.content.decode("utf-8") for page in pages}

    return _build
