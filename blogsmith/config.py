from __future__ import annotations

import html
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import markdown
import yaml

from .errors import ConfigError

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

DEFAULT_CONFIG = "site.toml"


def load_config(path: Path) -> dict:
    """Read a TOML, YAML or JSON site config; a missing file means no settings."""
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def resolve_path(value: str, config_path: Path) -> Path:
    path = Path(value)
    if not path.is_absolute():
        path = config_path.resolve().parent / path
    return path


def resolve_about_html(
    about_html: str = "",
    about_file: str = "",
    about_text: str = "",
    site_description: str = "",
    config_path: Path = Path(DEFAULT_CONFIG),
) -> str:
    about_html = (about_html or "").strip()
    if about_html:
        return about_html

    file_value = (about_file or "").strip()
    if file_value:
        path = resolve_path(file_value, config_path)
        if not path.exists():
            raise ConfigError(f"About file not found: {path}")
        text = path.read_text(encoding="utf-8")
        suffix = path.suffix.lower()
        if suffix in {".html", ".htm"}:
            return text
        if suffix == ".md":
            md = markdown.Markdown(extensions=["fenced_code", "tables"])
            return md.convert(text)
        escaped = html.escape(text).replace("\n", "<br>")
        return f"<p>{escaped}</p>"

    text_value = (about_text or "").strip()
    if text_value:
        escaped = html.escape(text_value).replace("\n", "<br>")
        return f"<p>{escaped}</p>"

    return f"<p>{html.escape(site_description)}</p>"


@dataclass
class BuildOptions:
    posts: Path
    output: Path
    static: Optional[Path] = None
    theme: Optional[Path] = None
    config: Path = Path(DEFAULT_CONFIG)
    site_name: str = "My Blog"
    site_description: str = ""
    author: str = ""
    site_url: str = ""
    about_html: str = ""
    posts_per_page: int = 8
    build_workers: int = 1
    toc_depth: str = "2-4"
    highlight_style: str = "default"
    include_drafts: bool = False
    render_drafts: bool = False
    incremental: bool = False
    lock_file: Optional[Path] = None
    custom_domain: str = ""
    write_nojekyll: bool = True
    build_marker: bool = False

    @classmethod
    def from_args(cls, args: object) -> "BuildOptions":
        config_path = Path(getattr(args, "config", DEFAULT_CONFIG))
        static = (getattr(args, "static", "") or "").strip()
        theme = (getattr(args, "theme", "") or "").strip()
        lock_file = (getattr(args, "lock_file", "") or "").strip()
        site_description = getattr(args, "site_description", "") or ""
        return cls(
            posts=Path(args.posts),
            output=Path(args.output),
            static=Path(static) if static else None,
            theme=Path(theme) if theme else None,
            config=config_path,
            site_name=args.site_name,
            site_description=site_description,
            author=getattr(args, "author", "") or "",
            site_url=getattr(args, "site_url", "") or "",
            about_html=resolve_about_html(
                getattr(args, "about_html", ""),
                getattr(args, "about_file", ""),
                getattr(args, "about_text", ""),
                site_description,
                config_path,
            ),
            posts_per_page=max(1, int(getattr(args, "posts_per_page", 8))),
            build_workers=int(getattr(args, "build_workers", 1) or 1),
            toc_depth=getattr(args, "toc_depth", "2-4"),
            highlight_style=getattr(args, "highlight_style", "default"),
            include_drafts=bool(getattr(args, "drafts", False)),
            render_drafts=bool(getattr(args, "render_drafts", False)),
            incremental=bool(getattr(args, "incremental", False)),
            lock_file=resolve_path(lock_file, config_path) if lock_file else None,
            custom_domain=(getattr(args, "custom_domain", "") or "").strip(),
            write_nojekyll=bool(getattr(args, "write_nojekyll", True)),
            build_marker=bool(getattr(args, "build_marker", False)),
        )

    def settings(self) -> dict:
        """Options that change the rendered output, for the incremental lock."""
        data = asdict(self)
        for key in ("config", "incremental", "lock_file", "build_workers"):
            data.pop(key, None)
        return data
