from __future__ import annotations

import argparse
import datetime as dt
import functools
import logging
import sys
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Optional, Sequence

from .cache import hash_inputs, hash_tree, load_lock, write_lock
from .config import DEFAULT_CONFIG, BuildOptions, load_config, resolve_path
from .errors import LoadError, SiteError
from .loader import load_posts
from .models import Site
from .pages import collect_assets, render_site
from .publish import BUILD_MARKER, build_marker, clean_output_dir, publish
from .theme import load_theme
from .utils import parse_bool, parse_int

logger = logging.getLogger(__name__)

COMMANDS = ("build", "serve", "clean")
DEFAULT_LOCK_FILE = "build.lock.json"


def lock_path_for(options: BuildOptions) -> Path:
    if options.lock_file is not None:
        return options.lock_file
    return resolve_path(DEFAULT_LOCK_FILE, options.config)


def build_site(options: BuildOptions, project_root: Optional[Path] = None) -> bool:
    """Load, render and publish the site. Returns False when an incremental build had nothing to do."""
    project_root = project_root or Path.cwd()
    lock_path = lock_path_for(options)
    inputs_hash = hash_inputs([options.posts, options.static, options.theme], options.settings())

    if options.incremental and options.output.exists():
        previous = load_lock(lock_path)
        if (
            previous.get("inputs_hash") == inputs_hash
            and previous.get("tree") == hash_tree(options.output, exclude=[BUILD_MARKER])
        ):
            logger.info("Inputs unchanged since last build (%s)", lock_path)
            print("No changes detected. Build skipped.")
            return False

    posts = load_posts(options.posts)
    theme = load_theme(options.theme, options.highlight_style)
    site = Site(
        title=options.site_name,
        description=options.site_description,
        author=options.author,
        base_url=options.site_url,
        about_html=options.about_html,
    )
    pages = render_site(
        posts,
        theme,
        site,
        per_page=options.posts_per_page,
        include_drafts=options.include_drafts,
        render_drafts=options.render_drafts,
        workers=options.build_workers,
        toc_depth=options.toc_depth,
    )

    extra_files = {}
    if options.custom_domain:
        extra_files["CNAME"] = f"{options.custom_domain}\n"
    if options.write_nojekyll:
        extra_files[".nojekyll"] = ""
    if options.build_marker:
        built_at = dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()
        extra_files[BUILD_MARKER] = build_marker(built_at)

    static_dirs = [path for path in (theme.static_dir, options.static) if path is not None]
    publish(
        pages,
        options.output,
        assets=collect_assets(posts, options.include_drafts, options.render_drafts),
        static_dirs=static_dirs,
        extra_files=extra_files,
        project_root=project_root,
    )

    if options.incremental:
        write_lock(
            lock_path,
            {"inputs_hash": inputs_hash, "tree": hash_tree(options.output, exclude=[BUILD_MARKER])},
        )
    return True


def serve(directory: Path, host: str, port: int) -> None:
    handler = functools.partial(SimpleHTTPRequestHandler, directory=str(directory))
    with ThreadingHTTPServer((host, port), handler) as server:
        print(f"Serving {directory} at http://{host}:{port}/ (Ctrl+C to stop)")
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            print("Stopped.")


def report(exc: SiteError) -> None:
    if isinstance(exc, LoadError):
        print(f"Build failed with {len(exc.errors)} content error(s):", file=sys.stderr)
        for error in exc.errors:
            print(f"  {error}", file=sys.stderr)
    else:
        print(f"Build failed: {exc}", file=sys.stderr)


def make_parser(config: dict, config_path: str) -> argparse.ArgumentParser:
    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        value = cfg_value(key, default)
        return default if value is None else str(value)

    def cfg_bool(key: str, default: bool) -> bool:
        value = cfg_value(key, default)
        return parse_bool(value) if value is not None else default

    def cfg_int(key: str, default: int) -> int:
        value = cfg_value(key, default)
        return parse_int(value, default)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    common.add_argument("--verbose", "-v", action="store_true", help="Log progress to stderr.")

    site = argparse.ArgumentParser(add_help=False)
    site.add_argument("--posts", default=cfg_str("posts", "posts"), help="Directory containing Markdown posts.")
    site.add_argument("--static", default=cfg_str("static", "static"), help="Directory containing static assets.")
    site.add_argument("--theme", default=cfg_str("theme", ""), help="Theme directory (base.html and static/).")
    site.add_argument("--site-name", default=cfg_str("site_name", "My Blog"), help="Site title.")
    site.add_argument("--site-description", default=cfg_str("site_description", ""), help="Site description.")
    site.add_argument("--author", default=cfg_str("author", ""), help="Site author.")
    site.add_argument("--site-url", default=cfg_str("site_url", ""), help="Public base URL of the site.")
    site.add_argument(
        "--posts-per-page",
        default=cfg_int("posts_per_page", 8),
        type=int,
        help="Number of posts on the home page before pagination.",
    )
    site.add_argument(
        "--build-workers",
        default=cfg_int("build_workers", 1),
        type=int,
        help="Number of worker threads for rendering.",
    )
    site.add_argument(
        "--toc-depth",
        default=cfg_str("toc_depth", "2-4"),
        help="Heading depth range for TOC (e.g. 2-4).",
    )
    site.add_argument(
        "--highlight-style",
        default=cfg_str("highlight_style", "default"),
        help="Pygments style used for code blocks.",
    )
    site.add_argument(
        "--render-drafts",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("render_drafts", False),
        help="Render drafts under drafts/ without listing them.",
    )
    site.add_argument("--about-text", default=cfg_str("about_text", ""), help="Text for the sidebar About panel.")
    site.add_argument("--about-html", default=cfg_str("about_html", ""), help="HTML for the sidebar About panel.")
    site.add_argument(
        "--about-file",
        default=cfg_str("about_file", ""),
        help="Path to file used for the sidebar About panel.",
    )

    parser = argparse.ArgumentParser(prog="blogsmith", description="Markdown static blog generator.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", parents=[common, site], help="Build the site.")
    build.add_argument("--output", default=cfg_str("output", "public"), help="Output directory for the site.")
    build.add_argument(
        "--drafts",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("drafts", False),
        help="Build a preview that lists drafts like published posts.",
    )
    build.add_argument(
        "--incremental",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("incremental", False),
        help="Skip the build when nothing changed since the last one.",
    )
    build.add_argument(
        "--lock-file",
        default=cfg_str("lock_file", DEFAULT_LOCK_FILE),
        help="Path to build lock JSON.",
    )
    build.add_argument(
        "--custom-domain",
        default=cfg_str("custom_domain", ""),
        help="Custom domain to write into CNAME.",
    )
    build.add_argument(
        "--write-nojekyll",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("write_nojekyll", True),
        help="Write .nojekyll in the output directory.",
    )
    build.add_argument(
        "--build-marker",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("build_marker", False),
        help=f"Write the build time to {BUILD_MARKER}.",
    )

    preview = subparsers.add_parser("serve", parents=[common, site], help="Build a draft preview and serve it.")
    preview.add_argument(
        "--output",
        default=cfg_str("preview_output", ".preview"),
        help="Directory for the preview build.",
    )
    preview.add_argument("--host", default=cfg_str("host", "127.0.0.1"), help="Address to bind.")
    preview.add_argument("--port", default=cfg_int("port", 8000), type=int, help="Port to listen on.")

    clean = subparsers.add_parser("clean", parents=[common], help="Remove the output directory and lock file.")
    clean.add_argument("--output", default=cfg_str("output", "public"), help="Output directory for the site.")
    clean.add_argument(
        "--lock-file",
        default=cfg_str("lock_file", DEFAULT_LOCK_FILE),
        help="Path to build lock JSON.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or (argv[0] not in COMMANDS and argv[0] not in {"-h", "--help"}):
        argv.insert(0, "build")

    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default=DEFAULT_CONFIG)
    pre_args, _ = pre_parser.parse_known_args(argv[1:])
    try:
        config = load_config(Path(pre_args.config))
    except SiteError as exc:
        print(exc, file=sys.stderr)
        return 1

    args = make_parser(config, pre_args.config).parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "clean":
            clean_output_dir(Path(args.output), Path.cwd())
            resolve_path(args.lock_file, Path(args.config)).unlink(missing_ok=True)
            print(f"Removed {args.output}")
            return 0

        if args.command == "serve":
            args.drafts = True
        options = BuildOptions.from_args(args)
        start = time.perf_counter()
        built = build_site(options)
        elapsed = time.perf_counter() - start
        print(f"Build completed in {elapsed:.2f}s.")
        if built:
            print(f"Site generated in: {options.output}")
        if args.command == "serve":
            serve(options.output, args.host, args.port)
    except SiteError as exc:
        report(exc)
        return 1
    return 0
