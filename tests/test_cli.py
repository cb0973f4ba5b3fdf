import pytest

from blogsmith import cli
from blogsmith.cache import hash_tree
from blogsmith.publish import BUILD_MARKER


@pytest.fixture(autouse=True)
def in_project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_build_writes_site(tmp_path, write_post, capsys):
    write_post("hello.md", title="Hello", tags=["swift"])

    assert cli.main(["build", "--posts", "posts", "--output", "public", "--site-name", "My Notes"]) == 0

    output = tmp_path / "public"
    for rel in ("index.html", "posts/hello.html", "tags/swift.html", "tags.html", "archive.html", "404.html"):
        assert (output / rel).is_file(), rel
    assert (output / ".nojekyll").exists()
    assert "My Notes" in (output / "index.html").read_text(encoding="utf-8")
    assert "Site generated in: public" in capsys.readouterr().out


def test_build_is_the_default_command(tmp_path, write_post):
    write_post("hello.md", title="Hello")

    assert cli.main(["--posts", "posts", "--output", "public"]) == 0
    assert (tmp_path / "public" / "posts" / "hello.html").exists()


def test_repeated_builds_are_byte_identical(tmp_path, write_post, posts_dir):
    (posts_dir / "trip").mkdir()
    (posts_dir / "trip" / "photo.jpg").write_bytes(b"jpeg")
    write_post("trip/index.md", title="Trip", date="2021-07-08", tags=["travel"], body="![p](photo.jpg)")
    write_post("notes.md", title="Notes", date="2019-12-05", tags=["travel", "misc"])
    args = ["build", "--posts", "posts", "--output", "public", "--build-marker"]

    assert cli.main(args) == 0
    first = hash_tree(tmp_path / "public", exclude=[BUILD_MARKER])
    assert cli.main(args) == 0
    second = hash_tree(tmp_path / "public", exclude=[BUILD_MARKER])

    assert first == second
    assert "posts/trip/photo.jpg" in first
    assert (tmp_path / "public" / BUILD_MARKER).exists()


def test_slug_collision_fails_without_output(tmp_path, write_post, capsys):
    write_post("hello.md", title="One")
    write_post("hello/index.md", title="Two")

    assert cli.main(["build", "--posts", "posts", "--output", "public"]) == 1

    assert not (tmp_path / "public").exists()
    err = capsys.readouterr().err
    assert "hello.md" in err
    assert "index.md" in err


def test_every_content_error_is_reported(tmp_path, write_post, capsys):
    write_post("ok.md", title="Fine")
    write_post("no-date.md", title="No date", date="")
    (tmp_path / "posts" / "no-front-matter.md").write_text("plain text\n", encoding="utf-8")

    assert cli.main(["build", "--posts", "posts", "--output", "public"]) == 1

    err = capsys.readouterr().err
    assert "2 content error(s)" in err
    assert "no-date.md" in err
    assert "no-front-matter.md" in err
    assert not (tmp_path / "public").exists()


def test_incremental_build_skips_unchanged_content(tmp_path, write_post, capsys):
    write_post("hello.md", title="Hello")
    args = ["build", "--posts", "posts", "--output", "public", "--incremental"]

    assert cli.main(args) == 0
    assert (tmp_path / "build.lock.json").exists()
    capsys.readouterr()

    assert cli.main(args) == 0
    assert "No changes detected" in capsys.readouterr().out

    write_post("hello.md", title="Hello again")
    assert cli.main(args) == 0
    assert "Hello again" in (tmp_path / "public" / "posts" / "hello.html").read_text(encoding="utf-8")


def test_config_file_provides_defaults(tmp_path, write_post):
    (tmp_path / "site.toml").write_text(
        'site_name = "From Config"\nposts_per_page = 1\noutput = "site"\n', encoding="utf-8"
    )
    write_post("a.md", title="A", date="2020-01-01")
    write_post("b.md", title="B", date="2020-01-02")

    assert cli.main(["build"]) == 0

    assert "From Config" in (tmp_path / "site" / "index.html").read_text(encoding="utf-8")
    assert (tmp_path / "site" / "page-2.html").exists()

    assert cli.main(["build", "--site-name", "From Flag"]) == 0
    assert "From Flag" in (tmp_path / "site" / "index.html").read_text(encoding="utf-8")


def test_invalid_config_fails(tmp_path, capsys):
    (tmp_path / "site.yaml").write_text("site_name: [unclosed\n", encoding="utf-8")

    assert cli.main(["build", "--config", "site.yaml"]) == 1
    assert "Invalid YAML" in capsys.readouterr().err


def test_drafts_flag_builds_a_preview(tmp_path, write_post):
    write_post("secret.md", title="Secret", draft=True)

    assert cli.main(["build", "--output", "public"]) == 0
    assert not (tmp_path / "public" / "posts" / "secret.html").exists()

    assert cli.main(["build", "--output", "preview", "--drafts"]) == 0
    assert (tmp_path / "preview" / "posts" / "secret.html").exists()


def test_serve_builds_preview_with_drafts(tmp_path, write_post, monkeypatch):
    write_post("secret.md", title="Secret", draft=True)
    calls = []
    monkeypatch.setattr(cli, "serve", lambda directory, host, port: calls.append((directory, host, port)))

    assert cli.main(["serve", "--port", "9000"]) == 0

    assert calls == [(cli.Path(".preview"), "127.0.0.1", 9000)]
    assert (tmp_path / ".preview" / "posts" / "secret.html").exists()


def test_clean_removes_output_and_lock(tmp_path, write_post):
    write_post("hello.md", title="Hello")
    assert cli.main(["build", "--output", "public", "--incremental"]) == 0

    assert cli.main(["clean", "--output", "public"]) == 0

    assert not (tmp_path / "public").exists()
    assert not (tmp_path / "build.lock.json").exists()
