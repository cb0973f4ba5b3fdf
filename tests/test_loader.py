import datetime as dt

import pytest

from blogsmith.errors import LoadError
from blogsmith.loader import ContentStore, load_posts, scan_content


def test_scan_content_is_sorted_restartable_and_skips_hidden(posts_dir, write_post):
    write_post("b.md", title="B")
    write_post("a.md", title="A")
    write_post("nested/index.md", title="Nested")
    write_post(".hidden/secret.md", title="Secret")
    write_post("_partials/snippet.md", title="Snippet")

    store = ContentStore(posts_dir)
    first = [path.relative_to(posts_dir).as_posix() for path in store]
    second = [path.relative_to(posts_dir).as_posix() for path in store]

    assert first == ["a.md", "b.md", "nested/index.md"]
    assert second == first
    assert list(scan_content(posts_dir)) == list(store)


def test_load_posts_derives_slugs(write_post, posts_dir):
    write_post("Hello World.md", title="Hello")
    write_post("trip-report/index.md", title="Trip")

    slugs = sorted(post.slug for post in load_posts(posts_dir))

    assert slugs == ["hello-world", "trip-report"]


def test_load_posts_resolves_bundle_images(write_post, posts_dir):
    bundle = posts_dir / "trip"
    (bundle / "img").mkdir(parents=True)
    (bundle / "img" / "photo.jpg").write_bytes(b"jpeg")
    write_post("trip/index.md", title="Trip", body="![photo](img/photo.jpg)")

    (post,) = load_posts(posts_dir)

    assert post.assets == (bundle / "img" / "photo.jpg",)


def test_load_posts_reports_every_broken_file(write_post, posts_dir):
    write_post("good.md", title="Good")
    (posts_dir / "no-front-matter.md").write_text("just text\n", encoding="utf-8")
    write_post("bad-date.md", title="Bad", date="someday")
    write_post("missing-image.md", title="Img", body="![x](nope.png)")

    with pytest.raises(LoadError) as excinfo:
        load_posts(posts_dir)

    paths = sorted(error.path.name for error in excinfo.value.errors)
    assert paths == ["bad-date.md", "missing-image.md", "no-front-matter.md"]
    message = str(excinfo.value)
    assert "3 content errors" in message
    assert "no-front-matter.md" in message


def test_load_posts_rejects_images_outside_the_post_directory(write_post, posts_dir):
    (posts_dir / "shared.png").write_bytes(b"png")
    write_post("trip/index.md", title="Trip", body="![x](../shared.png)")

    with pytest.raises(LoadError, match="outside the post directory"):
        load_posts(posts_dir)


def test_slug_collision_names_both_files(write_post, posts_dir):
    write_post("hello.md", title="One")
    write_post("hello/index.md", title="Two")

    with pytest.raises(LoadError) as excinfo:
        load_posts(posts_dir)

    (error,) = excinfo.value.errors
    assert "hello.md" in str(error)
    assert "hello/index.md" in str(error).replace("\\", "/")


def test_load_posts_missing_root(tmp_path):
    with pytest.raises(LoadError, match="posts directory not found"):
        load_posts(tmp_path / "missing")


def test_loaded_posts_are_read_only(write_post, posts_dir):
    write_post("a.md", title="A", date="2020-02-02")

    (post,) = load_posts(posts_dir)

    assert post.date == dt.date(2020, 2, 2)
    with pytest.raises(AttributeError):
        post.title = "changed"


def test_impossible_date_is_reported_with_other_errors(write_post, posts_dir):
    write_post("a.md", title="A", date="2021-13-45")
    write_post("b.md", title="B", date="")

    with pytest.raises(LoadError) as excinfo:
        load_posts(posts_dir)

    errors = excinfo.value.errors
    assert [error.path.name for error in errors] == ["a.md", "b.md"]
    assert "invalid YAML" in str(errors[0])
    assert "missing required field 'date'" in str(errors[1])


def test_image_syntax_inside_code_is_not_an_asset(write_post, posts_dir):
    write_post("a.md", title="A", body="Write `![alt](inline.png)` for images.\n\n    ![alt](indented.png)\n")

    (post,) = load_posts(posts_dir)

    assert post.assets == ()


def test_load_posts_resolves_reference_style_images(write_post, posts_dir):
    (posts_dir / "trip").mkdir()
    (posts_dir / "trip" / "photo.jpg").write_bytes(b"jpeg")
    write_post("trip/index.md", title="Trip", body="![photo][hero]\n\n[hero]: photo.jpg")

    (post,) = load_posts(posts_dir)

    assert post.assets == (posts_dir / "trip" / "photo.jpg",)
