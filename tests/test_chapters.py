from pathlib import Path

import pytest

from storysaves.chapters import (
    ChapterResolver,
    PageLocation,
    decode_component,
    encode_component,
    load_chapter_table,
)
from storysaves.errors import SaveValidationError
from storysaves.models import HOME_CHAPTER, UNKNOWN_ORDER


@pytest.fixture()
def resolver() -> ChapterResolver:
    return ChapterResolver()


def test_default_table_loads_from_package():
    table = load_chapter_table()
    assert table["prologue.html"] == ("序章", 0)
    assert table["endings.html"] == ("结局", 5)


def test_raw_and_encoded_transition_page_resolve_the_same(resolver):
    raw = resolver.resolve("/game/转场1.html", "")
    encoded = resolver.resolve("/game/%E8%BD%AC%E5%9C%BA1.html", "")
    assert raw == encoded
    assert raw.name == "转场1"
    assert raw.order == 2
    assert raw.filename == "转场1.html"


@pytest.mark.parametrize("path", ["/", "/index.html", "", "/game/"])
def test_home_paths(resolver, path):
    assert resolver.resolve(path, "") == HOME_CHAPTER
    assert resolver.resolve(path, "").order == -1


def test_known_chapter(resolver):
    chapter = resolver.resolve("/game/part_1_2.html", "whatever")
    assert chapter.name == "第二章：探索"
    assert chapter.order == 3
    assert chapter.filename == "part_1_2.html"


def test_unknown_page_uses_title_then_filename(resolver):
    titled = resolver.resolve("/game/secret.html", "Secret Room")
    assert titled.name == "Secret Room"
    assert titled.order == UNKNOWN_ORDER
    assert titled.filename == "secret.html"

    untitled = resolver.resolve("/game/secret.html", "")
    assert untitled.name == "secret.html"


def test_malformed_escape_falls_back_to_raw(resolver, caplog):
    chapter = resolver.resolve("/game/100%zz.html", "")
    assert chapter.filename == "100%zz.html"
    assert chapter.order == UNKNOWN_ORDER
    assert "Failed to decode filename" in caplog.text


def test_encoded_only_table_entry_is_found_from_decoded_name():
    resolver = ChapterResolver({"%E8%BD%AC%E5%9C%BA1.html": ("转场1", 2)})
    chapter = resolver.resolve("/game/转场1.html", "")
    assert chapter.order == 2
    assert chapter.filename == "转场1.html"


def test_decode_component_rejects_bad_utf8():
    with pytest.raises(ValueError):
        decode_component("%E8%BD.html")
    assert decode_component("a%20b") == "a b"


def test_encode_component_matches_uri_component_rules():
    assert encode_component("转场1.html") == "%E8%BD%AC%E5%9C%BA1.html"
    assert encode_component("it's(ok)!*~") == "it's(ok)!*~"
    assert encode_component("a b/c") == "a%20b%2Fc"


def test_page_location_from_url():
    loc = PageLocation.from_url("https://example.com/game/part_2.html?door=open&key=1&key=2", "走廊")
    assert loc.path == "/game/part_2.html"
    assert loc.title == "走廊"
    assert loc.query == {"door": "open", "key": "2"}


def test_chapter_table_from_yaml_file(tmp_path: Path):
    f = tmp_path / "chapters.yaml"
    f.write_text("intro.html:\n  name: Intro\n  order: 0\n", encoding="utf-8")
    resolver = ChapterResolver.from_file(f)
    assert resolver.resolve("/intro.html").name == "Intro"


def test_chapter_table_entry_needs_name_and_order(tmp_path: Path):
    f = tmp_path / "chapters.yaml"
    f.write_text("intro.html:\n  name: Intro\n", encoding="utf-8")
    with pytest.raises(SaveValidationError):
        load_chapter_table(f)
