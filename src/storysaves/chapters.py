from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, quote, unquote, urlsplit

import yaml

from .errors import SaveValidationError
from .models import HOME_CHAPTER, HOME_FILENAME, UNKNOWN_ORDER, ChapterDescriptor

logger = logging.getLogger(__name__)

ChapterTable = Dict[str, Tuple[str, int]]

# A '%' that does not start a two-digit hex escape
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

# Characters encodeURIComponent leaves alone besides letters, digits and "_.-~"
_URI_COMPONENT_SAFE = "!*'()"


def decode_component(value: str) -> str:
    """Percent-decode one URI component, failing on malformed input.

    Raises ValueError for a stray '%' or for escapes that are not valid UTF-8.
    """
    if _BAD_ESCAPE.search(value):
        raise ValueError(f"malformed percent escape in {value!r}")
    return unquote(value, encoding="utf-8", errors="strict")


def encode_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


@dataclass(frozen=True)
class PageLocation:
    """Where the player currently is: URL path, query and page title."""

    path: str = "/"
    title: str = ""
    query: Dict[str, str] = field(default_factory=dict)

    @staticmethod
    def from_url(url: str, title: str = "") -> "PageLocation":
        parts = urlsplit(url)
        # Repeated keys keep the last value
        query = dict(parse_qsl(parts.query, keep_blank_values=True))
        return PageLocation(path=parts.path or "/", title=title, query=query)


def parse_chapter_table(raw: Mapping[str, Mapping[str, object]]) -> ChapterTable:
    table: ChapterTable = {}
    for filename, entry in (raw or {}).items():
        if not isinstance(entry, Mapping) or "name" not in entry or "order" not in entry:
            raise SaveValidationError(f"Chapter entry for {filename!r} needs 'name' and 'order'")
        table[str(filename)] = (str(entry["name"]), int(entry["order"]))  # type: ignore[arg-type]
    return table


def load_chapter_table(path: Optional[Union[str, Path]] = None) -> ChapterTable:
    """Load the chapter table from YAML.

    If path is None, loads the packaged resource data/chapters.yaml.
    """
    if path is None:
        data = resources.files("storysaves.data").joinpath("chapters.yaml").read_text(encoding="utf-8")
        logger.debug("Loaded embedded chapter table")
    else:
        with open(path, "r", encoding="utf-8") as f:
            data = f.read()
        logger.debug("Loaded chapter table from path: %s", path)
    table = parse_chapter_table(yaml.safe_load(data) or {})
    logger.info("Chapter table has %d entries", len(table))
    return table


class ChapterResolver:
    """Maps a page location to its canonical chapter descriptor.

    Filenames can arrive raw or percent-encoded depending on how the page was
    linked. Lookup uses the decoded name first and falls back to the encoded
    name, so the table only needs whichever form it was written with.
    """

    def __init__(self, table: Optional[ChapterTable] = None) -> None:
        self.table: ChapterTable = dict(table) if table is not None else load_chapter_table()

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ChapterResolver":
        return cls(load_chapter_table(path))

    def resolve(self, location_path: str, page_title: str = "") -> ChapterDescriptor:
        filename = (location_path or "").split("/")[-1] or HOME_FILENAME

        try:
            filename = decode_component(filename)
        except ValueError:
            logger.warning("Failed to decode filename: %s", filename)

        if filename in (HOME_FILENAME, ""):
            return HOME_CHAPTER

        entry = self.table.get(filename)
        if entry is None:
            encoded = encode_component(filename)
            if encoded != filename:
                entry = self.table.get(encoded)

        if entry is not None:
            name, order = entry
            return ChapterDescriptor(name=name, order=order, filename=filename)

        return ChapterDescriptor(name=page_title or filename, order=UNKNOWN_ORDER, filename=filename)

    def resolve_location(self, location: PageLocation) -> ChapterDescriptor:
        return self.resolve(location.path, location.title)
