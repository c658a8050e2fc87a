"""Parser for marker-delimited page text.

The single-pass generation path asks the model for an answer laid out as::

    CONTENT:
    ...prose...
    CATEGORIES:
    Culture
    CLICKABLE_TERMS:
    ...
    RELATED_CONCEPTS:
    term | description
    BASIC_FACTS:
    name | value

and re-parses the growing buffer after every chunk. Each extractor returns the
best-effort text between its marker and the next one (or end of buffer), so a
section that is still arriving yields its prefix and a completed section never
changes as more text is appended.
"""

import re
from typing import Any

CONTENT = "CONTENT:"
CATEGORIES = "CATEGORIES:"
CLICKABLE_TERMS = "CLICKABLE_TERMS:"
RELATED_CONCEPTS = "RELATED_CONCEPTS:"
BASIC_FACTS = "BASIC_FACTS:"

MARKERS: tuple[str, ...] = (CONTENT, CATEGORIES, CLICKABLE_TERMS, RELATED_CONCEPTS, BASIC_FACTS)

_LOWER_MARKERS = tuple(marker.lower() for marker in MARKERS)
_HASH_ONLY = re.compile(r"^#+$")
_BULLET_ONLY = re.compile(r"^[-•*]+$")
_BULLET_PREFIX = re.compile(r"^[-•*]\s*")
_TRAILING_HASHES = re.compile(r"#+$")


def _find(text: str, marker: str, start: int = 0) -> int:
    index = text.find(marker, start)
    if index == -1:
        index = text.lower().find(marker.lower(), start)
    return index


def extract_section(text: str, start_marker: str, end_marker: str | None) -> str | None:
    """Text between ``start_marker`` and ``end_marker``, trimmed.

    Markers are matched exactly first, then case-insensitively. A missing end
    marker means the section runs to the end of the buffer. Returns None when
    the start marker has not arrived yet.
    """
    start = _find(text, start_marker)
    if start == -1:
        return None

    content_start = start + len(start_marker)
    end = _find(text, end_marker, content_start) if end_marker else -1
    section = text[content_start:] if end == -1 else text[content_start:end]
    return section.strip()


def _keep_line(line: str) -> bool:
    lowered = line.lower()
    if any(marker in lowered for marker in _LOWER_MARKERS):
        return False
    if _HASH_ONLY.match(line) or _BULLET_ONLY.match(line):
        return False
    return line != "---"


def _clean_line(line: str) -> str:
    return _TRAILING_HASHES.sub("", _BULLET_PREFIX.sub("", line)).strip()


def _section_lines(text: str, start_marker: str, end_marker: str | None) -> list[str]:
    section = extract_section(text, start_marker, end_marker)
    if not section:
        return []

    lines = (line.strip() for line in section.split("\n"))
    cleaned = (_clean_line(line) for line in lines if line and _keep_line(line))
    return [line for line in cleaned if line]


def extract_list(text: str, start_marker: str, end_marker: str | None) -> list[str]:
    """One entry per non-empty line, with bullets, rules and marker echoes dropped."""
    return _section_lines(text, start_marker, end_marker)


def _split_pair(line: str) -> tuple[str, str]:
    for separator in ("|", ":", " - "):
        if separator in line:
            key, _, value = line.partition(separator)
            # Only the first two fields count, as in "a | b | c" -> ("a", "b")
            value = value.split(separator, 1)[0]
            return _BULLET_PREFIX.sub("", key.strip()).strip(), _BULLET_PREFIX.sub("", value.strip()).strip()
    return line, ""


def extract_key_value_list(text: str, start_marker: str, end_marker: str | None) -> list[dict[str, str]]:
    """Pairs split on the first ``|``, falling back to ``:`` then `` - ``.

    Related concepts come back as ``{term, description}``, everything else as
    ``{name, value}``.
    """
    is_related = "related" in start_marker.lower()
    pairs = []
    for line in _section_lines(text, start_marker, end_marker):
        key, value = _split_pair(line)
        if not key:
            continue
        pairs.append({"term": key, "description": value} if is_related else {"name": key, "value": value})
    return pairs


def parse_marker_text(text: str) -> dict[str, Any]:
    """All page fields that can be recovered from ``text`` so far."""
    return {
        "content": extract_section(text, CONTENT, CATEGORIES) or "",
        "categories": extract_list(text, CATEGORIES, CLICKABLE_TERMS),
        "clickable_terms": extract_list(text, CLICKABLE_TERMS, RELATED_CONCEPTS),
        "related_concepts": extract_key_value_list(text, RELATED_CONCEPTS, BASIC_FACTS),
        "basic_facts": extract_key_value_list(text, BASIC_FACTS, None),
    }
