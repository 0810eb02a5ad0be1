"""Turn OCR lines of a vocabulary page into grouped vocabulary items."""

from __future__ import annotations

from dataclasses import dataclass
from statistics import median
from typing import Iterable, List, Optional, Sequence, TypedDict

from .types import ImportItem, LineEntry, OCRLine

DEFAULT_GROUP = "Ungrouped"
COLUMN_THRESHOLD = 0.08

_CHAPTER_TOKENS = ("hoofdstuk", "chapter", "hoolastuk")


@dataclass(frozen=True)
class HeadingRule:
    """Typographic convention used to recognise section headings.

    ``multi_word_factor`` and ``single_word_factor`` are multiples of the
    median line height a heading must reach. Scripts without letter case can
    set ``case_sensitive`` to ``False`` so only the height test applies.
    """

    multi_word_factor: float = 1.15
    single_word_factor: float = 0.8
    forbidden_chars: str = ",-()"
    case_sensitive: bool = True


DEFAULT_HEADING_RULE = HeadingRule()


class _Column(TypedDict):
    center: float
    lines: List[LineEntry]


def looks_like_chapter_line(text: str) -> bool:
    lowered = text.lower()
    if any(token in lowered for token in _CHAPTER_TOKENS):
        return True
    return lowered.startswith("hoo") and "stuk" in lowered


def looks_like_page_number(text: str) -> bool:
    trimmed = text.strip()
    return bool(trimmed) and trimmed.isascii() and trimmed.isdigit()


def normalize_lines(lines: Iterable[OCRLine]) -> List[LineEntry]:
    """Drop OCR noise and convert boxes to top-origin entries, keeping input order."""

    entries: List[LineEntry] = []
    for line in lines:
        text = line["text"].strip()
        if not text:
            continue
        if looks_like_chapter_line(text) or looks_like_page_number(text):
            continue
        bbox = line["bbox"]
        entries.append(
            {
                "text": text,
                "x": float(bbox["x"]),
                "y_top": 1.0 - (float(bbox["y"]) + float(bbox["h"])),
                "height": float(bbox["h"]),
            }
        )
    return entries


def median_height(entries: Sequence[LineEntry]) -> float:
    if not entries:
        return 0.0
    return float(median(entry["height"] for entry in entries))


def split_into_columns(
    entries: Sequence[LineEntry],
    threshold: float = COLUMN_THRESHOLD,
) -> List[List[LineEntry]]:
    """Greedily bucket entries into reading columns by horizontal position.

    Entries are visited left to right and join the bucket with the nearest
    running centroid when it lies within ``threshold``; otherwise they open a
    new bucket. Buckets come back ordered left to right, each holding its
    members in the order they were assigned.
    """

    columns: List[_Column] = []
    for entry in sorted(entries, key=lambda e: e["x"]):
        target: _Column | None = None
        best_distance = float("inf")
        for column in columns:
            distance = abs(entry["x"] - column["center"])
            if distance < best_distance:
                best_distance = distance
                target = column
        if target is not None and best_distance <= threshold:
            count = len(target["lines"])
            target["center"] = (target["center"] * count + entry["x"]) / (count + 1)
            target["lines"].append(entry)
            continue
        columns.append({"center": entry["x"], "lines": [entry]})

    columns.sort(key=lambda column: column["center"])
    return [column["lines"] for column in columns]


def is_heading(
    entry: LineEntry,
    median_h: float,
    rule: HeadingRule = DEFAULT_HEADING_RULE,
) -> bool:
    text = entry["text"].strip()
    if not text:
        return False
    if any(ch in text for ch in rule.forbidden_chars):
        return False
    if rule.case_sensitive:
        if not text[0].isupper():
            return False
        if any(ch.isupper() for ch in text[1:]):
            return False
    if median_h <= 0:
        return False
    if " " in text:
        return entry["height"] >= median_h * rule.multi_word_factor
    return entry["height"] >= median_h * rule.single_word_factor


def normalize_heading(text: str) -> str:
    return text.rstrip(":").strip()


def normalize_item_text(text: str) -> str:
    """Strip list bullets and turn ``.`` item separators into commas."""

    trimmed = text.strip()
    if trimmed.startswith("- "):
        trimmed = trimmed[2:]
    if trimmed.startswith(" "):
        trimmed = trimmed[1:]
    return trimmed.strip().replace(".", ",")


def parse_grouped_items(
    lines: Iterable[OCRLine],
    initial_group: Optional[str] = None,
    *,
    threshold: float = COLUMN_THRESHOLD,
    rule: HeadingRule = DEFAULT_HEADING_RULE,
) -> List[ImportItem]:
    """Return vocabulary items in reading order, tagged with their heading.

    The current group carries over from one column to the next and starts
    from ``initial_group``, so a page continuing an earlier section keeps the
    section name instead of falling back to ``"Ungrouped"``.
    """

    entries = normalize_lines(lines)
    if not entries:
        return []

    median_h = median_height(entries)
    current_group = initial_group
    items: List[ImportItem] = []
    for column in split_into_columns(entries, threshold):
        for entry in sorted(column, key=lambda e: e["y_top"]):
            normalized = normalize_item_text(entry["text"])
            if not normalized:
                continue
            if is_heading(entry, median_h, rule):
                current_group = normalize_heading(normalized)
                continue
            items.append({"text": normalized, "group": current_group or DEFAULT_GROUP})
    return items


def build_preview_lines(items: Sequence[ImportItem]) -> List[str]:
    """Render items as ``[group]`` headers followed by indented entries."""

    lines: List[str] = []
    last_group: str | None = None
    for item in items:
        if item["group"] != last_group:
            last_group = item["group"]
            lines.append(f"[{last_group}]")
        lines.append(f"  - {item['text']}")
    return lines


__all__ = [
    "DEFAULT_GROUP",
    "COLUMN_THRESHOLD",
    "HeadingRule",
    "DEFAULT_HEADING_RULE",
    "normalize_lines",
    "median_height",
    "split_into_columns",
    "is_heading",
    "normalize_heading",
    "normalize_item_text",
    "parse_grouped_items",
    "build_preview_lines",
]
