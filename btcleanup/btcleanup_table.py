#!/usr/bin/python3
"""
BT Log Cleanup - Result Table Module

Renders cleanup results as a fixed-width bordered table for the terminal:
- Display width calculation for mixed ASCII / Chinese text
- Cell truncation and padding
- Colored status labels (ANSI) with visible-width accounting
- Streaming table writer (header, one row per result, footer)

Author: Devin Acosta
Version: 1.0.0
Date: 2025-08-14
"""

import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, TextIO, Tuple, Union

# Terminal colors
RED = "\033[0;31m"
GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
NC = "\033[0m"

ANSI_ESCAPE = re.compile(r"\x1B\[([0-9]{1,2}(;[0-9]{1,2})?)?[mGK]")


class Outcome(str, Enum):
    """Result of a single cleanup operation."""
    SUCCESS = "success"
    MISSING = "missing"
    FAILED = "failed"


@dataclass(frozen=True)
class ResultRecord:
    """One reported operation: what was processed, where, and how it went."""
    label: str
    target: str
    outcome: Union[Outcome, str]


@dataclass(frozen=True)
class TableLayout:
    """Column widths and border characters shared by every row of a table."""
    label_width: int = 32
    status_width: int = 12
    path_width: int = 60
    border: str = "|"
    corner: str = "+"
    rule: str = "-"
    ellipsis: str = ".."
    titles: Tuple[str, str, str] = ("日志描述", "状态", "路径")


DEFAULT_LAYOUT = TableLayout()

STATUS_LABELS: Dict[Outcome, Tuple[str, str]] = {
    Outcome.SUCCESS: (GREEN, "✓ 成功"),
    Outcome.MISSING: (YELLOW, "! 不存在"),
    Outcome.FAILED: (RED, "✗ 失败"),
}


def display_width(text: str) -> int:
    """
    Return the number of terminal columns text occupies.

    Only the basic CJK Unified Ideographs block (U+4E00 - U+9FA5) counts as
    double width; full-width punctuation, extended CJK and emoji count as one.
    """
    wide = sum(1 for char in text if "\u4e00" <= char <= "\u9fa5")
    return len(text) + wide


def truncate_text(text: str, width: int, ellipsis: str = "..") -> str:
    """Shorten text to fit width columns, marking the cut with ellipsis."""
    if display_width(text) <= width:
        return text
    while display_width(text) > width - len(ellipsis) and len(text) > 1:
        text = text[:-1]
    return f"{text}{ellipsis}"


def pad_text(text: str, width: int, fill: str = " ") -> str:
    """Right-pad text with fill until it is width columns wide."""
    padding = width - display_width(text)
    if padding > 0:
        return text + fill * padding
    return text


def visible_text(text: str) -> str:
    """Strip ANSI color sequences, leaving what the terminal actually shows."""
    return ANSI_ESCAPE.sub("", text)


def classify_status(outcome: Union[Outcome, str]) -> Tuple[str, str]:
    """
    Map an outcome to its colored status label.

    Returns:
        tuple: (colored_label, visible_label)
    """
    try:
        color, label = STATUS_LABELS[Outcome(outcome)]
    except ValueError:
        raw = str(outcome)
        return raw, visible_text(raw)
    return f"{color}{label}{NC}", label


def render_border(layout: TableLayout = DEFAULT_LAYOUT) -> str:
    widths = (layout.label_width, layout.status_width, layout.path_width)
    segments = [layout.rule * (width + 2) for width in widths]
    return layout.corner + layout.corner.join(segments) + layout.corner


def _join_cells(layout: TableLayout, label: str, status: str, path: str) -> str:
    sep = f" {layout.border} "
    return f"{layout.border} {label}{sep}{status}{sep}{path} {layout.border}"


def render_header(layout: TableLayout = DEFAULT_LAYOUT) -> str:
    """Top border, column titles and separator, as one multi-line string."""
    label_title, status_title, path_title = layout.titles
    titles = _join_cells(
        layout,
        pad_text(label_title, layout.label_width),
        pad_text(status_title, layout.status_width),
        pad_text(path_title, layout.path_width),
    )
    border = render_border(layout)
    return "\n".join([border, titles, border])


def render_footer(layout: TableLayout = DEFAULT_LAYOUT) -> str:
    return render_border(layout)


def render_row(record: ResultRecord, layout: TableLayout = DEFAULT_LAYOUT) -> str:
    """Render one result as a table row with a colored status cell."""
    label = truncate_text(record.label, layout.label_width, layout.ellipsis)
    path = truncate_text(record.target, layout.path_width, layout.ellipsis)
    colored, visible = classify_status(record.outcome)

    # Padding goes after the reset sequence so the color does not bleed
    status_padding = " " * max(layout.status_width - display_width(visible), 0)

    return _join_cells(
        layout,
        pad_text(label, layout.label_width),
        f"{colored}{status_padding}",
        pad_text(path, layout.path_width),
    )


@dataclass
class ResultTable:
    """
    Streaming writer for one result table.

    Rows are written as soon as they are added. Used as a context manager,
    the header is written on entry and the footer on exit.
    """
    layout: TableLayout = DEFAULT_LAYOUT
    stream: Optional[TextIO] = None
    counts: Dict[Outcome, int] = field(default_factory=lambda: {outcome: 0 for outcome in Outcome})

    def _write(self, text: str) -> None:
        print(text, file=self.stream or sys.stdout)

    def header(self) -> None:
        self._write(render_header(self.layout))

    def footer(self) -> None:
        self._write(render_footer(self.layout))

    def add(self, record: ResultRecord) -> None:
        """Write one row and count its outcome."""
        if isinstance(record.outcome, str) and record.outcome in self.counts:
            self.counts[Outcome(record.outcome)] += 1
        self._write(render_row(record, self.layout))

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def __enter__(self):
        self.header()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.footer()
