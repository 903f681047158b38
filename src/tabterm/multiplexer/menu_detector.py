"""Heuristic detection of interactive selection menus in terminal output.

Works on a plain text window (the tail of a session's output joined with
newlines), never on a screen model. The pipeline is an ordered list of
independent rules:

1. ``strip_escapes``            remove CSI/OSC/DCS sequences and control chars
2. ``has_box_structure``        complete box frame, or >= 4 box-drawing chars
3. ``has_interactive_elements`` >= 2 numbered lines, or a known prompt phrase
4. gate                         both 2 and 3 must hold
5. ``extract_options``          numbered rows first, then ``(x)`` rows

Box characters show up in plenty of non-menu chrome and numbered lines in
plenty of ordinary output, so neither signal is used on its own. Lines that
match no rule are dropped; nothing here raises on odd input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Tuple


BOX_CHARS = (
    "─━│┃┄┅┆┇┈┉┊┋"
    "┌┍┎┏┐┑┒┓└┕┖┗┘┙┚┛├┝┞┟┠┡┢┣┤┥┦┧┨┩┪┫┬┭┮┯┰┱┲┳┴┵┶┷┸┹┺┻┼"
    "═║╒╓╔╕╖╗╘╙╚╛╜╝╞╟╠╡╢╣╤╥╦╧╨╩╪╫╬"
    "╭╮╯╰╴╵╶╷"
)
SELECTION_CURSORS = "❯›»>▶►▸→●◉○•*"

_BOX = re.escape(BOX_CHARS)
_CURSOR = re.escape(SELECTION_CURSORS)
# ASCII frames draw their sides with "|"; only treated as decoration at the
# edges of a row, never inside a label
_DECORATION = f"{_BOX}{_CURSOR}|"

MIN_BOX_CHARS = 4
MIN_NUMBERED_LINES = 2


# Order matters: OSC/DCS before the two-byte catch-all so their payload is
# removed along with the introducer.
_ESCAPE_PATTERNS: List[re.Pattern[str]] = [
    re.compile(r"\x1B\][^\x07\x1B]*(?:\x07|\x1B\\)?"),  # OSC ... BEL | ST
    re.compile(r"\x1B[PX^_][^\x1B]*(?:\x1B\\)?"),  # DCS / SOS / PM / APC
    re.compile(r"\x1B\[[0-?]*[ -/]*[@-~]"),  # CSI
    re.compile(r"\x1B[()*+][0-9A-Za-z]"),  # charset designation
    re.compile(r"\x1B[@-Z\\-_=>78c]"),  # two-byte sequences
    re.compile(r"\x9B[0-?]*[ -/]*[@-~]"),  # 8-bit CSI
]
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

_FRAME_STYLES: List[Tuple[str, re.Pattern[str], re.Pattern[str]]] = [
    # (name, top-left corner plus rule, bottom-right corner)
    ("single", re.compile(r"[┌╭┍┎]─"), re.compile(r"[┘╯┙┚]")),
    ("heavy", re.compile(r"┏━"), re.compile(r"┛")),
    ("double", re.compile(r"[╔╒╓]═"), re.compile(r"[╝╛╜]")),
]
_ASCII_RULE = re.compile(r"\+-{2,}\+")

_NUMBERED_LINE = re.compile(rf"^[ \t{_DECORATION}]*\d+\..{{3,}}", re.MULTILINE)


def _mentions_file_creation(text: str) -> bool:
    """``create.*file`` on any one line, scanning each line once."""
    for line in text.lower().split("\n"):
        start = line.find("create")
        if start >= 0 and line.find("file", start + len("create")) >= 0:
            return True
    return False


_PROMPT_MATCHERS: List[Tuple[str, Callable[[str], object]]] = [
    ("do-you-want", re.compile(r"do you want to", re.IGNORECASE).search),
    ("should-i-proceed", re.compile(r"should i proceed", re.IGNORECASE).search),
    ("would-you-like", re.compile(r"would you like", re.IGNORECASE).search),
    ("create-file", _mentions_file_creation),
    (
        "numbered-yes-no",
        re.compile(rf"^[ \t{_DECORATION}]*\d+\.\s*(?:yes|no)\b", re.IGNORECASE | re.MULTILINE).search,
    ),
]

_MENU_ROW_PATTERNS: List[re.Pattern[str]] = [
    re.compile(rf"^[\s{_DECORATION}]*\d+\.\s*\S"),
    re.compile(rf"^[\s{_DECORATION}]*\([a-zA-Z]\)\s*\S"),
]

_BOX_RUN = re.compile(f"[{_BOX}]+")
_LEADING_DECORATION = re.compile(rf"^[\s{_CURSOR}|]+")

_OPTION_PATTERNS: List[Tuple[re.Pattern[str], Callable[[str], str]]] = [
    (re.compile(r"^\s*(\d+)\.\s*(.+)$"), str),
    (re.compile(r"^\s*\(([a-zA-Z])\)\s*(.+)$"), str.lower),
]


@dataclass(frozen=True)
class MenuOption:
    """One selectable entry. ``key`` is what the user types to pick it."""

    key: str
    label: str

    @property
    def description(self) -> str:
        return self.label

    def to_dict(self) -> dict:
        return {"key": self.key, "label": self.label}


@dataclass
class MenuCandidate:
    """Result of a detection pass that found at least one option."""

    session_id: str
    options: List[MenuOption]
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class MenuAnalysis:
    """Per-rule breakdown of one window, for diagnostics and the CLI."""

    has_box_structure: bool
    has_interactive_elements: bool
    options: List[MenuOption]

    @property
    def gate_passed(self) -> bool:
        return self.has_box_structure and self.has_interactive_elements


def strip_escapes(text: str) -> str:
    result = text
    for pattern in _ESCAPE_PATTERNS:
        result = pattern.sub("", result)
    return _CONTROL_CHARS.sub("", result)


def count_box_chars(text: str) -> int:
    return sum(1 for ch in text if ch in BOX_CHARS)


def find_frame(text: str) -> str | None:
    """Return the name of the first complete frame style found, if any."""
    for name, opener, closer in _FRAME_STYLES:
        # The first opener has the most text after it, so it is the only one
        # worth checking
        top = opener.search(text)
        if top and closer.search(text, top.end()):
            return name
    top = _ASCII_RULE.search(text)
    if top:
        newline = text.find("\n", top.end())
        if newline >= 0 and _ASCII_RULE.search(text, newline + 1):
            return "ascii"
    return None


def has_box_structure(text: str) -> bool:
    return find_frame(text) is not None or count_box_chars(text) >= MIN_BOX_CHARS


def count_numbered_lines(text: str) -> int:
    return len(_NUMBERED_LINE.findall(text))


def matched_prompts(text: str) -> List[str]:
    return [name for name, matches in _PROMPT_MATCHERS if matches(text)]


def has_interactive_elements(text: str) -> bool:
    if count_numbered_lines(text) >= MIN_NUMBERED_LINES:
        return True
    return any(matches(text) for _, matches in _PROMPT_MATCHERS)


def is_menu_row(line: str) -> bool:
    return any(pattern.match(line) for pattern in _MENU_ROW_PATTERNS)


def clean_row(line: str) -> str:
    """Drop box-drawing characters anywhere, cursors and ASCII sides at the edges."""
    without_box = _BOX_RUN.sub(" ", line)
    without_lead = _LEADING_DECORATION.sub("", without_box)
    end = len(without_lead)
    while end and (without_lead[end - 1].isspace() or without_lead[end - 1] == "|"):
        end -= 1
    return without_lead[:end]


def parse_option(line: str) -> MenuOption | None:
    cleaned = clean_row(line)
    if not cleaned or cleaned.endswith("?"):
        return None
    for pattern, normalize_key in _OPTION_PATTERNS:
        match = pattern.match(cleaned)
        if match:
            label = match.group(2).strip()
            if not label:
                return None
            return MenuOption(key=normalize_key(match.group(1)), label=label)
    return None


def extract_options(text: str) -> List[MenuOption]:
    options: List[MenuOption] = []
    for raw in text.split("\n"):
        line = raw.strip()
        if not line or line.endswith("?"):
            continue
        if not is_menu_row(line):
            continue
        option = parse_option(line)
        if option is not None:
            options.append(option)
    return options


def analyze(text: str) -> MenuAnalysis:
    """Run every rule on ``text`` and report each result.

    Options are only extracted once the structural and semantic checks
    both pass.
    """
    clean = strip_escapes(text)
    boxed = has_box_structure(clean)
    interactive = has_interactive_elements(clean)
    options = extract_options(clean) if boxed and interactive else []
    return MenuAnalysis(
        has_box_structure=boxed,
        has_interactive_elements=interactive,
        options=options,
    )


def detect_menu(text: str) -> List[MenuOption]:
    """Return the options of the menu shown in ``text``, or ``[]``."""
    if not isinstance(text, str) or not text:
        return []
    return analyze(text).options
