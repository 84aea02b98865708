"""A command console: a log of lines, a command history and tab completion."""

from __future__ import annotations

from enum import Enum
from typing import Optional

#: Longest line kept in the log; longer messages are cut.
MAX_LINE = 1023
#: Longest command line accepted from the input field.
MAX_INPUT = 255
#: Number of history entries the HISTORY command lists.
HISTORY_SHOWN = 10

GREETING = (
    "All I do know is that in six hours I could be suffering "
    "from acute existence failure."
)

_WORD_SEPARATORS = frozenset(" \t,;")
_FILTER_BLANKS = " \t"


class ItemStyle(Enum):
    """How a log line is shown; the value is its text colour, if any."""

    NORMAL = None
    ERROR = (1.0, 0.4, 0.4, 1.0)
    COMMAND = (1.0, 0.8, 0.6, 1.0)


def item_style(item: str) -> ItemStyle:
    """Pick the style of a log line from its content."""
    if "[error]" in item:
        return ItemStyle.ERROR
    if item.startswith("# "):
        return ItemStyle.COMMAND
    return ItemStyle.NORMAL


def _same(a: str, b: str) -> bool:
    return a.upper() == b.upper()


def _parse_filter(pattern: str) -> tuple[list[str], list[str]]:
    """Split ``"incl,-excl"`` into upper-cased include and exclude terms."""
    include: list[str] = []
    exclude: list[str] = []
    for part in pattern.split(","):
        term = part.strip(_FILTER_BLANKS)
        if not term:
            continue
        if term.startswith("-"):
            exclude.append(term[1:].upper())
        else:
            include.append(term.upper())
    return include, exclude


def _passes(item: str, include: list[str], exclude: list[str]) -> bool:
    text = item.upper()
    if any(term in text for term in exclude):
        return False
    if not include:
        return True
    return any(term in text for term in include)


class Console:
    """State and behaviour of an interactive command console."""

    def __init__(self) -> None:
        self.items: list[str] = []
        self.commands: list[str] = ["HELP", "HISTORY", "CLEAR", "CLASSIFY"]
        self.history: list[str] = []
        self.history_pos = -1
        self._auto_scroll = True
        self.scroll_to_bottom = True
        self.add_log(GREETING)

    @property
    def auto_scroll(self) -> bool:
        """Whether new lines scroll the view to the bottom."""
        return self._auto_scroll

    @auto_scroll.setter
    def auto_scroll(self, enabled: bool) -> None:
        self._auto_scroll = bool(enabled)
        if self._auto_scroll:
            self.scroll_to_bottom = True

    def add_log(self, message: str) -> None:
        """Append a line to the log."""
        self.items.append(str(message)[:MAX_LINE])
        if self._auto_scroll:
            self.scroll_to_bottom = True

    def clear_log(self) -> None:
        """Remove every line from the log."""
        self.items.clear()
        self.scroll_to_bottom = True

    def submit(self, text: str) -> bool:
        """Run the command typed in the input field; return whether one ran."""
        command_line = text[:MAX_INPUT].rstrip(" ")
        if not command_line:
            return False
        self.exec_command(command_line)
        return True

    def exec_command(self, command_line: str) -> None:
        """Echo, remember and carry out one command."""
        self.add_log(f"# {command_line}\n")

        self.history_pos = -1
        for i in range(len(self.history) - 1, -1, -1):
            if _same(self.history[i], command_line):
                del self.history[i]
                break
        self.history.append(command_line)

        if _same(command_line, "CLEAR"):
            self.clear_log()
        elif _same(command_line, "HELP"):
            self.add_log("Commands:")
            for command in self.commands:
                self.add_log(f"- {command}")
        elif _same(command_line, "HISTORY"):
            first = max(len(self.history) - HISTORY_SHOWN, 0)
            for i, entry in enumerate(self.history[first:], start=first):
                self.add_log(f"{i:3d}: {entry}\n")
        else:
            self.add_log(f"Unknown command: '{command_line}'\n")

        self.scroll_to_bottom = True

    def complete(self, text: str, cursor: Optional[int] = None) -> tuple[str, int]:
        """Complete the command word before ``cursor``.

        Returns the new input text and cursor position. Several matches are
        completed as far as they agree and listed in the log.
        """
        if cursor is None:
            cursor = len(text)
        cursor = max(0, min(cursor, len(text)))

        start = cursor
        while start > 0 and text[start - 1] not in _WORD_SEPARATORS:
            start -= 1
        word = text[start:cursor]

        candidates = [c for c in self.commands if c.upper().startswith(word.upper())]

        if not candidates:
            self.add_log(f'No match for "{word}"!\n')
            return text, cursor

        if len(candidates) == 1:
            inserted = candidates[0] + " "
            return text[:start] + inserted + text[cursor:], start + len(inserted)

        match_len = len(word)
        while True:
            first = candidates[0]
            if match_len >= len(first):
                break
            c = first[match_len].upper()
            if not all(
                match_len < len(other) and other[match_len].upper() == c
                for other in candidates[1:]
            ):
                break
            match_len += 1

        if match_len > 0:
            inserted = candidates[0][:match_len]
            text = text[:start] + inserted + text[cursor:]
            cursor = start + len(inserted)

        self.add_log("Possible matches:\n")
        for candidate in candidates:
            self.add_log(f"- {candidate}\n")
        return text, cursor

    def _history_text(self, previous: int) -> Optional[str]:
        if previous == self.history_pos:
            return None
        return self.history[self.history_pos] if self.history_pos >= 0 else ""

    def history_up(self) -> Optional[str]:
        """Step back in the history; return the new input text, or None if unchanged."""
        previous = self.history_pos
        if self.history_pos == -1:
            self.history_pos = len(self.history) - 1
        elif self.history_pos > 0:
            self.history_pos -= 1
        return self._history_text(previous)

    def history_down(self) -> Optional[str]:
        """Step forward in the history; return the new input text, or None if unchanged."""
        previous = self.history_pos
        if self.history_pos != -1:
            self.history_pos += 1
            if self.history_pos >= len(self.history):
                self.history_pos = -1
        return self._history_text(previous)

    def visible_items(self, pattern: str = "") -> list[str]:
        """Return the log lines passing a filter such as ``"incl,-excl"``."""
        include, exclude = _parse_filter(pattern)
        return [item for item in self.items if _passes(item, include, exclude)]