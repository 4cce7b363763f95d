"""
kioskwatch/keys.py - SendKeys strings -> key strokes.

Config files use the classic SendKeys notation because that's what people
copy from old kiosk scripts:

    {F5}        press F5
    {TAB 3}     press Tab three times
    ^w          ctrl+w
    +(abc)      shift held for a, b and c
    ~           enter
    {{} {}}     literal braces

Output is a flat list of KeyStroke, each one either a single key or a chord
that maps 1:1 onto pyautogui.press / pyautogui.hotkey.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from .errors import KeySequenceError


MODIFIERS = {"+": "shift", "^": "ctrl", "%": "alt"}

# SendKeys names -> pyautogui names. Anything not listed is lowercased and
# passed through (F1..F24 etc).
NAMED_KEYS = {
    "BACKSPACE": "backspace", "BS": "backspace", "BKSP": "backspace",
    "BREAK": "pause",
    "CAPSLOCK": "capslock",
    "DELETE": "delete", "DEL": "delete",
    "DOWN": "down", "UP": "up", "LEFT": "left", "RIGHT": "right",
    "END": "end", "HOME": "home",
    "ENTER": "enter",
    "ESC": "esc",
    "HELP": "help",
    "INSERT": "insert", "INS": "insert",
    "NUMLOCK": "numlock",
    "PGDN": "pagedown", "PGUP": "pageup",
    "PRTSC": "printscreen",
    "SCROLLLOCK": "scrolllock",
    "TAB": "tab",
    "ADD": "add", "SUBTRACT": "subtract", "MULTIPLY": "multiply", "DIVIDE": "divide",
}

# Characters with a special meaning outside braces
_SPECIAL = set("+^%~(){}[]")


@dataclass(frozen=True)
class KeyStroke:
    keys: Tuple[str, ...]

    @property
    def is_chord(self) -> bool:
        return len(self.keys) > 1


def _named_key(name: str) -> str:
    upper = name.upper()
    if upper in NAMED_KEYS:
        return NAMED_KEYS[upper]
    if len(name) == 1:
        return name
    if upper.startswith("F") and upper[1:].isdigit() and 1 <= int(upper[1:]) <= 24:
        return upper.lower()
    raise KeySequenceError(f"Unknown key name: {{{name}}}")


def _read_brace(seq: str, pos: int) -> Tuple[List[str], int]:
    # pos points just after '{'. Returns (keys, new_pos).
    # "{}}" is a literal close brace
    if seq.startswith("}}", pos):
        return ["}"], pos + 2
    end = seq.find("}", pos)
    if end == -1:
        raise KeySequenceError(f"Unclosed '{{' at position {pos - 1} in {seq!r}")
    body = seq[pos:end]
    if not body:
        raise KeySequenceError(f"Empty braces at position {pos - 1} in {seq!r}")

    count = 1
    name = body
    if " " in body.strip():
        name, _, raw_count = body.strip().rpartition(" ")
        if not raw_count.isdigit():
            raise KeySequenceError(f"Bad repeat count in {{{body}}}")
        count = int(raw_count)
    return [_named_key(name)] * count, end + 1


def parse_key_sequence(seq: str) -> List[KeyStroke]:
    """Turn a SendKeys string into KeyStrokes. Raises KeySequenceError."""
    strokes: List[KeyStroke] = []
    held: List[str] = []
    pos = 0

    def emit(keys: List[str]) -> None:
        for key in keys:
            strokes.append(KeyStroke(tuple(held) + (key,)))

    while pos < len(seq):
        ch = seq[pos]

        if ch in MODIFIERS:
            held.append(MODIFIERS[ch])
            pos += 1
            continue

        if ch == "(":
            close = seq.find(")", pos)
            if close == -1:
                raise KeySequenceError(f"Unclosed '(' at position {pos} in {seq!r}")
            # Modifiers apply to the whole group, then drop
            group = parse_key_sequence(seq[pos + 1:close])
            for stroke in group:
                strokes.append(KeyStroke(tuple(held) + stroke.keys))
            held = []
            pos = close + 1
            continue

        if ch == "{":
            keys, pos = _read_brace(seq, pos + 1)
        elif ch == "~":
            keys, pos = ["enter"], pos + 1
        elif ch in _SPECIAL:
            raise KeySequenceError(f"Unexpected {ch!r} at position {pos} in {seq!r}")
        else:
            keys, pos = [ch], pos + 1

        emit(keys)
        held = []

    if held:
        raise KeySequenceError(f"Dangling modifier at end of {seq!r}")
    return strokes
