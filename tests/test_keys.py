import pytest

from kioskwatch.errors import KeySequenceError
from kioskwatch.keys import KeyStroke, parse_key_sequence


def keys_of(seq):
    return [stroke.keys for stroke in parse_key_sequence(seq)]


def test_function_key_in_braces():
    assert parse_key_sequence("{F5}") == [KeyStroke(("f5",))]


def test_named_keys_and_repeat_count():
    assert keys_of("{ENTER}{TAB 3}") == [("enter",), ("tab",), ("tab",), ("tab",)]


def test_modifier_applies_to_next_key_only():
    assert keys_of("^wx") == [("ctrl", "w"), ("x",)]


def test_stacked_modifiers():
    assert keys_of("^+{TAB}") == [("ctrl", "shift", "tab")]


def test_modifier_group():
    assert keys_of("+(ab)c") == [("shift", "a"), ("shift", "b"), ("c",)]


def test_tilde_is_enter_and_literal_braces():
    assert keys_of("a~{{}{}}") == [("a",), ("enter",), ("{",), ("}",)]


def test_chord_flag():
    strokes = parse_key_sequence("%{F4}")
    assert strokes[0].is_chord
    assert not parse_key_sequence("q")[0].is_chord


@pytest.mark.parametrize("bad", ["{F5", "{NOPE}", "{}", "^", "abc)", "{TAB x}", "{F99}"])
def test_malformed_sequences_raise(bad):
    with pytest.raises(KeySequenceError):
        parse_key_sequence(bad)
