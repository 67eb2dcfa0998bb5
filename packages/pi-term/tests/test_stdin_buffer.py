"""Tests for pi.term.stdin_buffer.StdinBuffer."""

from __future__ import annotations

import pytest

from pi.term.stdin_buffer import (
    BRACKETED_PASTE_END,
    BRACKETED_PASTE_START,
    ESC,
    StdinBuffer,
    _extract_complete_sequences,
    _is_complete_sequence,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Collector:
    """Collects emitted data/paste events for assertions."""

    def __init__(self) -> None:
        self.data: list[str] = []
        self.pastes: list[str] = []

    def on_data(self, d: str) -> None:
        self.data.append(d)

    def on_paste(self, d: str) -> None:
        self.pastes.append(d)


def make_buffer() -> tuple[StdinBuffer, Collector]:
    buf = StdinBuffer()
    col = Collector()
    buf.on_data(col.on_data)
    buf.on_paste(col.on_paste)
    return buf, col


# ---------------------------------------------------------------------------
# Sequence classification
# ---------------------------------------------------------------------------


class TestIsCompleteSequence:
    @pytest.mark.parametrize(
        ("data", "expected"),
        [
            ("a", "not-escape"),
            (ESC, "incomplete"),
            ("\x1b[", "incomplete"),
            ("\x1b[1;5", "incomplete"),
            ("\x1b[A", "complete"),
            ("\x1b[1;5A", "complete"),
            ("\x1b[200~", "complete"),
            ("\x1b[<0;1;2M", "complete"),
            ("\x1b[<0;1;2m", "complete"),
            ("\x1b[<0;1M", "incomplete"),
            ("\x1b[Mab", "incomplete"),
            ("\x1b[Mabc", "complete"),
            ("\x1b]0;t\x07", "complete"),
            ("\x1b]0;t\x1b\\", "complete"),
            ("\x1b]0;t", "incomplete"),
            ("\x1bP1\x07", "incomplete"),
            ("\x1bP1\x1b\\", "complete"),
            ("\x1b_Gi=1\x1b\\", "complete"),
            ("\x1bO", "incomplete"),
            ("\x1bOA", "complete"),
            ("\x1bx", "complete"),
        ],
    )
    def test_classification(self, data: str, expected: str) -> None:
        assert _is_complete_sequence(data) == expected

    def test_extract_leaves_partial_remainder(self) -> None:
        assert _extract_complete_sequences("ab\x1b[") == (["a", "b"], "\x1b[")

    def test_extract_all_complete(self) -> None:
        assert _extract_complete_sequences("a\x1b[Bc") == (["a", "\x1b[B", "c"], "")


# ---------------------------------------------------------------------------
# Plain input and escape sequences
# ---------------------------------------------------------------------------


class TestProcess:
    def test_characters_emitted_one_by_one(self) -> None:
        buf, col = make_buffer()
        buf.process("abc")
        assert col.data == ["a", "b", "c"]

    def test_whole_sequence(self) -> None:
        buf, col = make_buffer()
        buf.process("\x1b[A")
        assert col.data == ["\x1b[A"]

    def test_mixed(self) -> None:
        buf, col = make_buffer()
        buf.process("a\x1b[Bc")
        assert col.data == ["a", "\x1b[B", "c"]

    def test_split_sequence_is_buffered(self) -> None:
        buf, col = make_buffer()
        buf.process("\x1b[")
        assert col.data == []
        assert buf.get_buffer() == "\x1b["
        buf.process("A")
        assert col.data == ["\x1b[A"]
        assert buf.get_buffer() == ""

    @pytest.mark.parametrize(
        "sequence",
        ["\x1b[1;5A", "\x1b[<0;10;20M", "\x1b]11;rgb:0000/0000/0000\x07", "\x1b[97;5u"],
    )
    def test_every_split_point_yields_one_unit(self, sequence: str) -> None:
        for cut in range(1, len(sequence)):
            buf, col = make_buffer()
            buf.process(sequence[:cut])
            buf.process(sequence[cut:])
            assert col.data == [sequence], cut

    def test_legacy_mouse(self) -> None:
        buf, col = make_buffer()
        buf.process("\x1b[Ma")
        assert col.data == []
        buf.process("bc")
        assert col.data == ["\x1b[Mabc"]

    def test_apc_reply(self) -> None:
        buf, col = make_buffer()
        buf.process("\x1b_Gi=1;OK\x1b\\")
        assert col.data == ["\x1b_Gi=1;OK\x1b\\"]

    def test_dcs_reply(self) -> None:
        buf, col = make_buffer()
        buf.process("\x1bP>|kitty\x1b\\")
        assert col.data == ["\x1bP>|kitty\x1b\\"]

    def test_ss3_waits_for_final(self) -> None:
        buf, col = make_buffer()
        buf.process("\x1bO")
        assert col.data == []
        buf.process("A")
        assert col.data == ["\x1bOA"]

    def test_alt_key(self) -> None:
        buf, col = make_buffer()
        buf.process("\x1bx")
        assert col.data == ["\x1bx"]

    def test_empty_chunk_is_keep_alive(self) -> None:
        buf, col = make_buffer()
        buf.process("")
        assert col.data == [""]

    def test_empty_chunk_with_pending_input_emits_nothing(self) -> None:
        buf, col = make_buffer()
        buf.process("\x1b[")
        buf.process("")
        assert col.data == []

    def test_multiple_handlers(self) -> None:
        buf, first = make_buffer()
        second = Collector()
        buf.on_data(second.on_data)
        buf.process("x")
        assert first.data == ["x"]
        assert second.data == ["x"]


# ---------------------------------------------------------------------------
# Bytes input
# ---------------------------------------------------------------------------


class TestBytes:
    def test_high_bit_byte_is_meta(self) -> None:
        buf, col = make_buffer()
        buf.process(b"\xe4")
        assert col.data == ["\x1bd"]

    def test_utf8_decoded(self) -> None:
        buf, col = make_buffer()
        buf.process("\u00e9".encode())
        assert col.data == ["\u00e9"]

    def test_utf8_split_across_chunks(self) -> None:
        encoded = "你".encode()
        buf, col = make_buffer()
        buf.process(encoded[:2])
        assert col.data == []
        buf.process(encoded[2:])
        assert col.data == ["你"]

    def test_invalid_utf8_replaced(self) -> None:
        buf, col = make_buffer()
        buf.process(b"a\xffb")
        assert col.data == ["a", "\ufffd", "b"]


# ---------------------------------------------------------------------------
# Bracketed paste
# ---------------------------------------------------------------------------


class TestPaste:
    def test_single_chunk(self) -> None:
        buf, col = make_buffer()
        buf.process(f"{BRACKETED_PASTE_START}hello{BRACKETED_PASTE_END}")
        assert col.pastes == ["hello"]
        assert col.data == []

    def test_surrounding_keys(self) -> None:
        buf, col = make_buffer()
        buf.process(f"a{BRACKETED_PASTE_START}x{BRACKETED_PASTE_END}b")
        assert col.data == ["a", "b"]
        assert col.pastes == ["x"]

    def test_across_chunks(self) -> None:
        buf, col = make_buffer()
        buf.process(f"A{BRACKETED_PASTE_START}partial")
        assert buf.paste_mode
        buf.process("-text")
        buf.process(f"{BRACKETED_PASTE_END}B")
        assert col.data == ["A", "B"]
        assert col.pastes == ["partial-text"]
        assert not buf.paste_mode

    def test_escape_inside_paste_is_literal(self) -> None:
        buf, col = make_buffer()
        buf.process(f"{BRACKETED_PASTE_START}\x1b[A{BRACKETED_PASTE_END}")
        assert col.pastes == ["\x1b[A"]
        assert col.data == []

    def test_empty_paste(self) -> None:
        buf, col = make_buffer()
        buf.process(BRACKETED_PASTE_START + BRACKETED_PASTE_END)
        assert col.pastes == [""]


# ---------------------------------------------------------------------------
# flush / clear / destroy
# ---------------------------------------------------------------------------


class TestDrain:
    def test_flush_emits_partial_sequence(self) -> None:
        buf, col = make_buffer()
        buf.process("\x1b[")
        assert buf.flush() == ["\x1b["]
        assert col.data == ["\x1b["]
        assert buf.get_buffer() == ""
        assert buf.flush() == []

    def test_flush_lone_escape(self) -> None:
        buf, col = make_buffer()
        buf.process(ESC)
        buf.flush()
        assert col.data == [ESC]

    def test_clear_discards(self) -> None:
        buf, col = make_buffer()
        buf.process(f"\x1b[{BRACKETED_PASTE_START}abc")
        buf.clear()
        assert buf.get_buffer() == ""
        assert not buf.paste_mode
        assert col.data == []

    def test_destroy_drops_handlers(self) -> None:
        buf, col = make_buffer()
        buf.destroy()
        buf.process("x")
        assert col.data == []
