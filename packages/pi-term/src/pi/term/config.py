"""Renderer settings, read from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


@dataclass
class TUISettings:
    """Knobs for the compositor and the ANSI terminal sink.

    Attributes:
        show_hardware_cursor: Position and show the real cursor at the
            cursor marker (``PI_HARDWARE_CURSOR=1``).
        clear_on_shrink: Clear the screen when the frame gets shorter than
            the tallest frame drawn so far (``PI_CLEAR_ON_SHRINK=1``).
        write_log: Append every byte written to the terminal to this file
            (``PI_TUI_WRITE_LOG``).
    """

    show_hardware_cursor: bool = False
    clear_on_shrink: bool = False
    write_log: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> TUISettings:
        env = os.environ if environ is None else environ
        return cls(
            show_hardware_cursor=env.get("PI_HARDWARE_CURSOR") == "1",
            clear_on_shrink=env.get("PI_CLEAR_ON_SHRINK") == "1",
            write_log=env.get("PI_TUI_WRITE_LOG") or None,
        )
