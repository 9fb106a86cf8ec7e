"""Interactive terminal loop.

One asyncio loop owns the terminal. Key reads, resizes and command results
all land on a single queue and are folded into the state one at a time; the
screen is redrawn from the latest state after every event.
"""
from __future__ import annotations
import asyncio
import logging
import signal
import sys
from typing import List, Optional, TextIO

from prompt_toolkit.input import create_input
from prompt_toolkit.key_binding.key_processor import KeyPress
from prompt_toolkit.output import create_output

from commands import Dispatcher
from config import Config
from keys import key_names
from messages import KeyPressed, Resized
from render import render
from state import AppState, Controller
from storage import Store
from theme import Styles, build_styles, detect_color_mode

logger = logging.getLogger(__name__)

ESCAPE_TIMEOUT = 0.1


# --- terminal control helpers ---
def _clear_screen(out: TextIO) -> None:
    out.write("\033[3J\033[H\033[2J\033[H")


def _enter_alt_screen(out: TextIO) -> None:
    # Switch to alternate screen buffer and hide the cursor
    out.write("\033[?1049h\033[?25l")
    out.flush()


def _leave_alt_screen(out: TextIO) -> None:
    # Show the cursor and return to normal screen buffer
    out.write("\033[?25h\033[?1049l")
    out.flush()


class TerminalApp:
    def __init__(self, store: Store, config: Config,
                 stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.config = config
        self.controller = Controller(store, config)
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.color_mode = detect_color_mode(config.no_color, config.force_color, config.colorterm,
                                            self.stdout.isatty())
        self._styles: Optional[Styles] = None
        self._styles_key = ""

    def styles_for(self, theme_name: str) -> Styles:
        if self._styles is None or self._styles_key != theme_name:
            self._styles = build_styles(theme_name, self.color_mode)
            self._styles_key = theme_name
        return self._styles

    def draw(self, state: AppState) -> None:
        frame = render(state, self.styles_for(state.theme_name))
        _clear_screen(self.stdout)
        # CRLF so each row starts at column 0 in raw mode
        self.stdout.write(frame.replace("\n", "\r\n"))
        self.stdout.flush()

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[object]" = asyncio.Queue()
        dispatcher = Dispatcher(queue.put_nowait)
        term_in = create_input(self.stdin)
        term_out = create_output(self.stdout)
        flush_timer: Optional[asyncio.TimerHandle] = None

        def terminal_size() -> Resized:
            size = term_out.get_size()
            return Resized(size.columns, size.rows)

        def push(presses: List[KeyPress]) -> None:
            for key in key_names(presses):
                queue.put_nowait(KeyPressed(key))

        def flush_pending() -> None:
            # a lone escape stays buffered until no more bytes follow it
            nonlocal flush_timer
            flush_timer = None
            push(term_in.flush_keys())

        def on_input() -> None:
            nonlocal flush_timer
            push(term_in.read_keys())
            if flush_timer is not None:
                flush_timer.cancel()
            flush_timer = loop.call_later(ESCAPE_TIMEOUT, flush_pending)

        state = AppState(theme_name=self.config.theme)
        if self.config.alt_screen:
            _enter_alt_screen(self.stdout)
        try:
            with term_in.raw_mode(), term_in.attach(on_input):
                loop.add_signal_handler(signal.SIGWINCH, lambda: queue.put_nowait(terminal_size()))
                queue.put_nowait(terminal_size())
                dispatcher.dispatch(self.controller.init(state))
                while not state.quit:
                    event = await queue.get()
                    state, commands = self.controller.update(state, event)
                    dispatcher.dispatch(commands)
                    if not state.quit:
                        self.draw(state)
        finally:
            if flush_timer is not None:
                flush_timer.cancel()
            loop.remove_signal_handler(signal.SIGWINCH)
            dispatcher.shutdown()
            if self.config.alt_screen:
                _leave_alt_screen(self.stdout)
            else:
                _clear_screen(self.stdout)
                self.stdout.flush()
        logger.info("interactive session closed")


def run_tui(store: Store, config: Config) -> None:
    asyncio.run(TerminalApp(store, config).run())
