"""Color & style helpers.

Decisions:
- Themes are plain values; switching theme builds a new ``Styles`` instead of
  rewriting module globals.
- Truecolor preferred; falls back to 256-color cube if unsupported.
- Disabled when not a TTY unless FORCE_COLOR is set; NO_COLOR always wins.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from models import Priority, Status

MODE_NONE = "none"
MODE_256 = "256"
MODE_TRUECOLOR = "truecolor"


@dataclass(frozen=True)
class Theme:
    name: str
    primary: str
    primary_light: str
    accent: str
    danger: str
    muted: str
    foreground: str
    selected_bg: str
    todo: str
    doing: str
    done: str
    priority_low: str
    priority_medium: str
    priority_high: str


THEMES: Dict[str, Theme] = {
    "purple": Theme(
        name="Purple",
        primary="#8B5CF6", primary_light="#A78BFA", accent="#F59E0B", danger="#EF4444",
        muted="#9CA3AF", foreground="#F9FAFB", selected_bg="#374151",
        todo="#9CA3AF", doing="#3B82F6", done="#10B981",
        priority_low="#9CA3AF", priority_medium="#F59E0B", priority_high="#EF4444",
    ),
    "ocean": Theme(
        name="Ocean",
        primary="#0EA5E9", primary_light="#7DD3FC", accent="#22D3EE", danger="#F43F5E",
        muted="#94A3B8", foreground="#F0F9FF", selected_bg="#1E3A5F",
        todo="#94A3B8", doing="#38BDF8", done="#2DD4BF",
        priority_low="#94A3B8", priority_medium="#FBBF24", priority_high="#F43F5E",
    ),
    "forest": Theme(
        name="Forest",
        primary="#22C55E", primary_light="#86EFAC", accent="#EAB308", danger="#DC2626",
        muted="#A3A3A3", foreground="#F7FEE7", selected_bg="#28402E",
        todo="#A3A3A3", doing="#84CC16", done="#15803D",
        priority_low="#A3A3A3", priority_medium="#EAB308", priority_high="#DC2626",
    ),
    "sunset": Theme(
        name="Sunset",
        primary="#F97316", primary_light="#FDBA74", accent="#EC4899", danger="#E11D48",
        muted="#A8A29E", foreground="#FFF7ED", selected_bg="#4A2C2A",
        todo="#A8A29E", doing="#FB923C", done="#FACC15",
        priority_low="#A8A29E", priority_medium="#FB923C", priority_high="#E11D48",
    ),
    "kanban": Theme(
        name="Kanban",
        primary="#476EAE", primary_light="#7C9ED6", accent="#F6FF99", danger="#E06C75",
        muted="#8B95A5", foreground="#EEF2F7", selected_bg="#2C3E5C",
        todo="#48B3AF", doing="#F6FF99", done="#A7E399",
        priority_low="#8B95A5", priority_medium="#F6FF99", priority_high="#E06C75",
    ),
}
THEME_NAMES: Tuple[str, ...] = tuple(THEMES)
DEFAULT_THEME = "purple"


def get_theme(name: str) -> Theme:
    return THEMES.get(name, THEMES[DEFAULT_THEME])


def detect_color_mode(no_color: bool, force_color: bool, colorterm: str, isatty: bool) -> str:
    if no_color or not (force_color or isatty):
        return MODE_NONE
    if any(tok in colorterm for tok in ("truecolor", "24bit")):
        return MODE_TRUECOLOR
    return MODE_256


def _hex_to_rgb(hex_code: str) -> Optional[Tuple[int, int, int]]:
    """Convert a hex color code to an RGB tuple, or None if it is not #RRGGBB."""
    h = hex_code.lstrip('#')
    if len(h) != 6:
        return None
    try:
        return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    except ValueError:
        return None


def _to_cube(r: int, g: int, b: int) -> int:
    """Approximate RGB to the xterm 256-color cube."""
    def to_6(x: int) -> int:
        return int(round(x / 255 * 5))
    return 16 + 36 * to_6(r) + 6 * to_6(g) + to_6(b)


@dataclass(frozen=True)
class Styles:
    """ANSI styling for one theme in one color mode."""
    theme: Theme
    mode: str = MODE_NONE

    @property
    def enabled(self) -> bool:
        return self.mode != MODE_NONE

    # -------------------- raw codes --------------------
    def code(self, part: str) -> str:
        return f"\033[{part}m" if self.enabled else ''

    @property
    def reset(self) -> str:
        return self.code('0')

    @property
    def bold(self) -> str:
        return self.code('1')

    @property
    def dim(self) -> str:
        return self.code('2')

    @property
    def strike(self) -> str:
        return self.code('9')

    def fg(self, hex_code: str) -> str:
        return self._rgb(hex_code, 38)

    def bg(self, hex_code: str) -> str:
        return self._rgb(hex_code, 48)

    def _rgb(self, hex_code: str, layer: int) -> str:
        if not self.enabled:
            return ''
        rgb = _hex_to_rgb(hex_code)
        if rgb is None:
            return ''
        r, g, b = rgb
        if self.mode == MODE_TRUECOLOR:
            return f"\033[{layer};2;{r};{g};{b}m"
        return f"\033[{layer};5;{_to_cube(r, g, b)}m"

    def color(self, text: str, *codes: str) -> str:
        """Apply ANSI codes to a given text."""
        if not self.enabled or not text:
            return text
        return ''.join(codes) + text + self.reset

    # -------------------- semantic roles --------------------
    def header(self, text: str) -> str:
        return self.color(text, self.fg(self.theme.primary), self.bold)

    def subheader(self, text: str) -> str:
        return self.color(text, self.fg(self.theme.primary_light), self.bold)

    def muted(self, text: str) -> str:
        return self.color(text, self.fg(self.theme.muted))

    def accent(self, text: str) -> str:
        return self.color(text, self.fg(self.theme.accent))

    def error(self, text: str) -> str:
        return self.color(text, self.fg(self.theme.danger), self.bold)

    def border(self, text: str, danger: bool = False) -> str:
        return self.color(text, self.fg(self.theme.danger if danger else self.theme.primary))

    def status_color(self, status: Status) -> str:
        return {
            Status.TODO: self.theme.todo,
            Status.DOING: self.theme.doing,
            Status.DONE: self.theme.done,
        }[status]

    def status(self, text: str, status: Status) -> str:
        return self.color(text, self.fg(self.status_color(status)), self.bold)

    def priority(self, priority: Priority) -> str:
        hexes = {
            Priority.LOW: self.theme.priority_low,
            Priority.MEDIUM: self.theme.priority_medium,
            Priority.HIGH: self.theme.priority_high,
        }
        if priority is Priority.NONE:
            return ''
        return self.color(priority.icon, self.fg(hexes[priority]))

    def title(self, text: str, done: bool = False) -> str:
        if done:
            return self.color(text, self.fg(self.theme.muted), self.strike)
        return self.color(text, self.fg(self.theme.foreground))

    def tag(self, name: str, hex_code: str) -> str:
        return self.color(f"#{name}", self.fg(hex_code))

    def due(self, text: str, kind: str) -> str:
        if kind == "overdue":
            return self.color(text, self.fg(self.theme.danger), self.bold)
        if kind == "today":
            return self.color(text, self.fg(self.theme.accent), self.bold)
        return self.color(text, self.fg(self.theme.muted))

    def selected(self, text: str) -> str:
        """Highlight a whole row; ``text`` must already be padded."""
        if not self.enabled:
            return text
        # re-apply the highlight after every inner reset
        on = self.bg(self.theme.selected_bg) + self.bold
        return on + text.replace(self.reset, self.reset + on) + self.reset

    def tab(self, text: str, active: bool) -> str:
        if active:
            return self.color(text, self.bg(self.theme.primary), self.fg(self.theme.foreground), self.bold)
        return self.color(text, self.fg(self.theme.muted))

    def badge(self, text: str) -> str:
        return self.color(text, self.fg(self.theme.accent), self.bold)

    def swatch(self, theme: Theme) -> str:
        return self.color("●", self.fg(theme.primary))


def build_styles(theme_name: str, mode: str) -> Styles:
    return Styles(get_theme(theme_name), mode)
