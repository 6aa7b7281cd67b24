"""textual front-end: draws the navigator's rows and feeds it key events."""

from __future__ import annotations

from collections.abc import Callable

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import Header, Static

from glt import actions
from glt.navigation import Event, Mode, Navigator
from glt.projection import Row
from glt.tree import Node, NodeKind
from glt.utils.terminal_utils import SPINNER_FRAMES, truncate

POLL_SECONDS = 0.1

HELP = "q quit | r refresh | ↑/↓ move | gg/G top/bottom | → expand | ← collapse | y yank | o open | / search"

# Actions that are not navigation events.
COPY_URL = "copy_url"
OPEN_URL = "open_url"
BACKSPACE = "backspace"
TYPE = "type"
# first half of `gg`
GOTO_PREFIX = "goto_prefix"

BROWSE_CHARS: dict[str, Event | str] = {
    "k": Event.MOVE_UP,
    "j": Event.MOVE_DOWN,
    "g": GOTO_PREFIX,
    "G": Event.MOVE_BOTTOM,
    "l": Event.EXPAND_OR_TOGGLE,
    "h": Event.COLLAPSE,
    "/": Event.ENTER_SEARCH,
    "r": Event.REFRESH,
    "q": Event.QUIT,
    "y": COPY_URL,
    "o": OPEN_URL,
}

BROWSE_KEYS: dict[str, Event] = {
    "up": Event.MOVE_UP,
    "down": Event.MOVE_DOWN,
    "home": Event.MOVE_TOP,
    "end": Event.MOVE_BOTTOM,
    "pageup": Event.PAGE_UP,
    "pagedown": Event.PAGE_DOWN,
    "right": Event.EXPAND_OR_TOGGLE,
    "enter": Event.EXPAND_OR_TOGGLE,
    "left": Event.COLLAPSE,
    "escape": Event.CANCEL_SEARCH,
}

SEARCH_KEYS: dict[str, Event | str] = {
    "escape": Event.CANCEL_SEARCH,
    "enter": Event.APPLY_SEARCH,
    "up": Event.MOVE_UP,
    "down": Event.MOVE_DOWN,
    "backspace": BACKSPACE,
}


def resolve_key(key: str, character: str | None, mode: Mode) -> Event | str | None:
    """
    Translate a key press into a navigator event or a quick-action name.

    `character` is the printable character of the key, or None for
    special keys. While editing a search every printable key is typed
    into the term.
    """
    if mode is Mode.SEARCH_EDITING:
        if key in SEARCH_KEYS:
            return SEARCH_KEYS[key]
        return TYPE if character else None
    if character and character in BROWSE_CHARS:
        return BROWSE_CHARS[character]
    return BROWSE_KEYS.get(key)


def row_marker(node: Node, row: Row, pending: bool) -> str:
    if pending:
        return "[…]"
    if not node.expandable:
        return " * "
    if node.children_loaded and not node.children:
        return "[ ]"
    return "[-]" if row.is_expanded else "[+]"


def render_row(navigator: Navigator, row: Row) -> str:
    node = navigator.tree[row.index]
    marker = row_marker(node, row, navigator.is_pending(row.index))
    line = f"{'  ' * row.depth}{marker} {node.kind.value} {node.label}"
    if node.error:
        line += f"  ! {node.error}"
    return line


def format_node_details(node: Node | None) -> list[str]:
    if node is None:
        return ["No selection"]

    kind = {
        NodeKind.GROUP: "Group",
        NodeKind.PROJECT: "Project",
        NodeKind.USER_ROOT: "Personal projects",
    }[node.kind]
    lines = [
        f"Name: {node.label}",
        f"Kind: {kind}",
        f"Path: {node.full_path}",
    ]
    if node.kind is not NodeKind.USER_ROOT:
        lines.append(f"Visibility: {node.entity.visibility or '-'}")
    lines.append(f"URL: {node.web_url or '-'}")
    if node.last_activity_at:
        lines.append(f"Last activity: {node.last_activity_at}")
    if node.expandable:
        lines.append(f"Children: {len(node.children)}" if node.children_loaded else "Children: not loaded")
    if node.error:
        lines.append(f"Error: {node.error}")
    return lines


class GitlabTreeApp(App):
    """Interactive GitLab tree."""

    TITLE = "GitLab Tree"

    CSS = """
    #main {
        height: 1fr;
    }

    #tree {
        width: 60%;
        height: 100%;
        border: round $primary;
    }

    #details {
        width: 40%;
        height: 100%;
        border: round $secondary;
        padding: 0 1;
    }

    #status {
        height: 2;
        background: $panel;
        padding: 0 1;
    }
    """

    def __init__(
            self,
            navigator: Navigator,
            *,
            instance: str,
            token_set: bool = True,
            copy_text: Callable[[str], bool] = actions.copy_text_to_clipboard,
            open_url: Callable[[str], bool] = actions.open_in_browser,
    ) -> None:
        super().__init__()
        self.navigator = navigator
        self.instance = instance
        self.token_set = token_set
        self._copy_text = copy_text
        self._open_url = open_url
        self._tick_count = 0
        self._message: str | None = None
        self._pending_g = False

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main"):
            yield Static(id="tree")
            yield Static(id="details")
        yield Static(id="status")

    def on_mount(self) -> None:
        self.query_one("#tree", Static).border_title = "GitLab Tree"
        self.query_one("#details", Static).border_title = "Details"
        self.set_interval(POLL_SECONDS, self._tick)
        self.call_after_refresh(self.redraw)

    def on_resize(self, event: events.Resize) -> None:
        self.call_after_refresh(self.redraw)

    def _tick(self) -> None:
        self._tick_count += 1
        changed = self.navigator.poll()
        if changed or self.navigator.loading:
            self.redraw()
        self._flush_notices()

    def _flush_notices(self) -> None:
        for notice in self.navigator.take_notices():
            self.notify(notice.message, severity="error" if notice.error else "information", timeout=6)

    def on_key(self, event: events.Key) -> None:
        nav = self.navigator
        action = resolve_key(event.key, event.character if event.is_printable else None, nav.mode)
        pending_g, self._pending_g = self._pending_g, False
        if action is None:
            return
        event.stop()

        if isinstance(action, Event):
            if nav.handle(action):
                self.exit()
                return
        elif action == GOTO_PREFIX:
            if not pending_g:
                self._pending_g = True
                return
            nav.handle(Event.MOVE_TOP)
        elif action == TYPE:
            nav.type_char(event.character)
        elif action == BACKSPACE:
            nav.backspace()
        elif action == COPY_URL:
            self.copy_selected_url()
        elif action == OPEN_URL:
            self.open_selected_url()

        self.redraw()
        self._flush_notices()

    def copy_selected_url(self) -> None:
        url = self.navigator.selected_url()
        if not url:
            self._message = "copy failed: no selection"
        elif self._copy_text(url):
            self._message = f"copied {url}"
            self.notify("Copied URL", timeout=2)
        else:
            self._message = "clipboard unavailable"

    def open_selected_url(self) -> None:
        url = self.navigator.selected_url()
        if not url:
            self._message = "open failed: no selection"
        elif self._open_url(url):
            self._message = f"opened {url}"
        else:
            self._message = f"open failed: {url}"

    def status_line(self) -> str:
        nav = self.navigator
        tree = nav.tree
        parts = [
            self.instance,
            "token: set" if self.token_set else "token: unset",
            f"groups: {tree.count(NodeKind.GROUP)}, projects: {tree.count(NodeKind.PROJECT)}",
        ]
        if nav.loading:
            frame = SPINNER_FRAMES[self._tick_count % len(SPINNER_FRAMES)]
            parts.append(f"{frame} refreshing" if nav.refreshing else f"{frame} loading")
        if nav.term or nav.mode is Mode.SEARCH_EDITING:
            label = "search*" if nav.mode is Mode.SEARCH_EDITING else "search"
            parts.append(f"{label}: {nav.term}")
        if self._message:
            parts.append(self._message)
        return " | ".join(parts)

    def redraw(self) -> None:
        nav = self.navigator
        pane = self.query_one("#tree", Static)
        # size is the content area, border excluded
        nav.resize(pane.size.height)
        width = pane.size.width

        text = Text()
        for position, row in enumerate(nav.visible_window(), start=nav.scroll):
            line = render_row(nav, row)
            if width > 0:
                line = truncate(line, width)
            if position == nav.selected:
                style = "reverse"
            elif nav.term and row.is_match:
                style = "bold"
            else:
                style = ""
            text.append(line, style=style)
            text.append("\n")
        if not nav.rows:
            if nav.loading:
                text.append("loading GitLab data…")
            elif nav.term:
                text.append(f"no match for {nav.term!r}")
            else:
                text.append("nothing to show (r to refresh)")
        pane.update(text)

        self.query_one("#details", Static).update(Text("\n".join(format_node_details(nav.selected_node()))))
        self.query_one("#status", Static).update(Text(f"{self.status_line()}\n{HELP}"))
