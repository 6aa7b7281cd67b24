# glt/navigation.py
"""
Navigation state machine over the visible-row projection.

The navigator owns the current tree generation, the selection and scroll
offset, the search term and the set of nodes with a fetch in flight. It
consumes abstract input events (never physical keys) and background load
results, and exposes the row projection for a renderer to draw.

Selection is an index into `rows`, but it is anchored to the selected
node: whenever the projection changes the same node is selected again if
it is still visible, otherwise the old position is clamped.

The generation moves on when a refresh starts and again when its tree is
swapped in. A load result is applied only if it carries the current
generation, so an expansion issued against a replaced tree is dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from glt.builder import TreeBuilder
from glt.loader import BackgroundLoader, LoadResult
from glt.projection import MatchMode, Row, SortKey, project_rows
from glt.tree import Node, ResourceTree

logger = logging.getLogger("gitlab_tree.navigation")


class Event(Enum):
    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"
    MOVE_TOP = "move_top"
    MOVE_BOTTOM = "move_bottom"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    EXPAND_OR_TOGGLE = "expand_or_toggle"
    COLLAPSE = "collapse"
    ENTER_SEARCH = "enter_search"
    APPLY_SEARCH = "apply_search"
    CANCEL_SEARCH = "cancel_search"
    REFRESH = "refresh"
    QUIT = "quit"


class Mode(Enum):
    BROWSING = "browsing"
    SEARCH_EDITING = "search_editing"


@dataclass(frozen=True, slots=True)
class Notice:
    """A dismissible message about one failed operation."""
    message: str
    error: bool = True


class Navigator:
    def __init__(
            self,
            tree: ResourceTree,
            builder: TreeBuilder,
            loader: BackgroundLoader,
            *,
            sort_key: SortKey = SortKey.NAME,
            match_mode: MatchMode = MatchMode.FUZZY,
            page_size: int = 20,
    ) -> None:
        self.tree = tree
        self.builder = builder
        self.loader = loader
        self.sort_key = sort_key
        self.match_mode = match_mode

        self.mode = Mode.BROWSING
        self.term = ""
        self.generation = 0
        self.selected = 0
        self.scroll = 0
        self.height = max(1, page_size)
        self.notices: list[Notice] = []

        self._pending: set[int] = set()
        self._refreshing = False
        self._anchor_index: int | None = None
        self._anchor_ident: tuple[str, int] | None = None
        self._pre_search: tuple[int | None, tuple[str, int] | None] | None = None
        self._rows: list[Row] = []
        self._reproject()

    # ---- projection & selection ----

    @property
    def rows(self) -> list[Row]:
        return self._rows

    @property
    def loading(self) -> bool:
        return bool(self._pending) or self._refreshing

    @property
    def refreshing(self) -> bool:
        return self._refreshing

    def is_pending(self, index: int) -> bool:
        return index in self._pending

    def selected_row(self) -> Row | None:
        if not self._rows:
            return None
        return self._rows[self.selected]

    def selected_node(self) -> Node | None:
        row = self.selected_row()
        return self.tree[row.index] if row is not None else None

    def selected_url(self) -> str | None:
        node = self.selected_node()
        return node.web_url if node is not None and node.web_url else None

    def visible_window(self) -> list[Row]:
        return self._rows[self.scroll:self.scroll + self.height]

    def resize(self, height: int) -> None:
        self.height = max(1, height)
        self._scroll_into_view()

    def _set_selected(self, position: int) -> None:
        if not self._rows:
            self.selected = 0
            self._anchor_index = None
            self._anchor_ident = None
        else:
            self.selected = max(0, min(position, len(self._rows) - 1))
            index = self._rows[self.selected].index
            self._anchor_index = index
            self._anchor_ident = self.tree[index].ident
        self._scroll_into_view()

    def _position_of(self, index: int | None, ident: tuple[str, int] | None) -> int | None:
        if index is not None:
            for pos, row in enumerate(self._rows):
                if row.index == index:
                    return pos
        if ident is not None:
            for pos, row in enumerate(self._rows):
                if self.tree[row.index].ident == ident:
                    return pos
        return None

    def _reproject(self) -> None:
        """Recompute rows and re-resolve the selection against them."""
        self._rows = project_rows(self.tree, self.sort_key, self.term, self.match_mode)
        position = self._position_of(self._anchor_index, self._anchor_ident)
        self._set_selected(self.selected if position is None else position)

    def _scroll_into_view(self) -> None:
        if self.selected < self.scroll:
            self.scroll = self.selected
        elif self.selected >= self.scroll + self.height:
            self.scroll = self.selected - self.height + 1
        self.scroll = max(0, min(self.scroll, max(0, len(self._rows) - self.height)))

    # ---- events ----

    def handle(self, event: Event) -> bool:
        """
        Apply one input event, then any load results that are ready.

        Returns:
            True when the event asks the session to quit.
        """
        match event:
            case Event.MOVE_UP:
                self._set_selected(self.selected - 1)
            case Event.MOVE_DOWN:
                self._set_selected(self.selected + 1)
            case Event.MOVE_TOP:
                self._set_selected(0)
            case Event.MOVE_BOTTOM:
                self._set_selected(len(self._rows) - 1)
            case Event.PAGE_UP:
                self._set_selected(self.selected - self.height)
            case Event.PAGE_DOWN:
                self._set_selected(self.selected + self.height)
            case Event.EXPAND_OR_TOGGLE:
                self.expand_or_toggle()
            case Event.COLLAPSE:
                self.collapse()
            case Event.ENTER_SEARCH:
                self.enter_search()
            case Event.APPLY_SEARCH:
                self.apply_search()
            case Event.CANCEL_SEARCH:
                self.cancel_search()
            case Event.REFRESH:
                self.refresh()
            case Event.QUIT:
                self.loader.close()
                return True
        self.poll()
        return False

    def expand_or_toggle(self) -> None:
        row = self.selected_row()
        if row is None:
            return
        index = row.index
        node = self.tree[index]
        if not node.expandable:
            return

        if node.children_loaded:
            node.expanded = not node.expanded
            self._reproject()
            return

        if index in self._pending:
            logger.debug("Ignoring expand of %s: fetch already in flight.", node.label)
            return

        self._pending.add(index)
        tree, builder = self.tree, self.builder
        self.loader.submit(self.generation, index, lambda: builder.fetch_children(tree, index))

    def collapse(self) -> None:
        row = self.selected_row()
        if row is None:
            return
        node = self.tree[row.index]
        if node.expanded and not self.term:
            node.expanded = False
            self._reproject()
            return
        if node.parent is not None:
            position = self._position_of(node.parent, None)
            if position is not None:
                self._set_selected(position)

    def enter_search(self) -> None:
        if self.mode is Mode.SEARCH_EDITING:
            return
        self.mode = Mode.SEARCH_EDITING
        self._pre_search = (self._anchor_index, self._anchor_ident)

    def type_char(self, ch: str) -> None:
        if self.mode is not Mode.SEARCH_EDITING:
            return
        self.term += ch
        self._reproject()

    def backspace(self) -> None:
        if self.mode is not Mode.SEARCH_EDITING or not self.term:
            return
        self.term = self.term[:-1]
        self._reproject()

    def apply_search(self) -> None:
        self.mode = Mode.BROWSING
        self.term = self.term.strip()
        self._reproject()

    def cancel_search(self) -> None:
        self.mode = Mode.BROWSING
        self.term = ""
        if self._pre_search is not None:
            self._anchor_index, self._anchor_ident = self._pre_search
            self._pre_search = None
        self._reproject()

    def refresh(self) -> None:
        """Rebuild the whole tree in the background; stale in-flight results get dropped."""
        if self._refreshing:
            logger.debug("Ignoring refresh: rebuild already in flight.")
            return
        self.generation += 1
        self._pending.clear()
        self._refreshing = True
        logger.info("Refreshing tree (generation %s).", self.generation)
        self.loader.submit(self.generation, None, self.builder.rebuild_tree)

    # ---- background results ----

    def poll(self) -> bool:
        """Apply finished loads of the current generation. Returns True if anything changed."""
        changed = False
        for result in self.loader.drain_results():
            if result.generation != self.generation:
                logger.debug("Dropping stale result (generation %s, index %s).", result.generation, result.index)
                continue
            if result.index is None:
                self._apply_tree(result)
            else:
                self._apply_children(result)
            changed = True
        return changed

    def _apply_children(self, result: LoadResult) -> None:
        index = result.index
        self._pending.discard(index)
        node = self.tree[index]
        if not result.ok:
            node.error = str(result.error)
            node.expanded = False
            self.notices.append(Notice(f"{node.label}: {result.error}"))
            logger.warning("Expanding %s failed: %s", node.full_path, result.error)
            return
        self.builder.attach_children(self.tree, index, result.payload)
        node.expanded = True
        self._reproject()

    def _apply_tree(self, result: LoadResult) -> None:
        self._refreshing = False
        if not result.ok:
            self.notices.append(Notice(f"refresh failed: {result.error}"))
            logger.warning("Refresh failed, keeping the previous tree: %s", result.error)
            return
        self.tree = result.payload
        # loads issued against the old tree must not land in this one
        self.generation += 1
        self._pending.clear()
        self._anchor_index = None
        if self._pre_search is not None:
            self._pre_search = (None, self._pre_search[1])
        self._reproject()

    def take_notices(self) -> list[Notice]:
        notices, self.notices = self.notices, []
        return notices

    def post_notice(self, message: str, *, error: bool = True) -> None:
        self.notices.append(Notice(message, error))
