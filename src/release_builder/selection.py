"""Selection of fetched items.

The store works on a BuilderState by reference: the session controller owns
the state and every layer that renders it sees the same object.

Invariants:
- Loading items selects all of them
- Selection is a set of ids; toggling twice restores the original state
- The search query only changes what is displayed, never what is selected
"""

from __future__ import annotations

from release_builder.schemas import BuilderState, ChangeItem


class SelectionStore:
    """Item list, selected-id set and display filter of one session.

    Usage:
        store = SelectionStore(state)
        store.load_items(items)      # everything selected
        store.toggle_item("pr-12")   # deselect one
        store.set_search_query("fix")
        visible = store.visible_items()
    """

    def __init__(self, state: BuilderState) -> None:
        self.state = state

    def load_items(self, items: list[ChangeItem]) -> None:
        """Replace the item list and select every new item."""
        self.state.items = list(items)
        self.state.selected_ids = {item.id for item in items}

    def toggle_item(self, item_id: str) -> bool:
        """Flip membership of ``item_id`` and return whether it is now selected.

        Ids that aren't part of the loaded items are ignored.
        """
        if item_id in self.state.selected_ids:
            self.state.selected_ids.discard(item_id)
            return False
        if item_id not in self.item_ids():
            return False
        self.state.selected_ids.add(item_id)
        return True

    def select_all(self) -> None:
        self.state.selected_ids = self.item_ids()

    def clear(self) -> None:
        self.state.selected_ids = set()

    def set_search_query(self, query: str) -> None:
        self.state.search_query = query

    def item_ids(self) -> set[str]:
        return {item.id for item in self.state.items}

    def is_selected(self, item_id: str) -> bool:
        return item_id in self.state.selected_ids

    def selected_items(self) -> list[ChangeItem]:
        """Selected items in list order."""
        return [item for item in self.state.items if item.id in self.state.selected_ids]

    def visible_items(self) -> list[ChangeItem]:
        """Items matching the search query.

        Case-insensitive substring match over title, description, status
        and labels. A blank query shows everything.
        """
        query = self.state.search_query.strip().lower()
        if not query:
            return list(self.state.items)
        return [item for item in self.state.items if matches_query(item, query)]


def matches_query(item: ChangeItem, query: str) -> bool:
    """``query`` must already be stripped and lowercased."""
    return (
        query in item.title.lower()
        or query in item.description.lower()
        or query in item.status.lower()
        or any(query in label.lower() for label in item.labels)
    )
