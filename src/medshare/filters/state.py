"""
Browsing filter state.

`FilterState` is the single mutable object behind the filter panel: listing type,
sort order, search radius and the selected category. The category is one value
(`Selected(name)` or None); the plural `categories` list that older clients read is
derived from it whenever the state is serialized, so the two can never disagree.

Every mutation notifies subscribers synchronously with the complete new
`FilterValues` (no batching).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, get_args

from medshare.domain.models import FilterValues, ListingType, SortBy

DEFAULT_DISTANCE_KM = 10.0

Listener = Callable[[FilterValues], None]


@dataclass(frozen=True)
class Selected:
    name: str


CategorySelection = Selected | None


def legacy_categories(selection: CategorySelection) -> list[str]:
    return [selection.name] if selection is not None else []


class FilterState:
    def __init__(self, initial: FilterValues | None = None, *, on_change: Listener | None = None):
        initial = initial or FilterValues()
        self._type: ListingType = initial.type
        self._sort_by: SortBy = initial.sort_by
        self._distance = float(initial.distance)
        self._selection: CategorySelection = Selected(initial.category) if initial.category else None
        self._listeners: list[Listener] = []
        if on_change is not None:
            self._listeners.append(on_change)

    @property
    def type(self) -> ListingType:
        return self._type

    @property
    def sort_by(self) -> SortBy:
        return self._sort_by

    @property
    def distance(self) -> float:
        return self._distance

    @property
    def selection(self) -> CategorySelection:
        return self._selection

    def values(self) -> FilterValues:
        return FilterValues(
            type=self._type,
            sort_by=self._sort_by,
            categories=legacy_categories(self._selection),
            distance=self._distance,
            category=self._selection.name if self._selection else None,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change callback; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.values()
        for listener in list(self._listeners):
            listener(snapshot)

    def set_type(self, value: str) -> None:
        if value not in get_args(ListingType):
            raise ValueError(f"Unknown listing type '{value}'")
        self._type = value  # type: ignore[assignment]
        self._notify()

    def set_sort_by(self, value: str) -> None:
        if value not in get_args(SortBy):
            raise ValueError(f"Unknown sort order '{value}'")
        self._sort_by = value  # type: ignore[assignment]
        self._notify()

    def set_distance(self, km: float) -> None:
        if km < 0:
            raise ValueError("distance radius must be non-negative")
        self._distance = float(km)
        self._notify()

    def toggle_category(self, name: str) -> None:
        """Select `name` as the only category, or clear it if it is already selected."""
        if self._selection is not None and self._selection.name == name:
            self._selection = None
        else:
            self._selection = Selected(name)
        self._notify()

    def reset(self) -> None:
        self._type = "all"
        self._sort_by = "distance"
        self._distance = DEFAULT_DISTANCE_KM
        self._selection = None
        self._notify()
