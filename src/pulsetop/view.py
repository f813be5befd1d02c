"""Stateful process query holder with incremental pagination."""

from collections.abc import Iterable

from pulsetop.models import FilterCriteria, ProcessRecord, SortDirection, SortKey, SortSpec
from pulsetop.pipeline import apply_filters, apply_sort, base_order, classify

PAGE_SIZE = 100


class ProcessView:
    """
    Current process snapshot plus the user's query over it.

    Rows are recomputed whenever the snapshot, the filters, the sort or the
    unknown toggle changes. Each recompute yields a new result set, so the
    visible row count falls back to one page. ``load_more`` grows it one page
    at a time while more rows exist.
    """

    def __init__(self, page_size: int = PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._page_size = page_size
        self._snapshot: tuple[ProcessRecord, ...] = ()
        self._filters = FilterCriteria()
        self._sort = SortSpec()
        self._show_unknown = False
        self._rows: list[ProcessRecord] = []
        self._unknown_count = 0
        self._active_count = 0
        self._visible_count = page_size
        self._has_snapshot = False

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def snapshot(self) -> tuple[ProcessRecord, ...]:
        """Raw snapshot as received. Never modified by the view."""
        return self._snapshot

    @property
    def has_snapshot(self) -> bool:
        """True once a snapshot arrived since construction or the last clear."""
        return self._has_snapshot

    @property
    def filters(self) -> FilterCriteria:
        return self._filters

    @property
    def sort(self) -> SortSpec:
        return self._sort

    @property
    def show_unknown(self) -> bool:
        return self._show_unknown

    @property
    def rows(self) -> list[ProcessRecord]:
        """All rows matching the current query, in display order."""
        return list(self._rows)

    @property
    def visible_count(self) -> int:
        return self._visible_count

    @property
    def visible_rows(self) -> list[ProcessRecord]:
        """Materialized slice of ``rows`` for presentation."""
        return self._rows[: self._visible_count]

    @property
    def has_more(self) -> bool:
        return self._visible_count < len(self._rows)

    @property
    def unknown_count(self) -> int:
        return self._unknown_count

    @property
    def active_count(self) -> int:
        return self._active_count

    def update_snapshot(self, records: Iterable[ProcessRecord]) -> None:
        """Replace the snapshot wholesale."""
        self._snapshot = tuple(records)
        self._has_snapshot = True
        self._recompute()

    def clear(self) -> None:
        """Forget the snapshot. Filters and sort are kept."""
        self._snapshot = ()
        self._has_snapshot = False
        self._recompute()

    def set_filters(self, filters: FilterCriteria) -> None:
        self._filters = filters
        self._recompute()

    def set_sort(self, sort: SortSpec) -> None:
        self._sort = sort
        self._recompute()

    def toggle_sort(self, key: SortKey) -> SortSpec:
        """Same key flips direction; a new key starts descending."""
        if key is SortKey.NONE:
            sort = SortSpec()
        elif self._sort.key is key:
            direction = (
                SortDirection.ASC
                if self._sort.direction is SortDirection.DESC
                else SortDirection.DESC
            )
            sort = SortSpec(key=key, direction=direction)
        else:
            sort = SortSpec(key=key, direction=SortDirection.DESC)
        self.set_sort(sort)
        return sort

    def set_show_unknown(self, show_unknown: bool) -> None:
        self._show_unknown = show_unknown
        self._recompute()

    def load_more(self) -> bool:
        """
        Grow the visible slice by one page.

        Called when the consumer is close to the end of the materialized
        rows. Returns False when everything is already visible.
        """
        if not self.has_more:
            return False
        self._visible_count += self._page_size
        return True

    def find(self, pid: int) -> ProcessRecord | None:
        """Look a pid up in the raw snapshot."""
        for record in self._snapshot:
            if record.pid == pid:
                return record
        return None

    def _recompute(self) -> None:
        classification = classify(self._snapshot)
        self._unknown_count = len(classification.unknown)
        self._active_count = len(classification.active)
        rows = base_order(classification, self._show_unknown)
        rows = apply_filters(rows, self._filters)
        self._rows = apply_sort(rows, self._sort)
        self._visible_count = self._page_size
