"""Row selection bookkeeping for bulk actions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from app.services.resource_config import Record


@dataclass(frozen=True)
class Selection:
    """Immutable set of selected record ids.

    Every mutator returns a new ``Selection``; the record collection is never
    touched.
    """

    ids: frozenset[str] = frozenset()

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, record_id: object) -> bool:
        return str(record_id) in self.ids

    def is_selected(self, record_id: object) -> bool:
        return str(record_id) in self.ids

    def toggle(self, record_id: object) -> Selection:
        key = str(record_id)
        if key in self.ids:
            return Selection(self.ids - {key})
        return Selection(self.ids | {key})

    def all_selected(self, visible_ids: Iterable[object]) -> bool:
        visible = {str(item) for item in visible_ids}
        return bool(visible) and visible <= self.ids

    def select_all(self, visible_ids: Iterable[object]) -> Selection:
        """Select exactly the visible ids, or clear when they are all selected."""
        visible = frozenset(str(item) for item in visible_ids)
        if not visible or visible <= self.ids:
            return Selection()
        return Selection(visible)

    def clear(self) -> Selection:
        return Selection()

    def without(self, record_ids: Iterable[object]) -> Selection:
        removed = {str(item) for item in record_ids}
        if not removed & self.ids:
            return self
        return Selection(self.ids - removed)

    def selected_records(
        self, records: Sequence[Mapping[str, Any]], id_field: str = "id"
    ) -> list[Record]:
        """Resolve the selection against ``records``, in collection order.

        Ids whose record no longer exists are skipped.
        """
        return [
            dict(record)
            for record in records
            if record.get(id_field) is not None and str(record.get(id_field)) in self.ids
        ]
