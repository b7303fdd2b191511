from __future__ import annotations

import unittest

from poolreview_core.core.changes import ChangeEntry, ChangeKind, PathRow, resolve_changes
from poolreview_core.core.records import RecordRef, RecordType


def _rows() -> list[PathRow]:
    return [
        PathRow(RecordRef(RecordType.PART, "p1"), "RC0402", "parts/rc0402.json"),
        PathRow(RecordRef(RecordType.ENTITY, "e1"), "Resistor", "entities/resistor.json"),
        PathRow(RecordRef(RecordType.UNIT, "u1"), "Resistor", "units/resistor.json"),
    ]


class ChangeResolverTests(unittest.TestCase):
    def test_items_keep_change_order_and_non_items_are_listed(self) -> None:
        entries = [
            ChangeEntry.from_code("units/resistor.json", 3),
            ChangeEntry.from_code("README.md", 3),
            ChangeEntry.from_code("parts/rc0402.json", 1),
        ]
        resolution = resolve_changes(entries, _rows())
        self.assertEqual([item.ref.uuid for item in resolution.items], ["u1", "p1"])
        self.assertEqual(resolution.non_items, ("README.md",))
        self.assertEqual(resolution.items[0].change.kind, ChangeKind.MODIFIED)
        self.assertEqual(resolution.items[1].change.label, "New")

    def test_unknown_change_codes_are_reported_with_their_code(self) -> None:
        entry = ChangeEntry.from_code("parts/rc0402.json", 2)
        self.assertEqual(entry.kind, ChangeKind.UNKNOWN)
        self.assertEqual(entry.label, "Unknown (2)")

    def test_duplicate_rows_for_one_path_pick_first_by_type_and_uuid(self) -> None:
        rows = _rows() + [PathRow(RecordRef(RecordType.ENTITY, "e0"), "Other", "parts/rc0402.json")]
        with self.assertLogs("poolreview_core.core.changes", level="WARNING") as logs:
            resolution = resolve_changes([ChangeEntry.from_code("parts/rc0402.json", 3)], rows)
        self.assertEqual(len(resolution.items), 1)
        self.assertEqual(resolution.items[0].ref, RecordRef(RecordType.ENTITY, "e0"))
        self.assertIn("matches 2 records", logs.output[0])

    def test_repeated_paths_resolve_once(self) -> None:
        entries = [ChangeEntry.from_code("parts/rc0402.json", 3)] * 2
        resolution = resolve_changes(entries, _rows())
        self.assertEqual(len(resolution.items), 1)

    def test_paths_are_normalized(self) -> None:
        resolution = resolve_changes([ChangeEntry.from_code("./parts\\rc0402.json", 3)], _rows())
        self.assertEqual(len(resolution.items), 1)
        self.assertEqual(resolution.items[0].filename, "parts/rc0402.json")

    def test_items_of_type_and_changed_refs(self) -> None:
        entries = [ChangeEntry.from_code(row.filename, 1) for row in _rows()]
        resolution = resolve_changes(entries, _rows())
        self.assertEqual([i.ref.uuid for i in resolution.items_of_type(RecordType.ENTITY)], ["e1"])
        self.assertIn(RecordRef(RecordType.UNIT, "u1"), resolution.changed_refs)
        self.assertIn(RecordRef(RecordType.PART, "p1"), resolution.changed_refs)
        self.assertNotIn(RecordRef(RecordType.PART, "p2"), resolution.changed_refs)


if __name__ == "__main__":
    unittest.main()
