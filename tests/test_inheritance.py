from __future__ import annotations

import unittest

from poolreview_core.core.errors import CyclicDerivation
from poolreview_core.core.inheritance import (
    derivation_chain,
    derived_parts_tree,
    display_mpn,
    resolve_part,
)
from poolreview_core.core.records import NIL_UUID, PadMapItem, Part, PartAttribute, RecordRef, RecordType


def _part(uuid: str, base: str = NIL_UUID, **attrs: str | None) -> Part:
    mapping = {
        PartAttribute.MPN: attrs.get("mpn"),
        PartAttribute.VALUE: attrs.get("value"),
        PartAttribute.MANUFACTURER: attrs.get("manufacturer"),
        PartAttribute.DATASHEET: attrs.get("datasheet"),
        PartAttribute.DESCRIPTION: attrs.get("description"),
    }
    return Part(uuid=uuid, base=base, attributes=mapping)


def _library() -> dict[str, Part]:
    base = Part(
        uuid="base",
        attributes={
            PartAttribute.MPN: "RC0402",
            PartAttribute.VALUE: "10k",
            PartAttribute.MANUFACTURER: "Yageo",
            PartAttribute.DATASHEET: "https://example.com/rc.pdf",
            PartAttribute.DESCRIPTION: "Resistor",
        },
        entity="e1",
        package="k1",
        tags=("resistor", "smd"),
        pad_map={"pad1": PadMapItem(gate="g1", pin="p1")},
    )
    child = Part(
        uuid="child",
        base="base",
        attributes={PartAttribute.MPN: "RC0402-T", PartAttribute.VALUE: None},
        tags=("tape",),
        inherit_tags=True,
    )
    grandchild = _part("grandchild", "child", mpn="RC0402-T-R7", description="Reel")
    return {part.uuid: part for part in (base, child, grandchild)}


class DerivationChainTests(unittest.TestCase):
    def test_chain_follows_base_until_nil(self) -> None:
        chain = derivation_chain("grandchild", _library())
        self.assertEqual([p.uuid for p in chain], ["grandchild", "child", "base"])

    def test_unknown_part_raises_key_error(self) -> None:
        with self.assertRaises(KeyError):
            derivation_chain("nope", _library())

    def test_cycle_raises_with_offending_ref(self) -> None:
        parts = {"a": _part("a", "b", mpn="A"), "b": _part("b", "a", mpn="B")}
        with self.assertRaises(CyclicDerivation) as ctx:
            derivation_chain("a", parts)
        self.assertEqual(ctx.exception.ref, RecordRef(RecordType.PART, "a"))

    def test_self_derivation_is_a_cycle(self) -> None:
        with self.assertRaises(CyclicDerivation):
            resolve_part("a", {"a": _part("a", "a")})


class ResolvePartTests(unittest.TestCase):
    def test_values_come_from_first_link_that_sets_them(self) -> None:
        resolved = resolve_part("grandchild", _library())
        self.assertEqual(resolved.mpn, "RC0402-T-R7")
        self.assertFalse(resolved.is_inherited(PartAttribute.MPN))
        self.assertEqual(resolved.value(PartAttribute.VALUE), "10k")
        self.assertTrue(resolved.is_inherited(PartAttribute.VALUE))
        self.assertEqual(resolved.attributes[PartAttribute.VALUE].source, "base")
        self.assertEqual(resolved.value(PartAttribute.DESCRIPTION), "Reel")
        self.assertFalse(resolved.is_inherited(PartAttribute.DESCRIPTION))

    def test_entity_package_and_pad_map_come_from_the_chain(self) -> None:
        resolved = resolve_part("child", _library())
        self.assertEqual(resolved.entity, "e1")
        self.assertEqual(resolved.package, "k1")
        self.assertIn("pad1", resolved.pad_map)
        self.assertEqual(resolved.base.uuid, "base")

    def test_tags_union_while_inheriting(self) -> None:
        lib = _library()
        self.assertEqual(resolve_part("child", lib).tags, ("resistor", "smd", "tape"))
        self.assertTrue(resolve_part("child", lib).tags_inherited)
        self.assertEqual(resolve_part("grandchild", lib).tags, ())

    def test_resolution_is_idempotent(self) -> None:
        lib = _library()
        self.assertEqual(resolve_part("grandchild", lib), resolve_part("grandchild", lib))

    def test_missing_base_ends_chain_with_warning(self) -> None:
        parts = {"orphan": _part("orphan", "ghost", mpn="X")}
        resolved = resolve_part("orphan", parts)
        self.assertEqual(len(resolved.chain), 1)
        self.assertEqual(len(resolved.warnings), 1)
        self.assertIn("ghost", resolved.warnings[0])
        self.assertTrue(resolved.is_inherited(PartAttribute.VALUE))

    def test_unset_values_on_plain_part_are_not_inherited(self) -> None:
        resolved = resolve_part("p", {"p": _part("p", mpn="X")})
        self.assertEqual(resolved.value(PartAttribute.DATASHEET), "")
        self.assertFalse(resolved.is_inherited(PartAttribute.DATASHEET))

    def test_display_mpn_falls_back_on_cycle(self) -> None:
        parts = {"a": _part("a", "b", mpn="A"), "b": _part("b", "a", mpn="B")}
        self.assertEqual(display_mpn("a", parts), "A")


class DerivedPartsTreeTests(unittest.TestCase):
    def test_pre_order_with_natural_child_order(self) -> None:
        parts = {
            "root": _part("root", mpn="R"),
            "c10": _part("c10", "root", mpn="R-10"),
            "c2": _part("c2", "root", mpn="R-2"),
            "c2a": _part("c2a", "c2", mpn="R-2-A"),
        }
        root = RecordRef(RecordType.PART, "root")
        changed = {RecordRef(RecordType.PART, "c2a"), root}
        nodes = derived_parts_tree([root], parts, changed)
        self.assertEqual([(n.name, n.depth) for n in nodes], [("R", 0), ("R-2", 1), ("R-2-A", 2), ("R-10", 1)])
        self.assertEqual([n.in_change for n in nodes], [True, False, True, False])
        self.assertTrue(all(n.root == root for n in nodes))

    def test_cycle_below_root_terminates(self) -> None:
        parts = {"a": _part("a", "b", mpn="A"), "b": _part("b", "a", mpn="B")}
        nodes = derived_parts_tree([RecordRef(RecordType.PART, "a")], parts, [])
        self.assertEqual([n.ref.uuid for n in nodes], ["a", "b"])

    def test_non_part_roots_are_ignored(self) -> None:
        nodes = derived_parts_tree([RecordRef(RecordType.UNIT, "u")], _library(), [])
        self.assertEqual(nodes, ())


if __name__ == "__main__":
    unittest.main()
