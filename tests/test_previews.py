from __future__ import annotations

import copy
from pathlib import Path
import tempfile
import unittest

from PIL import Image

import pool_fixtures as fx

from poolreview_core.core import RecordType, RenderError
from poolreview_raster import Placement, PolygonPrimitive, RecordingCanvas, TextPrimitive
from poolreview_report import (
    SYMBOL_VIEWS,
    PackageDrawing,
    RulesCheckLevel,
    SymbolDrawing,
    check_datasheet,
    check_package,
    image_filename,
    needs_trim,
    padstack_shapes,
    render_package_image,
    render_symbol_images,
)

TEXT_UUID = "33333333-0000-0000-0000-0000000000e1"


def _symbol() -> dict:
    return copy.deepcopy(fx.base_documents()["symbols/resistor.json"])


def _package() -> dict:
    return copy.deepcopy(fx.base_documents()["packages/r0402.json"])


def _padstacks() -> dict:
    return {fx.PADSTACK: fx.base_documents()["padstacks/smd.json"]}


def _texts(canvas: RecordingCanvas) -> list[TextPrimitive]:
    return [p for p in canvas.recording.primitives if isinstance(p, TextPrimitive)]


class ImageFilenameTests(unittest.TestCase):
    def test_names(self) -> None:
        self.assertEqual(image_filename(RecordType.SYMBOL, "abc"), "sym_abc.png")
        self.assertEqual(image_filename(RecordType.SYMBOL, "abc", "m270"), "sym_abc_m270.png")
        self.assertEqual(image_filename(RecordType.PACKAGE, "abc"), "pkg_abc.png")

    def test_records_without_previews(self) -> None:
        with self.assertRaises(ValueError):
            image_filename(RecordType.PART, "abc")

    def test_symbol_views_list_normal_orientations_first(self) -> None:
        codes = [view.orientation_code for view in SYMBOL_VIEWS]
        self.assertEqual(codes, ["n0", "n90", "n180", "n270", "m0", "m90", "m180", "m270"])


class SymbolDrawingTests(unittest.TestCase):
    def test_value_text_is_expanded_and_pins_are_labelled(self) -> None:
        drawing = SymbolDrawing(_symbol(), {fx.PIN_1: "1", fx.PIN_2: "2"})
        canvas = RecordingCanvas()
        drawing.render(canvas)
        texts = [t.text for t in _texts(canvas)]
        self.assertEqual(texts, ["1", "2", "$VALUE\nGroup\nTag"])

    def test_unnamed_pins_have_no_label(self) -> None:
        canvas = RecordingCanvas()
        SymbolDrawing(_symbol()).render(canvas)
        self.assertEqual(len(_texts(canvas)), 1)

    def test_text_placement_overrides_position_for_its_view(self) -> None:
        doc = _symbol()
        doc["texts"][TEXT_UUID]["position"] = [0, 0]
        doc["text_placements"] = [
            {"angle": 90, "mirror": False, "text": TEXT_UUID, "position": [10, 20], "text_angle": 0}
        ]
        drawing = SymbolDrawing(doc)
        self.assertTrue(drawing.has_text_placements)

        overridden = RecordingCanvas(scale=1.0)
        drawing.render(overridden, Placement(angle=90))
        self.assertEqual(_texts(overridden)[0].origin, (10.0, -20.0))
        self.assertEqual(_texts(overridden)[0].quarter_turns, 0)

        plain = RecordingCanvas(scale=1.0)
        drawing.render(plain, Placement(angle=180))
        self.assertEqual(_texts(plain)[0].origin, (0.0, 0.0))
        self.assertEqual(_texts(plain)[0].quarter_turns, 2)

    def test_malformed_geometry_is_a_render_error(self) -> None:
        doc = _symbol()
        doc["pins"][fx.PIN_1]["orientation"] = "sideways"
        with self.assertRaises(RenderError):
            SymbolDrawing(doc)
        doc = _symbol()
        doc["lines"][0].pop("to")
        with self.assertRaises(RenderError):
            SymbolDrawing(doc)

    def test_degenerate_text_and_line_are_render_errors(self) -> None:
        doc = _symbol()
        doc["texts"][TEXT_UUID]["size"] = 0
        with self.assertRaises(RenderError) as ctx:
            SymbolDrawing(doc)
        self.assertIn("text size", str(ctx.exception))
        doc = _symbol()
        doc["lines"][0]["width"] = -1
        with self.assertRaises(RenderError) as ctx:
            SymbolDrawing(doc)
        self.assertIn("negative", str(ctx.exception))


class SymbolImageTests(unittest.TestCase):
    def test_plain_symbol_gives_one_image(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            images = render_symbol_images(_symbol(), td, pin_names={fx.PIN_1: "1"})
            self.assertEqual(len(images), 1)
            self.assertIsNone(images[0].orientation)
            self.assertEqual(images[0].filename, f"sym_{fx.SYMBOL}.png")
            self.assertTrue(images[0].path.is_file())
            with Image.open(images[0].path) as image:
                self.assertEqual(image.mode, "RGBA")

    def test_text_placements_give_eight_orientations(self) -> None:
        doc = _symbol()
        doc["text_placements"] = [
            {"angle": 0, "mirror": True, "text": TEXT_UUID, "position": [0, 3 * fx.MM], "text_angle": 0}
        ]
        with tempfile.TemporaryDirectory() as td:
            images = render_symbol_images(doc, td)
            names = sorted(path.name for path in Path(td).iterdir())
        self.assertEqual([image.orientation for image in images], [view.orientation_code for view in SYMBOL_VIEWS])
        self.assertEqual(len(names), 8)
        self.assertIn(f"sym_{fx.SYMBOL}_m0.png", names)
        self.assertIn(f"sym_{fx.SYMBOL}_n270.png", names)

    def test_rotated_view_swaps_image_dimensions(self) -> None:
        doc = _symbol()
        doc["pins"] = {}
        doc["texts"] = {}
        doc["text_placements"] = [{"angle": 0, "mirror": False, "text": "none", "position": [0, 0]}]
        with tempfile.TemporaryDirectory() as td:
            images = {image.orientation: image for image in render_symbol_images(doc, td)}
            with Image.open(images["n0"].path) as n0, Image.open(images["n90"].path) as n90:
                self.assertGreater(n0.size[0], n0.size[1])
                self.assertGreater(n90.size[1], n90.size[0])


class PackageDrawingTests(unittest.TestCase):
    def test_pads_are_filled_and_outlines_are_stroked(self) -> None:
        canvas = RecordingCanvas()
        PackageDrawing(_package(), _padstacks()).render(canvas)
        polygons = [p for p in canvas.recording.primitives if isinstance(p, PolygonPrimitive)]
        self.assertEqual(len(polygons), 2)
        self.assertEqual([t.text for t in _texts(canvas)], ["M1234"])

    def test_refdes_is_only_replaced_on_exact_match(self) -> None:
        doc = _package()
        doc["texts"] = [{"text": "$RD-A", "position": [0, 0]}]
        canvas = RecordingCanvas()
        PackageDrawing(doc, _padstacks()).render(canvas)
        self.assertEqual([t.text for t in _texts(canvas)], ["$RD-A"])

    def test_unknown_padstack_is_a_render_error(self) -> None:
        with self.assertRaises(RenderError) as ctx:
            PackageDrawing(_package(), {})
        self.assertIn(fx.PADSTACK, str(ctx.exception))

    def test_rotated_pad_lands_at_its_position(self) -> None:
        doc = _package()
        doc["pads"] = {fx.PAD_1: {"name": "1", "padstack": fx.PADSTACK, "position": [100, 0], "angle": 90}}
        doc["lines"] = []
        doc["polygons"] = []
        doc["texts"] = []
        padstacks = {fx.PADSTACK: {"shapes": [{"form": "rectangle", "width": 20, "height": 10}]}}
        canvas = RecordingCanvas(scale=1.0)
        PackageDrawing(doc, padstacks).render(canvas)
        (pad,) = canvas.recording.primitives
        assert isinstance(pad, PolygonPrimitive)
        xs = [v[0] for v in pad.vertices]
        ys = [v[1] for v in pad.vertices]
        self.assertAlmostEqual(max(xs) - min(xs), 10)
        self.assertAlmostEqual(max(ys) - min(ys), 20)
        self.assertAlmostEqual((max(xs) + min(xs)) / 2, 100)

    def test_malformed_pads_are_render_errors(self) -> None:
        doc = _package()
        doc["pads"][fx.PAD_1] = "oops"
        with self.assertRaises(RenderError):
            PackageDrawing(doc, _padstacks())
        doc = _package()
        doc["lines"][0]["width"] = -0.1 * fx.MM
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(RenderError):
                render_package_image(doc, _padstacks(), td)
            self.assertEqual(list(Path(td).iterdir()), [])

    def test_two_vertex_pad_polygon_is_a_render_error(self) -> None:
        padstacks = {fx.PADSTACK: {"polygons": [{"vertices": [[0, 0], [fx.MM, 0]]}]}}
        with self.assertRaises(RenderError) as ctx:
            PackageDrawing(_package(), padstacks)
        self.assertIn("at least 3 vertices", str(ctx.exception))

    def test_render_package_image(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            image = render_package_image(_package(), _padstacks(), td)
            self.assertEqual(image.filename, f"pkg_{fx.PACKAGE}.png")
            self.assertEqual(image.key, (RecordType.PACKAGE, fx.PACKAGE, None))
            self.assertTrue(image.path.is_file())


class PadstackShapeTests(unittest.TestCase):
    def test_rectangle_circle_and_polygon(self) -> None:
        shapes = padstack_shapes(
            {
                "shapes": [
                    {"form": "rectangle", "width": 4, "height": 2, "position": [1, 1]},
                    {"form": "circle", "diameter": 2},
                ],
                "polygons": [{"vertices": [[0, 0], [1, 0], [0, 1]]}],
            }
        )
        self.assertEqual(len(shapes), 3)
        self.assertEqual(shapes[0].vertices, ((-1.0, 0.0), (3.0, 0.0), (3.0, 2.0), (-1.0, 2.0)))
        self.assertEqual(len(shapes[1].vertices), 32)
        self.assertTrue(all(shape.fill for shape in shapes))

    def test_unknown_form(self) -> None:
        with self.assertRaises(ValueError):
            padstack_shapes({"shapes": [{"form": "obround"}]})

    def test_polygon_needs_three_vertices(self) -> None:
        with self.assertRaises(ValueError):
            padstack_shapes({"polygons": [{"vertices": [[0, 0], [1, 0]]}]})


class RulesCheckTests(unittest.TestCase):
    def test_complete_package_passes(self) -> None:
        result = check_package(_package(), _padstacks())
        self.assertTrue(result.passed)
        self.assertEqual(result.level, RulesCheckLevel.PASS)

    def test_missing_courtyard_and_refdes_warn(self) -> None:
        doc = _package()
        doc["polygons"] = []
        doc["texts"] = []
        result = check_package(doc, _padstacks())
        self.assertEqual(result.level, RulesCheckLevel.WARN)
        self.assertEqual(
            [e.comment for e in result.errors],
            ["Package has no reference designator text", "Package has no courtyard polygon"],
        )

    def test_duplicate_pad_names_and_unknown_padstack_fail(self) -> None:
        doc = _package()
        doc["pads"][fx.PAD_2]["name"] = "1"
        result = check_package(doc, {})
        self.assertEqual(result.level, RulesCheckLevel.FAIL)
        comments = [e.comment for e in result.errors]
        self.assertIn("Pad name 1 is used 2 times", comments)
        self.assertEqual(sum("unknown padstack" in c for c in comments), 2)
        self.assertEqual(result.level.label, "fail")

    def test_package_without_pads_fails(self) -> None:
        doc = _package()
        doc["pads"] = {}
        self.assertEqual(check_package(doc, _padstacks()).level, RulesCheckLevel.FAIL)

    def test_malformed_pad_entries_fail(self) -> None:
        doc = _package()
        doc["pads"][fx.PAD_2] = "oops"
        doc["texts"] = ["$RD"]
        result = check_package(doc, _padstacks())
        self.assertEqual(result.level, RulesCheckLevel.FAIL)
        comments = [e.comment for e in result.errors]
        self.assertIn("Package has 1 malformed pad entries", comments)
        self.assertIn("Package has no reference designator text", comments)
        doc["pads"] = ["oops"]
        self.assertIn("Package has 1 malformed pad entries", [e.comment for e in check_package(doc, {}).errors])

    def test_needs_trim(self) -> None:
        self.assertTrue(needs_trim(" 10k"))
        self.assertTrue(needs_trim("10k\t"))
        self.assertFalse(needs_trim("10 k"))
        self.assertFalse(needs_trim(""))

    def test_check_datasheet(self) -> None:
        self.assertEqual(check_datasheet("https://www.mouser.com/ds/x.pdf"), "mouser.com")
        self.assertIsNone(check_datasheet("https://www.yageo.com/rc0402.pdf"))
        self.assertEqual(check_datasheet("https://a.example/x.pdf", ["a.example"]), "a.example")


if __name__ == "__main__":
    unittest.main()
