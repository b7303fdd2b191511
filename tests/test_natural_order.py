from __future__ import annotations

import unittest

from poolreview_core.core.natural_order import natural_compare, natural_key, natural_sorted


class NaturalOrderTests(unittest.TestCase):
    def test_digit_runs_compare_numerically(self) -> None:
        self.assertEqual(natural_sorted(["R100", "R10", "R2"]), ["R2", "R10", "R100"])

    def test_letters_before_later_letters(self) -> None:
        self.assertEqual(natural_compare("A", "R2"), -1)
        self.assertEqual(natural_compare("R2", "A"), 1)
        self.assertEqual(natural_compare("R2", "R2"), 0)

    def test_mixed_chunks(self) -> None:
        names = ["U10.B", "U2.B", "U2.A", "U1"]
        self.assertEqual(natural_sorted(names), ["U1", "U2.A", "U2.B", "U10.B"])

    def test_case_insensitive_with_stable_tiebreak(self) -> None:
        self.assertLess(natural_key("abc"), natural_key("ABD"))
        self.assertNotEqual(natural_key("a"), natural_key("A"))

    def test_sorted_with_key(self) -> None:
        rows = [("x", "Pad 10"), ("y", "Pad 9")]
        self.assertEqual(natural_sorted(rows, key=lambda r: r[1]), [("y", "Pad 9"), ("x", "Pad 10")])

    def test_leading_digits_sort_before_text(self) -> None:
        self.assertEqual(natural_sorted(["B", "10", "2"]), ["2", "10", "B"])


if __name__ == "__main__":
    unittest.main()
