import unittest
from fractions import Fraction

from heap_layout import CollapseConfig, LayoutConfigError, build_layout, build_rows

from helpers import alloc, covered_bytes, requested_bytes, segments_of, tiling

ROW = 0x1000
COLLAPSE = CollapseConfig(enabled=True, threshold=3)


class CollapseLayoutTests(unittest.TestCase):
    def setUp(self) -> None:
        self.allocations = [alloc(0x0, 0x10), alloc(0x5000, 0x10, group_id=2)]
        self.rows = build_rows(self.allocations, ROW, 0, COLLAPSE)

    def test_empty_run_becomes_single_collapsed_row(self) -> None:
        self.assertEqual(len(self.rows), 3)
        first, middle, last = self.rows
        self.assertEqual((first.base, first.size, first.collapsed), (0x0, ROW, False))
        self.assertEqual((middle.base, middle.size, middle.collapsed), (0x1000, 0x4000, True))
        self.assertEqual((last.base, last.size, last.collapsed), (0x5000, ROW, False))
        self.assertEqual(middle.allocs, [])
        self.assertEqual(middle.gaps, [])

    def test_rows_are_contiguous(self) -> None:
        for prev, nxt in zip(self.rows, self.rows[1:]):
            self.assertEqual(prev.base + prev.size, nxt.base)

    def test_occupied_row_is_tiled_by_segment_and_gap(self) -> None:
        row = self.rows[0]
        self.assertEqual(len(row.allocs), 1)
        self.assertEqual(row.allocs[0].left_pct, 0)
        self.assertEqual(row.allocs[0].width_pct, Fraction(25, 64))
        self.assertEqual(len(row.gaps), 1)
        gap = row.gaps[0]
        self.assertEqual(gap.left_pct, Fraction(25, 64))
        self.assertEqual(gap.left_pct + gap.width_pct, 100)
        self.assertEqual(gap.size_hex, "0xFF0")

    def test_same_inputs_give_same_rows(self) -> None:
        again = build_rows(self.allocations, ROW, 0, COLLAPSE)
        self.assertEqual(again, self.rows)
        self.assertIsNot(again[0], self.rows[0])

    def test_run_below_threshold_stays_individual(self) -> None:
        rows = build_rows([alloc(0x0, 0x10), alloc(0x3000, 0x10)], ROW, 0, COLLAPSE)
        self.assertEqual([row.base for row in rows], [0x0, 0x1000, 0x2000, 0x3000])
        for empty in rows[1:3]:
            self.assertFalse(empty.collapsed)
            self.assertEqual(empty.allocs, [])
            self.assertEqual(len(empty.gaps), 1)
            self.assertEqual(empty.gaps[0].left_pct, 0)
            self.assertEqual(empty.gaps[0].width_pct, 100)
            self.assertEqual(empty.gaps[0].size_hex, "0x1000")


class EmptyRowCeilingTests(unittest.TestCase):
    def _check_ceiling(self, collapse: CollapseConfig) -> None:
        rows = build_rows([alloc(0x0, 0x10), alloc(30 * ROW, 0x10)], ROW, 0, collapse)
        self.assertEqual(len(rows), 23)
        collapsed = [row for row in rows if row.collapsed]
        self.assertEqual(len(collapsed), 1)
        self.assertEqual(collapsed[0].base, 11 * ROW)
        self.assertEqual(collapsed[0].size, 9 * ROW)
        self.assertEqual(rows.index(collapsed[0]), 11)
        self.assertEqual(rows[-1].base, 30 * ROW)
        for prev, nxt in zip(rows, rows[1:]):
            self.assertEqual(prev.end, nxt.base)

    def test_ceiling_applies_when_collapse_disabled(self) -> None:
        self._check_ceiling(CollapseConfig(enabled=False, threshold=3))

    def test_ceiling_applies_below_threshold(self) -> None:
        self._check_ceiling(CollapseConfig(enabled=True, threshold=50))

    def test_ceiling_not_reached_keeps_every_row(self) -> None:
        rows = build_rows([alloc(0x0, 0x10), alloc(21 * ROW, 0x10)], ROW, 0, CollapseConfig(enabled=False, threshold=3))
        self.assertEqual(len(rows), 22)
        self.assertFalse(any(row.collapsed for row in rows))


class SegmentationTests(unittest.TestCase):
    def test_allocation_crossing_row_boundary(self) -> None:
        rows = build_rows([alloc(0xF00, 0x180, 0x200)], ROW, 0, COLLAPSE)
        self.assertEqual([row.base for row in rows], [0x0, 0x1000])

        first = rows[0].allocs[0]
        self.assertEqual(first.address, 0xF00)
        self.assertEqual(first.left_pct, Fraction(375, 4))
        self.assertEqual(first.width_pct, Fraction(25, 4))
        self.assertEqual(first.requested_pct, 100)

        second = rows[1].allocs[0]
        self.assertEqual(second.address, 0xF00)
        self.assertEqual(second.left_pct, 0)
        self.assertEqual(second.width_pct, Fraction(25, 4))
        self.assertEqual(second.requested_pct, 50)

        self.assertEqual([gap.size_hex for gap in rows[0].gaps], ["0xF00"])
        self.assertEqual([gap.size_hex for gap in rows[1].gaps], ["0xF00"])

    def test_coverage_and_requested_conservation(self) -> None:
        allocations = [
            alloc(0x10, 0x20, 0x30),
            alloc(0xFF0, 0x2005, 0x2010),
            alloc(0x3100, 0x1, 0x7),
            alloc(0x8000, 0x3000, 0x3000),
            alloc(0xB000, 0x100, 0x180),
        ]
        rows = build_rows(allocations, ROW, 0, CollapseConfig(enabled=False, threshold=1))
        for a in allocations:
            self.assertEqual(covered_bytes(rows, a.address, ROW), a.actual_size)
            self.assertEqual(requested_bytes(rows, a.address, ROW), min(a.size, a.actual_size))

    def test_rows_tile_exactly(self) -> None:
        allocations = [alloc(0x100, 0x20), alloc(0x0, 0x10), alloc(0x800, 0x900), alloc(0x1F00, 0x40)]
        rows = build_rows(allocations, ROW, 0, COLLAPSE)
        for row in rows:
            spans = tiling(row)
            cursor = Fraction(0)
            for left, width in spans:
                self.assertEqual(left, cursor)
                self.assertGreater(width, 0)
                cursor = left + width
            self.assertEqual(cursor, 100)
            for seg in row.allocs:
                self.assertGreaterEqual(seg.left_pct, 0)
                self.assertLessEqual(seg.left_pct + seg.width_pct, 100)

    def test_unsorted_input_is_sorted_and_rows_unique(self) -> None:
        allocations = [alloc(0x2100, 0x10), alloc(0x100, 0x10), alloc(0x2000, 0x10), alloc(0x0, 0x10)]
        rows = build_rows(allocations, ROW, 0, COLLAPSE)
        bases = [row.base for row in rows]
        self.assertEqual(bases, [0x0, 0x1000, 0x2000])
        self.assertEqual([seg.address for seg in rows[0].allocs], [0x0, 0x100])
        self.assertEqual([seg.address for seg in rows[2].allocs], [0x2000, 0x2100])

    def test_allocation_starting_inside_spanned_row(self) -> None:
        allocations = [alloc(0x0, 0x2800), alloc(0x2900, 0x1000)]
        rows = build_rows(allocations, ROW, 0, COLLAPSE)
        self.assertEqual([row.base for row in rows], [0x0, 0x1000, 0x2000, 0x3000])
        self.assertEqual(len(rows[2].allocs), 2)
        self.assertEqual(len(list(segments_of(rows, 0x2900))), 2)

    def test_allocation_below_base_gets_negative_index_row(self) -> None:
        rows = build_rows([alloc(0x1800, 0x10)], ROW, 0x1000, COLLAPSE)
        self.assertEqual(rows[0].base, 0x1000)
        self.assertEqual(rows[0].allocs[0].left_pct, 50)

        rows = build_rows([alloc(0x800, 0x10), alloc(0x1000, 0x10)], ROW, 0x1000, COLLAPSE)
        self.assertEqual([row.base for row in rows], [0x0, 0x1000])
        self.assertEqual(rows[0].allocs[0].left_pct, 50)

    def test_unaligned_base_shifts_grid(self) -> None:
        rows = build_rows([alloc(0x1010, 0x20)], 0x100, 0x10, COLLAPSE)
        self.assertEqual(rows[0].base, 0x1010)
        self.assertEqual(rows[0].allocs[0].left_pct, 0)


class LargeAddressTests(unittest.TestCase):
    def test_base_is_bit_exact_near_top_of_64_bit_space(self) -> None:
        address = 0xFFFFFFFFFFFF0000
        rows = build_rows([alloc(address, 0x10)], ROW, 0, COLLAPSE)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].base, address)
        self.assertEqual(rows[0].allocs[0].address, address)

    def test_allocation_past_2_to_the_64(self) -> None:
        address = 2**64 - 0x10
        rows = build_rows([alloc(address, 0x20)], ROW, 0, COLLAPSE)
        self.assertEqual([row.base for row in rows], [2**64 - ROW, 2**64])
        self.assertEqual(covered_bytes(rows, address, ROW), 0x20)

    def test_sparse_space_stays_small(self) -> None:
        rows = build_rows(
            [alloc(0x0, 0x10), alloc(0xFFFFFFFFFFFF0000, 0x10)],
            ROW,
            0,
            CollapseConfig(enabled=False, threshold=1),
        )
        self.assertEqual(len(rows), 23)
        self.assertEqual(rows[-1].base, 0xFFFFFFFFFFFF0000)


class AnomalousAllocationTests(unittest.TestCase):
    def test_oversized_allocation_is_skipped_with_diagnostic(self) -> None:
        huge = alloc(0x4000, 0x10, ROW * 1000)
        normal = alloc(0x0, 0x10)
        with self.assertLogs("heap_layout.layout", level="WARNING") as captured:
            layout = build_layout([huge, normal], ROW, 0, COLLAPSE)
        self.assertEqual([row.base for row in layout.rows], [0x0])
        self.assertEqual(len(layout.diagnostics), 1)
        diagnostic = layout.diagnostics[0]
        self.assertEqual(diagnostic.kind, "anomalous_allocation")
        self.assertEqual(diagnostic.address, 0x4000)
        self.assertEqual(diagnostic.row_span, 1000)
        self.assertEqual(layout.skipped_addresses, [0x4000])
        self.assertIn("0x4000", captured.output[0])

    def test_limit_is_configurable(self) -> None:
        layout = build_layout([alloc(0x0, 0x10, 3 * ROW)], ROW, 0, COLLAPSE, max_rows_per_allocation=3)
        self.assertEqual(len(layout.rows), 3)
        self.assertEqual(layout.diagnostics, [])
        with self.assertLogs("heap_layout.layout", level="WARNING"):
            layout = build_layout([alloc(0x0, 0x10, 3 * ROW)], ROW, 0, COLLAPSE, max_rows_per_allocation=2)
        self.assertEqual(layout.rows, [])

    def test_first_row_follows_first_kept_allocation(self) -> None:
        with self.assertLogs("heap_layout.layout", level="WARNING"):
            rows = build_rows([alloc(0x0, 0x10, ROW * 600), alloc(0x7000, 0x10)], ROW, 0, COLLAPSE)
        self.assertEqual([row.base for row in rows], [0x7000])


class ConfigurationErrorTests(unittest.TestCase):
    def test_empty_allocations_yield_no_rows(self) -> None:
        self.assertEqual(build_rows([], ROW, 0, COLLAPSE), [])

    def test_bad_row_size_fails_fast(self) -> None:
        for row_size in (0, -0x1000, 1.5, float("inf"), "0x1000", True):
            with self.assertRaises(LayoutConfigError):
                build_rows([alloc(0x0, 0x10)], row_size, 0, COLLAPSE)
        with self.assertRaises(LayoutConfigError):
            build_rows([], 0, 0, COLLAPSE)

    def test_bad_base_fails_fast(self) -> None:
        for base in (-1, float("nan"), None, 0.0):
            with self.assertRaises(LayoutConfigError):
                build_rows([alloc(0x0, 0x10)], ROW, base, COLLAPSE)

    def test_bad_row_span_limit_fails_fast(self) -> None:
        for limit in (0, 2.5, True, "512"):
            with self.assertRaises(LayoutConfigError):
                build_layout([alloc(0x0, 0x10)], ROW, 0, COLLAPSE, max_rows_per_allocation=limit)

    def test_bad_threshold_fails_fast(self) -> None:
        with self.assertRaises(LayoutConfigError):
            build_rows([alloc(0x0, 0x10)], ROW, 0, CollapseConfig(enabled=True, threshold=0))

    def test_config_error_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            build_rows([alloc(0x0, 0x10)], 0, 0, COLLAPSE)


if __name__ == "__main__":
    unittest.main()
