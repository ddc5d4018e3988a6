"""Tests for grid geometry, duplex mirroring and the layout engine."""
from __future__ import annotations

import pytest

from card_sheets.config import BleedMode, Orientation, SheetConfig
from card_sheets.layout import (
    CleanupPlan,
    LayoutEngine,
    PageGeometry,
    Rect,
    SheetCursor,
    plan_cleanup,
)


EPS = 1e-9

CONFIGS = [
    SheetConfig(),
    SheetConfig(orientation=Orientation.LANDSCAPE),
    SheetConfig(card_width=41, card_height=100, gap=5),
    SheetConfig(card_width=63, card_height=88, gap=3),
    SheetConfig(card_width=63.5, card_height=88.9, gap=2.5, orientation=Orientation.LANDSCAPE),
    SheetConfig(card_width=300, card_height=400, gap=5),
    SheetConfig(card_width=20, card_height=20, gap=0),
]


def contains(outer: Rect, inner: Rect) -> bool:
    return (
        outer.x <= inner.x + EPS
        and outer.y <= inner.y + EPS
        and inner.right <= outer.right + EPS
        and inner.bottom <= outer.bottom + EPS
    )


def overlaps(a: Rect, b: Rect) -> bool:
    return (
        a.x < b.right - EPS
        and b.x < a.right - EPS
        and a.y < b.bottom - EPS
        and b.y < a.bottom - EPS
    )


class TestPageGeometry:
    """Grid sizing and positions."""

    def test_default_portrait(self):
        """41x64 cards with a 5 mm gap fit 4x4 on portrait A4."""
        g = PageGeometry.for_config(SheetConfig())
        assert (g.cards_per_row, g.cards_per_column) == (4, 4)
        assert g.printed_width == pytest.approx(189.0)
        assert g.printed_height == pytest.approx(281.0)
        assert g.margin_left == pytest.approx(10.5)
        assert g.margin_top == pytest.approx(8.0)

    def test_landscape_swaps_page(self):
        g = PageGeometry.for_config(SheetConfig(orientation=Orientation.LANDSCAPE))
        assert (g.page_width, g.page_height) == pytest.approx((297.0, 210.0))
        assert (g.cards_per_row, g.cards_per_column) == (6, 2)

    def test_oversized_card_still_gets_one_cell(self):
        g = PageGeometry.for_config(SheetConfig(card_width=300, card_height=400))
        assert (g.cards_per_row, g.cards_per_column) == (1, 1)
        assert g.margin_left < 0

    @pytest.mark.parametrize("config", CONFIGS)
    def test_printed_size_and_centering(self, config):
        g = PageGeometry.for_config(config)
        W, H, G = config.card_width, config.card_height, config.gap
        assert g.cards_per_row >= 1 and g.cards_per_column >= 1
        assert g.cards_per_row * (W + G) + G == pytest.approx(g.printed_width)
        assert g.cards_per_column * (H + G) + G == pytest.approx(g.printed_height)
        assert g.margin_left == pytest.approx((g.page_width - g.printed_width) / 2)
        assert g.margin_top == pytest.approx((g.page_height - g.printed_height) / 2)

    @pytest.mark.parametrize("config", CONFIGS)
    def test_mirror_law(self, config):
        """Front and back cells are reflections about the page centre."""
        g = PageGeometry.for_config(config)
        W = config.card_width
        for x in range(g.cards_per_row):
            front = g.front_x(x) - g.margin_left
            back = g.back_x(x) - g.margin_left
            assert front + back + W == pytest.approx(g.page_width - 2 * g.margin_left)
            assert g.front_x(x) + g.back_x(x) + W == pytest.approx(g.page_width)

    def test_back_cell_without_bleed_matches_card(self):
        g = PageGeometry.for_config(SheetConfig())
        cell = g.back_cell(1, 2)
        assert cell == Rect(g.back_x(1), g.cell_y(2), 41, 64)
        assert g.front_cell(1, 2).y == cell.y

    def test_back_bleed_grows_by_half_gap(self):
        g = PageGeometry.for_config(SheetConfig())
        cell = g.back_cell(0, 0, BleedMode.BACK)
        assert cell.x == pytest.approx(g.back_x(0) - 2.5)
        assert cell.y == pytest.approx(g.cell_y(0) - 2.5)
        assert (cell.width, cell.height) == (46, 69)

    def test_front_bleed_is_not_applied(self):
        g = PageGeometry.for_config(SheetConfig())
        assert g.back_cell(0, 0, BleedMode.FRONT) == g.back_cell(0, 0)

    def test_back_printed_area_mirrors_front(self):
        g = PageGeometry.for_config(SheetConfig(card_width=50, card_height=70, gap=4))
        assert g.back_printed_area == g.printed_area.mirrored(g.page_width)

    def test_guides_cover_both_card_edges(self):
        g = PageGeometry.for_config(SheetConfig())
        columns = g.column_guides()
        rows = g.row_guides()
        assert len(columns) == 2 * g.cards_per_row
        assert len(rows) == 2 * g.cards_per_column
        assert columns[0] == pytest.approx(g.front_x(0))
        assert columns[1] == pytest.approx(g.front_x(0) + 41)
        assert rows[-1] == pytest.approx(g.cell_y(3) + 64)


class TestSheetCursor:
    def test_wraps_rows_then_page(self):
        g = PageGeometry.for_config(SheetConfig(card_width=41, card_height=100, gap=5))
        cursor = SheetCursor(page_open=True)
        positions = []
        for _ in range(9):
            positions.append((cursor.x, cursor.y))
            cursor.advance(g)
        assert positions == [
            (0, 0), (1, 0), (2, 0), (3, 0),
            (0, 1), (1, 1), (2, 1), (3, 1),
            (0, 0),
        ]

    def test_full_page_closes_cursor(self):
        g = PageGeometry.for_config(SheetConfig(card_width=300, card_height=400))
        cursor = SheetCursor(page_open=True)
        cursor.advance(g)
        assert cursor.at_page_start
        assert not cursor.page_open


class TestCleanup:
    """Overpaint of unused cells on the last sheet."""

    def test_nothing_placed(self):
        g = PageGeometry.for_config(SheetConfig())
        plan = plan_cleanup(g, SheetCursor())
        assert not plan
        assert (plan.columns_to_clean, plan.rows_to_clean) == (0, 0)

    def test_one_trailing_cell(self):
        g = PageGeometry.for_config(SheetConfig(card_width=41, card_height=100, gap=5))
        plan = plan_cleanup(g, SheetCursor(x=3, y=1, page_open=True))
        assert (plan.columns_to_clean, plan.rows_to_clean) == (1, 0)
        assert len(plan.front) == 1 and len(plan.back) == 1
        rect = plan.front[0]
        assert rect.x == pytest.approx(g.front_x(3))
        assert rect.y == pytest.approx(g.cell_y(1))
        assert rect.width == pytest.approx(46)
        assert rect.height == pytest.approx(105)
        assert rect.right == pytest.approx(g.margin_left + g.printed_width)
        assert plan.back[0] == rect.mirrored(g.page_width)
        assert plan.back[0].x == pytest.approx(g.margin_left)

    def test_empty_row_folds_into_full_rows(self):
        g = PageGeometry.for_config(SheetConfig())
        plan = plan_cleanup(g, SheetCursor(x=0, y=2, page_open=True))
        assert (plan.columns_to_clean, plan.rows_to_clean) == (0, 2)
        assert plan.front == plan.back
        (rect,) = plan.front
        assert rect.x == pytest.approx(g.margin_left)
        assert rect.y == pytest.approx(g.cell_y(2))
        assert rect.width == pytest.approx(g.printed_width)
        assert rect.height == pytest.approx(2 * (64 + 5))
        assert rect.bottom == pytest.approx(g.margin_top + g.printed_height)

    def test_top_row_also_blanks_border_gap(self):
        g = PageGeometry.for_config(SheetConfig())
        plan = plan_cleanup(g, SheetCursor(x=1, y=0, page_open=True))
        row_rect = plan.front[0]
        assert row_rect.y == pytest.approx(g.margin_top)
        assert row_rect.height == pytest.approx(64 + 2 * 5)
        assert plan.rows_to_clean == 3

    def test_lower_row_keeps_gap_above(self):
        g = PageGeometry.for_config(SheetConfig())
        plan = plan_cleanup(g, SheetCursor(x=1, y=1, page_open=True))
        assert plan.front[0].y == pytest.approx(g.cell_y(1))
        assert plan.front[0].height == pytest.approx(64 + 5)

    @pytest.mark.parametrize("config", CONFIGS)
    def test_cleanup_completeness(self, config):
        """Used cells and cleanup rectangles split the grid of the last sheet exactly."""
        g = PageGeometry.for_config(config)
        for count in range(1, g.capacity + 1):
            cursor = SheetCursor(page_open=True)
            for _ in range(count):
                cursor.advance(g)
            plan = plan_cleanup(g, cursor)
            if count == g.capacity:
                assert not plan
                continue

            for index in range(g.capacity):
                x, y = index % g.cards_per_row, index // g.cards_per_row
                front = g.front_cell(x, y)
                back = g.back_cell(x, y)
                if index < count:
                    assert not any(overlaps(r, front) for r in plan.front)
                    assert not any(overlaps(r, back) for r in plan.back)
                else:
                    assert any(contains(r, front) for r in plan.front)
                    assert any(contains(r, back) for r in plan.back)

            for rect in plan.front + plan.back:
                assert contains(g.printed_area, rect)


class TestLayoutEngine:
    def test_empty_stream_opens_nothing(self, sink):
        summary = LayoutEngine(SheetConfig(), sink).run([])
        assert summary.cards == 0
        assert summary.pages == 0
        assert summary.geometry is None
        assert sink.pages == [] and sink.cleanups == []

    def test_seven_cards_on_four_by_two(self, sink, make_pairs):
        config = SheetConfig(card_width=41, card_height=100, gap=5)
        summary = LayoutEngine(config, sink).run(make_pairs(7))

        assert summary.pages == 1
        assert summary.cards == 7
        assert (summary.cursor.x, summary.cursor.y) == (3, 1)
        assert [(p.column, p.row) for _, p, _ in sink.placements] == [
            (0, 0), (1, 0), (2, 0), (3, 0), (0, 1), (1, 1), (2, 1),
        ]
        (plan,) = sink.cleanups
        assert (plan.columns_to_clean, plan.rows_to_clean) == (1, 0)
        assert plan.front == (Rect(153.5, 151.0, 46.0, 105.0),)

    def test_exact_fill_needs_no_cleanup(self, sink, make_pairs):
        config = SheetConfig(card_width=41, card_height=100, gap=5)
        summary = LayoutEngine(config, sink).run(make_pairs(8))
        assert summary.pages == 1
        assert summary.cursor.at_page_start
        assert not summary.cleanup
        assert sink.cleanups == []

    def test_new_page_opens_on_overflow(self, sink, make_pairs):
        config = SheetConfig(card_width=41, card_height=100, gap=5)
        summary = LayoutEngine(config, sink).run(make_pairs(9))
        assert summary.pages == 2
        assert len(sink.pages) == 2
        last_page, placement, _ = sink.placements[-1]
        assert last_page == 2
        assert (placement.column, placement.row) == (0, 0)
        (plan,) = sink.cleanups
        assert (plan.columns_to_clean, plan.rows_to_clean) == (3, 1)

    def test_pairs_are_passed_through_in_order(self, sink, make_pairs):
        pairs = make_pairs(5)
        LayoutEngine(SheetConfig(), sink).run(pairs)
        assert [pair for _, _, pair in sink.placements] == pairs

    def test_back_bleed_reaches_placements(self, sink, make_pairs):
        config = SheetConfig(bleed=BleedMode.BACK)
        LayoutEngine(config, sink).run(make_pairs(1))
        _, placement, _ = sink.placements[0]
        g = sink.pages[0]
        assert placement.back == g.back_cell(0, 0, BleedMode.BACK)
        assert placement.front == g.front_cell(0, 0)

    def test_progress_callback(self, sink, make_pairs):
        seen = []
        LayoutEngine(SheetConfig(), sink, on_card=seen.append).run(make_pairs(3))
        assert seen == [1, 2, 3]

    def test_source_errors_propagate(self, sink, make_pairs):
        def failing():
            yield from make_pairs(2)
            raise RuntimeError("broken source")

        with pytest.raises(RuntimeError, match="broken source"):
            LayoutEngine(SheetConfig(), sink).run(failing())
        assert sink.cleanups == []

    def test_cleanup_plan_is_falsy_when_empty(self):
        assert not CleanupPlan()
