"""
Grid packing of card pairs onto double-sided sheets.

All coordinates here are millimetres measured from the top-left corner of
the page with y growing downward. Back-side x positions are mirrored about
the page centre so that a sheet flipped along its vertical axis puts every
back exactly behind its front.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Protocol, Tuple

from .config import BleedMode, SheetConfig
from .sources import CardPair


@dataclass(frozen=True)
class Rect:
    """Axis aligned rectangle in page millimetres (top-left origin)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def mirrored(self, page_width: float) -> "Rect":
        """The same rectangle reflected about the vertical page centre line."""
        return Rect(page_width - self.right, self.y, self.width, self.height)


@dataclass(frozen=True)
class PageGeometry:
    """Grid layout of one sheet, derived from page, card and gap size."""

    page_width: float
    page_height: float
    card_width: float
    card_height: float
    gap: float
    cards_per_row: int
    cards_per_column: int
    margin_left: float
    margin_top: float
    printed_width: float
    printed_height: float

    @classmethod
    def compute(
        cls,
        page_width: float,
        page_height: float,
        card_width: float,
        card_height: float,
        gap: float,
    ) -> "PageGeometry":
        """
        Fit as many cards as possible (at least one per axis) and centre the grid.

        A grid of n cards is n * (card + gap) + gap wide: every card has a gap
        on its left and the last one also on its right.
        """
        cards_per_row = max(1, math.floor((page_width - gap) / (gap + card_width)))
        cards_per_column = max(1, math.floor((page_height - gap) / (gap + card_height)))

        printed_width = cards_per_row * (card_width + gap) + gap
        printed_height = cards_per_column * (card_height + gap) + gap

        return cls(
            page_width=page_width,
            page_height=page_height,
            card_width=card_width,
            card_height=card_height,
            gap=gap,
            cards_per_row=cards_per_row,
            cards_per_column=cards_per_column,
            margin_left=(page_width - printed_width) / 2,
            margin_top=(page_height - printed_height) / 2,
            printed_width=printed_width,
            printed_height=printed_height,
        )

    @classmethod
    def for_config(cls, config: SheetConfig) -> "PageGeometry":
        page_width, page_height = config.page_size
        return cls.compute(
            page_width, page_height, config.card_width, config.card_height, config.gap
        )

    @property
    def capacity(self) -> int:
        return self.cards_per_row * self.cards_per_column

    def front_x(self, column: int) -> float:
        return self.gap + (self.card_width + self.gap) * column + self.margin_left

    def back_x(self, column: int) -> float:
        return (
            self.page_width
            - self.margin_left
            - self.card_width
            - self.gap
            - (self.card_width + self.gap) * column
        )

    def cell_y(self, row: int) -> float:
        return self.gap + (self.card_height + self.gap) * row + self.margin_top

    def front_cell(self, column: int, row: int) -> Rect:
        return Rect(self.front_x(column), self.cell_y(row), self.card_width, self.card_height)

    def back_cell(self, column: int, row: int, bleed: BleedMode = BleedMode.NONE) -> Rect:
        """Back image rectangle; with back bleed it overlaps half the gap on each side."""
        x = self.back_x(column)
        y = self.cell_y(row)
        if bleed & BleedMode.BACK:
            half_gap = self.gap / 2
            return Rect(
                x - half_gap,
                y - half_gap,
                self.card_width + self.gap,
                self.card_height + self.gap,
            )
        return Rect(x, y, self.card_width, self.card_height)

    @property
    def printed_area(self) -> Rect:
        return Rect(self.margin_left, self.margin_top, self.printed_width, self.printed_height)

    @property
    def back_printed_area(self) -> Rect:
        return Rect(
            self.page_width - (self.margin_left + self.printed_width),
            self.page_height - (self.margin_top + self.printed_height),
            self.printed_width,
            self.printed_height,
        )

    def column_guides(self) -> List[float]:
        """X positions of the left and right edge of every card column."""
        guides: List[float] = []
        for column in range(self.cards_per_row):
            left = self.margin_left + self.gap + (self.card_width + self.gap) * column
            guides.extend((left, left + self.card_width))
        return guides

    def row_guides(self) -> List[float]:
        """Y positions of the top and bottom edge of every card row."""
        guides: List[float] = []
        for row in range(self.cards_per_column):
            top = self.margin_top + self.gap + (self.card_height + self.gap) * row
            guides.extend((top, top + self.card_height))
        return guides


@dataclass
class SheetCursor:
    """Next free cell on the current sheet."""

    x: int = 0
    y: int = 0
    page_open: bool = False

    @property
    def at_page_start(self) -> bool:
        return self.x == 0 and self.y == 0

    def advance(self, geometry: PageGeometry) -> None:
        self.x += 1
        if self.x >= geometry.cards_per_row:
            self.x = 0
            self.y += 1
        if self.y >= geometry.cards_per_column:
            # sheet is full, the next placement opens a new one
            self.y = 0
            self.page_open = False


@dataclass(frozen=True)
class Placement:
    """Where one card pair goes on the current sheet."""

    column: int
    row: int
    front: Rect
    back: Rect


@dataclass(frozen=True)
class CleanupPlan:
    """White rectangles hiding the guide lines of unused cells on the last sheet."""

    columns_to_clean: int = 0
    rows_to_clean: int = 0
    front: Tuple[Rect, ...] = ()
    back: Tuple[Rect, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.front or self.back)


def plan_cleanup(geometry: PageGeometry, cursor: SheetCursor) -> CleanupPlan:
    """
    Compute the overpaint for the unused cells after the last placement.

    The partially filled row is cleaned from the cursor to its right end
    (mirrored to the left end on the back). Every completely unused row
    below it is cleaned across the full printed width. Both rectangles are
    positioned from the bottom of the page upward.
    """
    step_x = geometry.card_width + geometry.gap
    step_y = geometry.card_height + geometry.gap

    columns_to_clean = geometry.cards_per_row - cursor.x
    rows_to_clean = geometry.cards_per_column - cursor.y - 1
    if cursor.x == 0:
        # the current row is empty, clean it together with the rows below
        columns_to_clean = 0
        rows_to_clean += 1
        if cursor.y == 0:
            rows_to_clean = 0

    front: List[Rect] = []
    back: List[Rect] = []

    if columns_to_clean > 0:
        width = columns_to_clean * step_x
        x = geometry.page_width - (geometry.margin_left + width)
        y = geometry.page_height - (step_y * (rows_to_clean + 1) + geometry.margin_top)
        height = step_y
        if rows_to_clean >= geometry.cards_per_column - 1:
            # top row: also blank the border gap above it
            y -= geometry.gap
            height += geometry.gap
        row_rect = Rect(x, y, width, height)
        front.append(row_rect)
        back.append(row_rect.mirrored(geometry.page_width))

    if rows_to_clean > 0:
        rows_rect = Rect(
            geometry.margin_left,
            geometry.page_height - (step_y * rows_to_clean + geometry.margin_top),
            geometry.printed_width,
            rows_to_clean * step_y,
        )
        front.append(rows_rect)
        back.append(rows_rect)

    return CleanupPlan(
        columns_to_clean=columns_to_clean,
        rows_to_clean=rows_to_clean,
        front=tuple(front),
        back=tuple(back),
    )


class RenderSink(Protocol):
    """Receives the drawing commands produced by the layout engine."""

    def open_page(self, geometry: PageGeometry) -> None: ...

    def place(self, placement: Placement, pair: CardPair) -> None: ...

    def clean(self, plan: CleanupPlan) -> None: ...


@dataclass
class LayoutSummary:
    """Result of one layout pass."""

    cards: int = 0
    pages: int = 0
    cursor: SheetCursor = field(default_factory=SheetCursor)
    geometry: Optional[PageGeometry] = None
    cleanup: CleanupPlan = field(default_factory=CleanupPlan)


class LayoutEngine:
    """
    Single-pass grid packer.

    Pulls card pairs one at a time, opens a sheet whenever the cursor is
    back at the first cell, hands each placement to the sink and finally
    asks the sink to paint over the unused cells of the last sheet.
    """

    def __init__(
        self,
        config: SheetConfig,
        sink: RenderSink,
        on_card: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.config = config
        self.sink = sink
        self.on_card = on_card

    def placement(self, geometry: PageGeometry, cursor: SheetCursor) -> Placement:
        return Placement(
            column=cursor.x,
            row=cursor.y,
            front=geometry.front_cell(cursor.x, cursor.y),
            back=geometry.back_cell(cursor.x, cursor.y, self.config.bleed),
        )

    def run(self, pairs: Iterable[CardPair]) -> LayoutSummary:
        summary = LayoutSummary()
        cursor = summary.cursor
        geometry: Optional[PageGeometry] = None

        for pair in pairs:
            if cursor.at_page_start:
                geometry = PageGeometry.for_config(self.config)
                self.sink.open_page(geometry)
                cursor.page_open = True
                summary.pages += 1

            self.sink.place(self.placement(geometry, cursor), pair)
            cursor.advance(geometry)
            summary.cards += 1
            if self.on_card is not None:
                self.on_card(summary.cards)

        summary.geometry = geometry
        if geometry is not None and cursor.page_open:
            summary.cleanup = plan_cleanup(geometry, cursor)
            if summary.cleanup:
                self.sink.clean(summary.cleanup)

        return summary
