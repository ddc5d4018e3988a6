"""PDF rendering of card sheets onto a front and a back canvas."""
from __future__ import annotations

from io import BytesIO
from typing import Tuple

from PIL import Image
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .assembler import DocumentAssembler
from .config import SheetConfig
from .layout import CleanupPlan, PageGeometry, Placement, Rect
from .sources import CardPair


# Guide line width in millimetres
GUIDE_LINE_WIDTH = 0.5

# Page number label (millimetres from the top-left corner, font size in mm)
LABEL_POSITION = (3.0, 10.0)
LABEL_FONT = "Helvetica"
LABEL_FONT_SIZE = 4.0


class SheetRenderer:
    """
    Draws sheets with ReportLab.

    Fronts and backs go to two separate in-memory canvases that are kept
    page-synchronous; the assembler interleaves them afterwards. Positions
    arrive in top-left millimetres and are converted to ReportLab's
    bottom-left points here.
    """

    def __init__(self, config: SheetConfig, assembler: DocumentAssembler) -> None:
        self.config = config
        self.assembler = assembler
        self.page_width, self.page_height = config.page_size

        pagesize = (self.page_width * mm, self.page_height * mm)
        self._front_buffer = BytesIO()
        self._back_buffer = BytesIO()
        self.front = canvas.Canvas(self._front_buffer, pagesize=pagesize)
        self.back = canvas.Canvas(self._back_buffer, pagesize=pagesize)
        self._page_open = False

    def open_page(self, geometry: PageGeometry) -> None:
        """Start a new sheet: guide lines, page number and printed area background."""
        if self._page_open:
            self.front.showPage()
            self.back.showPage()
        self._page_open = True
        self.assembler.add_page_pair()

        for c in (self.front, self.back):
            draw_cut_guides(c, geometry)

        self.front.setFillColorRGB(0, 0, 0)
        self.front.setFont(LABEL_FONT, LABEL_FONT_SIZE * mm)
        label_x, label_y = LABEL_POSITION
        self.front.drawString(
            label_x * mm,
            (self.page_height - label_y) * mm,
            str(self.assembler.page_label),
        )

        self._fill_rect(self.front, geometry.printed_area, black=True)
        self._fill_rect(self.back, geometry.back_printed_area, black=True)

    def place(self, placement: Placement, pair: CardPair) -> None:
        """Stretch the front and back image into their cells."""
        self._draw_image(self.front, pair.front, placement.front)
        self._draw_image(self.back, pair.back, placement.back)

    def clean(self, plan: CleanupPlan) -> None:
        """Paint the unused cells of the last sheet white."""
        for rect in plan.front:
            self._fill_rect(self.front, rect, black=False)
        for rect in plan.back:
            self._fill_rect(self.back, rect, black=False)

    def finish(self) -> Tuple[bytes, bytes]:
        """
        Close both canvases.

        Returns:
            Tuple of (front PDF bytes, back PDF bytes)
        """
        if self._page_open:
            self.front.showPage()
            self.back.showPage()
            self._page_open = False
        self.front.save()
        self.back.save()
        return self._front_buffer.getvalue(), self._back_buffer.getvalue()

    def _to_points(self, rect: Rect) -> Tuple[float, float, float, float]:
        return (
            rect.x * mm,
            (self.page_height - rect.bottom) * mm,
            rect.width * mm,
            rect.height * mm,
        )

    def _fill_rect(self, c: canvas.Canvas, rect: Rect, black: bool) -> None:
        if black:
            c.setFillColorRGB(0, 0, 0)
        else:
            c.setFillColorRGB(1, 1, 1)
        c.rect(*self._to_points(rect), stroke=0, fill=1)

    def _draw_image(self, c: canvas.Canvas, image: Image.Image, rect: Rect) -> None:
        x, y, width, height = self._to_points(rect)
        c.drawImage(
            ImageReader(image),
            x,
            y,
            width=width,
            height=height,
            preserveAspectRatio=False,
            mask="auto",  # Respect transparent corners (e.g., PNG with alpha)
        )


def draw_cut_guides(c: canvas.Canvas, geometry: PageGeometry) -> None:
    """
    Draw the cut guide lines of a sheet.

    Every card column gets a vertical line at its left and right edge and
    every card row a horizontal line at its top and bottom edge. The lines
    run across the whole page so they stay visible in the margins once the
    printed area is filled.

    Args:
        c: ReportLab canvas
        geometry: Grid of the sheet
    """
    page_width = geometry.page_width * mm
    page_height = geometry.page_height * mm

    # Guide lines (black, thin)
    c.setLineWidth(GUIDE_LINE_WIDTH * mm)
    c.setStrokeColorRGB(0, 0, 0)

    for x in geometry.column_guides():
        c.line(x * mm, 0, x * mm, page_height)

    for y in geometry.row_guides():
        y_pt = (geometry.page_height - y) * mm
        c.line(0, y_pt, page_width, y_pt)
