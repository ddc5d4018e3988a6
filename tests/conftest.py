"""
pytest configuration and shared fixtures.

Card images are generated with Pillow and card PDFs with ReportLab, so the
tests need no files checked into the repository.
"""
from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Callable, List, Sequence, Tuple

import pytest
from PIL import Image
from reportlab.pdfgen import canvas

from card_sheets.layout import CleanupPlan, PageGeometry, Placement
from card_sheets.sources import CardPair


Color = Tuple[int, int, int]


def red(value: int) -> Color:
    return (value, 0, 0)


class RecordingSink:
    """Render sink that only records what the layout engine asks for."""

    def __init__(self) -> None:
        self.pages: List[PageGeometry] = []
        self.placements: List[Tuple[int, Placement, CardPair]] = []
        self.cleanups: List[CleanupPlan] = []

    def open_page(self, geometry: PageGeometry) -> None:
        self.pages.append(geometry)

    def place(self, placement: Placement, pair: CardPair) -> None:
        self.placements.append((len(self.pages), placement, pair))

    def clean(self, plan: CleanupPlan) -> None:
        self.cleanups.append(plan)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_pairs() -> Callable[[int], List[CardPair]]:
    """Build n tiny card pairs sharing one back image."""

    def _make(count: int) -> List[CardPair]:
        back = Image.new("RGB", (2, 2), (0, 0, 255))
        return [CardPair(front=Image.new("RGB", (2, 2), red(i % 256)), back=back) for i in range(count)]

    return _make


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    """Write a solid color PNG and return its path."""

    def _make(name: str, color: Color = (255, 255, 255), size: Tuple[int, int] = (40, 60)) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color).save(path)
        return path

    return _make


@pytest.fixture
def make_pdf(tmp_path: Path) -> Callable[..., Path]:
    """
    Write a PDF whose page i (0-based) is filled with red value ``i * 40``.
    Pages are 200 x 300 points.
    """

    def _make(name: str, page_count: int) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        c = canvas.Canvas(str(path), pagesize=(200, 300))
        for i in range(page_count):
            c.setFillColorRGB(i * 40 / 255, 0, 0)
            c.rect(0, 0, 200, 300, stroke=0, fill=1)
            c.showPage()
        c.save()
        return path

    return _make


@pytest.fixture
def make_sprite_sheet(tmp_path: Path) -> Callable[..., Path]:
    """
    Write a sprite sheet whose cell at row-major index i is filled with
    red value ``i * 40``.
    """

    def _make(
        name: str,
        columns: int,
        rows: int,
        cell_size: Tuple[int, int] = (100, 100),
        extra: Tuple[int, int] = (0, 0),
    ) -> Path:
        cell_w, cell_h = cell_size
        image = Image.new("RGB", (columns * cell_w + extra[0], rows * cell_h + extra[1]), (255, 255, 255))
        for index in range(columns * rows):
            x, y = index % columns, index // columns
            tile = Image.new("RGB", cell_size, red(index * 40))
            image.paste(tile, (x * cell_w, y * cell_h))
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        image.save(path)
        return path

    return _make


@pytest.fixture
def make_zip(tmp_path: Path) -> Callable[[str, Sequence[Path]], Path]:
    """Pack files into a ZIP archive (plus a macOS metadata entry to ignore)."""

    def _make(name: str, files: Sequence[Path]) -> Path:
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as zf:
            for f in files:
                zf.write(f, arcname=f.name)
            zf.writestr("__MACOSX/._junk.png", b"not an image")
            zf.writestr("nested/", b"")
        return path

    return _make


def _red_channel(image: Image.Image, xy: Tuple[int, int] | None = None) -> int:
    if xy is None:
        xy = (image.width // 2, image.height // 2)
    return image.convert("RGB").getpixel(xy)[0]


@pytest.fixture
def red_at() -> Callable[..., int]:
    """Red channel of the pixel at ``xy`` (default: centre)."""
    return _red_channel
