"""Card sources: lazy streams of front/back image pairs."""
from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import fitz  # PyMuPDF - robust PDF reader
from PIL import Image

from .config import DEFAULT_PDF_ZOOM, ImageFormat, SheetConfig, SourceDescriptor, SourceKind
from .errors import ConfigurationError, InvalidDimensionError, SourceReadError
from .zip_reader import (
    extracted_archive,
    list_files,
    list_image_files,
    list_pdf_files,
    resolve_back_image,
)


@dataclass
class CardPair:
    """One front image and the back image printed behind it."""

    front: Image.Image
    back: Image.Image


class CardSource(ABC):
    """
    A finite sequence of card pairs.

    Every call to ``iter()`` starts a fresh pass that opens and decodes
    the underlying files again, one card at a time.
    """

    @abstractmethod
    def __iter__(self) -> Iterator[CardPair]:
        raise NotImplementedError


def load_image(path: Path) -> Image.Image:
    """
    Decode an image file fully into memory.

    Raises:
        SourceReadError: If the file is missing or not a readable image
    """
    try:
        image = Image.open(path)
        image.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise SourceReadError(f"Cannot read image {path}: {e}") from e
    return _normalize_mode(image)


def _normalize_mode(image: Image.Image) -> Image.Image:
    # ReportLab handles RGB and RGBA (alpha becomes the mask) reliably
    if image.mode in ("RGB", "RGBA"):
        return image
    if image.mode in ("LA", "PA") or "transparency" in image.info:
        return image.convert("RGBA")
    return image.convert("RGB")


class PdfPageSource(CardSource):
    """
    Every page of a PDF is a card front except one fixed back page.

    Args:
        path: PDF file
        back_page_index: 0-based index of the page used as the common back
        zoom: Rasterization zoom factor (1 = 72 dpi)
    """

    def __init__(
        self,
        path: Path,
        back_page_index: int = 0,
        zoom: float = DEFAULT_PDF_ZOOM,
    ) -> None:
        if back_page_index < 0:
            raise ConfigurationError(
                f"Back page index must not be negative, got {back_page_index}"
            )
        self.path = Path(path)
        self.back_page_index = back_page_index
        self.zoom = zoom

    def __repr__(self) -> str:
        return f"PdfPageSource({str(self.path)!r}, back_page_index={self.back_page_index})"

    def __iter__(self) -> Iterator[CardPair]:
        try:
            doc = fitz.open(self.path)
        except (OSError, RuntimeError) as e:
            raise SourceReadError(f"Cannot open PDF {self.path}: {e}") from e

        try:
            back_number = self.back_page_index + 1
            if back_number > doc.page_count:
                raise SourceReadError(
                    f"Back page {back_number} does not exist in {self.path.name} "
                    f"({doc.page_count} pages)"
                )
            back = self._render_page(doc, self.back_page_index)

            for number in range(1, doc.page_count + 1):
                if number == back_number:
                    continue
                yield CardPair(front=self._render_page(doc, number - 1), back=back)
        finally:
            doc.close()

    def _render_page(self, doc: "fitz.Document", page_index: int) -> Image.Image:
        try:
            page = doc.load_page(page_index)
            pix = page.get_pixmap(matrix=fitz.Matrix(self.zoom, self.zoom), alpha=False)
            png = pix.tobytes("png")
        except (OSError, RuntimeError, ValueError) as e:
            raise SourceReadError(
                f"Cannot render page {page_index + 1} of {self.path}: {e}"
            ) from e
        image = Image.open(BytesIO(png))
        image.load()
        return _normalize_mode(image)


class ImageFileSource(CardSource):
    """
    One shared back image paired with each front image file in order.

    Args:
        back_path: Image printed behind every card
        front_paths: Card faces, in printing order
    """

    def __init__(self, back_path: Path, front_paths: Sequence[Path]) -> None:
        if not front_paths:
            raise ConfigurationError(
                "Not enough images: a back image and at least one front image are required"
            )
        self.back_path = Path(back_path)
        self.front_paths = [Path(p) for p in front_paths]

    @classmethod
    def from_paths(cls, paths: Sequence[Path]) -> "ImageFileSource":
        """Build from a flat list whose first entry is the back image."""
        if len(paths) < 2:
            raise ConfigurationError(
                f"Not enough images: at least 2 paths required, got {len(paths)}"
            )
        return cls(paths[0], paths[1:])

    def __repr__(self) -> str:
        return f"ImageFileSource({str(self.back_path)!r}, {len(self.front_paths)} fronts)"

    def __iter__(self) -> Iterator[CardPair]:
        back = load_image(self.back_path)
        for path in self.front_paths:
            yield CardPair(front=load_image(path), back=back)


def grid_cell_size(image_size: Tuple[int, int], columns: int, rows: int) -> Tuple[int, int]:
    """
    Size of one sprite cell. Remainder pixels on the right and bottom are dropped.

    Raises:
        InvalidDimensionError: If a cell would be zero pixels wide or high
    """
    width, height = image_size
    cell_width = width // columns
    cell_height = height // rows
    if cell_width == 0 or cell_height == 0:
        raise InvalidDimensionError(
            f"A {width}x{height} image cannot be split into {columns}x{rows} cells"
        )
    return cell_width, cell_height


def cell_position(index: int, columns: int) -> Tuple[int, int]:
    """Column and row of a row-major cell index."""
    return index % columns, index // columns


def cell_box(index: int, columns: int, cell_width: int, cell_height: int) -> Tuple[int, int, int, int]:
    """Pixel box (left, upper, right, lower) of a cell, as used by ``Image.crop``."""
    x, y = cell_position(index, columns)
    left = x * cell_width
    upper = y * cell_height
    return left, upper, left + cell_width, upper + cell_height


class SpriteGridSource(CardSource):
    """
    A composite image sliced into a grid of equally sized cards.

    One cell holds the common back; all other cells are fronts in
    row-major order.

    Args:
        path: Sprite sheet image
        columns: Cells per row
        rows: Cells per column
        back_cell_index: Row-major index of the back cell
    """

    def __init__(self, path: Path, columns: int, rows: int, back_cell_index: int = 0) -> None:
        if columns < 1 or rows < 1:
            raise ConfigurationError(
                f"Sprite grid needs at least 1x1 cells, got {columns}x{rows}"
            )
        if not 0 <= back_cell_index < columns * rows:
            raise ConfigurationError(
                f"Back cell index {back_cell_index} is outside the {columns}x{rows} grid"
            )
        self.path = Path(path)
        self.columns = columns
        self.rows = rows
        self.back_cell_index = back_cell_index

    def __repr__(self) -> str:
        return (
            f"SpriteGridSource({str(self.path)!r}, {self.columns}x{self.rows}, "
            f"back_cell_index={self.back_cell_index})"
        )

    def __iter__(self) -> Iterator[CardPair]:
        sheet = load_image(self.path)
        cell_width, cell_height = grid_cell_size(sheet.size, self.columns, self.rows)

        back = sheet.crop(cell_box(self.back_cell_index, self.columns, cell_width, cell_height))
        for index in range(self.columns * self.rows):
            if index == self.back_cell_index:
                continue
            front = sheet.crop(cell_box(index, self.columns, cell_width, cell_height))
            yield CardPair(front=front, back=back)


def sources_for_files(
    files: Sequence[Path],
    image_format: ImageFormat,
    back_index: int = 0,
    back_pattern: Optional[str] = None,
    columns: int = 0,
    rows: int = 0,
    zoom: float = DEFAULT_PDF_ZOOM,
) -> List[CardSource]:
    """
    Turn the files of a directory or archive into card sources.

    - pdf: one PdfPageSource per PDF file
    - images: the file matching ``back_pattern`` is the back, every other
      image is a front
    - multiimages: one SpriteGridSource per image file

    Raises:
        AmbiguousResourceError: If the back pattern matches zero or several images
    """
    if image_format is ImageFormat.PDF:
        return [PdfPageSource(p, back_index, zoom) for p in list_pdf_files(files)]

    if image_format is ImageFormat.IMAGES:
        if back_pattern is None:
            raise ConfigurationError("A back image pattern is required for image folders")
        images = list_image_files(files)
        back = resolve_back_image(images, back_pattern)
        fronts = [p for p in images if p != back]
        if not fronts:
            return []
        return [ImageFileSource(back, fronts)]

    return [SpriteGridSource(p, columns, rows, back_index) for p in list_image_files(files)]


class DirectorySource(CardSource):
    """All card files of one directory, interpreted per ``image_format``."""

    def __init__(
        self,
        path: Path,
        image_format: ImageFormat,
        back_index: int = 0,
        back_pattern: Optional[str] = None,
        columns: int = 0,
        rows: int = 0,
        zoom: float = DEFAULT_PDF_ZOOM,
    ) -> None:
        self.path = Path(path)
        self.image_format = image_format
        self.back_index = back_index
        self.back_pattern = back_pattern
        self.columns = columns
        self.rows = rows
        self.zoom = zoom

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r}, {self.image_format.value})"

    def _sources(self, files: Sequence[Path]) -> List[CardSource]:
        return sources_for_files(
            files,
            self.image_format,
            back_index=self.back_index,
            back_pattern=self.back_pattern,
            columns=self.columns,
            rows=self.rows,
            zoom=self.zoom,
        )

    def __iter__(self) -> Iterator[CardPair]:
        yield from chain_sources(self._sources(list_files(self.path)))


class ArchiveSource(DirectorySource):
    """
    All card files of a ZIP archive.

    The archive is extracted into a temporary directory when iteration
    starts; the directory is deleted once the pass ends, fails or is
    abandoned.
    """

    def __iter__(self) -> Iterator[CardPair]:
        with extracted_archive(self.path) as files:
            yield from chain_sources(self._sources(files))


def chain_sources(sources: Iterable[CardSource]) -> Iterator[CardPair]:
    """Concatenate sources lazily, in the given order."""
    return itertools.chain.from_iterable(sources)


def build_card_source(descriptor: SourceDescriptor, config: Optional[SheetConfig] = None) -> CardSource:
    """Create the card source described by a parsed command line descriptor."""
    zoom = config.pdf_zoom if config is not None else DEFAULT_PDF_ZOOM

    if descriptor.kind is SourceKind.FILE:
        if descriptor.image_format is ImageFormat.PDF:
            return PdfPageSource(descriptor.path, descriptor.back_index, zoom)
        if descriptor.image_format is ImageFormat.IMAGES:
            return ImageFileSource.from_paths([descriptor.path, *descriptor.front_paths])
        return SpriteGridSource(
            descriptor.path, descriptor.columns, descriptor.rows, descriptor.back_index
        )

    source_type = DirectorySource if descriptor.kind is SourceKind.DIR else ArchiveSource
    return source_type(
        descriptor.path,
        descriptor.image_format,
        back_index=descriptor.back_index,
        back_pattern=descriptor.back_pattern,
        columns=descriptor.columns,
        rows=descriptor.rows,
        zoom=zoom,
    )
