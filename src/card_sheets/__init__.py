"""
Package initialization for card_sheets.

This package lays out card fronts and backs (from PDFs, image files or
sprite sheets, given as files, directories or ZIP archives) on A4 sheets
for double-sided printing.

Modules:
    - config: Sheet parameters and command line source descriptors
    - zip_reader: ZIP extraction and card file discovery
    - sources: Lazy card pair sources (PDF pages, image files, sprite grids)
    - layout: Grid packing, duplex mirroring and end-of-run cleanup
    - pdf_generator: ReportLab rendering of front and back sheets
    - assembler: Output document assembly with pypdf
    - builder: High-level API orchestrating the above modules
"""

from .assembler import DocumentAssembler, generate_output_path
from .builder import BuildResult, build_sheets_pdf
from .config import BleedMode, ImageFormat, Orientation, SheetConfig, SourceKind
from .errors import (
    AmbiguousResourceError,
    CardSheetError,
    ConfigurationError,
    InvalidDimensionError,
    SourceReadError,
)
from .layout import LayoutEngine, PageGeometry, SheetCursor, plan_cleanup
from .sources import (
    ArchiveSource,
    CardPair,
    CardSource,
    DirectorySource,
    ImageFileSource,
    PdfPageSource,
    SpriteGridSource,
    chain_sources,
)

__all__ = [
    # Configuration
    "BleedMode",
    "ImageFormat",
    "Orientation",
    "SheetConfig",
    "SourceKind",
    # Errors
    "AmbiguousResourceError",
    "CardSheetError",
    "ConfigurationError",
    "InvalidDimensionError",
    "SourceReadError",
    # Sources
    "ArchiveSource",
    "CardPair",
    "CardSource",
    "DirectorySource",
    "ImageFileSource",
    "PdfPageSource",
    "SpriteGridSource",
    "chain_sources",
    # Layout and output
    "LayoutEngine",
    "PageGeometry",
    "SheetCursor",
    "plan_cleanup",
    "DocumentAssembler",
    "generate_output_path",
    "BuildResult",
    "build_sheets_pdf",
]
