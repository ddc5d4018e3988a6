"""Assembly of the rendered front and back pages into the output document."""
from __future__ import annotations

import os
import subprocess
import sys
import uuid
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional

from pypdf import PdfReader, PdfWriter

from .config import SheetConfig
from .errors import CardSheetError


DEFAULT_METADATA: Dict[str, str] = {
    "/Title": "Card sheets",
    "/Author": "card-sheets",
    "/Subject": "Cards laid out for double-sided printing",
    "/Keywords": "cards, print and play, duplex",
}


class DocumentAssembler:
    """
    Owns the output document.

    Page pairs are registered while rendering so the page count (and the
    page number printed on each sheet) only counts pages that end up in
    the document: a dropped front or back side is never counted.
    """

    def __init__(self, config: SheetConfig, metadata: Optional[Dict[str, str]] = None) -> None:
        self.config = config
        self.metadata = dict(DEFAULT_METADATA if metadata is None else metadata)
        self.page_pairs = 0

    def add_page_pair(self) -> int:
        """Register a newly opened sheet. Returns the retained page count."""
        self.page_pairs += 1
        return self.page_count

    @property
    def page_count(self) -> int:
        return self.page_pairs * self.config.sides_per_sheet

    @property
    def page_label(self) -> int:
        """Number printed on the sheet that was opened last."""
        return self.page_count // 2

    def assemble(self, front_pdf: bytes, back_pdf: bytes) -> PdfWriter:
        """
        Interleave front and back pages, front first, dropping disabled sides.

        Raises:
            CardSheetError: If the rendered page counts do not match the
                registered page pairs
        """
        fronts = PdfReader(BytesIO(front_pdf))
        backs = PdfReader(BytesIO(back_pdf))
        if len(fronts.pages) != self.page_pairs or len(backs.pages) != self.page_pairs:
            raise CardSheetError(
                f"Rendered {len(fronts.pages)} front and {len(backs.pages)} back pages, "
                f"expected {self.page_pairs} of each"
            )

        writer = PdfWriter()
        for front_page, back_page in zip(fronts.pages, backs.pages):
            if self.config.print_front:
                writer.add_page(front_page)
            if self.config.print_back:
                writer.add_page(back_page)
        writer.add_metadata(self.metadata)
        return writer

    def write(self, front_pdf: bytes, back_pdf: bytes, output_path: Path) -> Path:
        """Assemble the document and save it to ``output_path``."""
        writer = self.assemble(front_pdf, back_pdf)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as fh:
            writer.write(fh)
        return output_path


def generate_output_path(directory: Path) -> Path:
    """A fresh, unique output file name in ``directory``."""
    return directory / f"cards_{uuid.uuid4().hex.upper()}.pdf"


def open_viewer(path: Path) -> None:
    """Open a file with the platform's default application."""
    if sys.platform.startswith("win"):
        os.startfile(str(path))  # type: ignore[attr-defined]
    elif sys.platform == "darwin":
        subprocess.Popen(["open", str(path)])
    else:
        subprocess.Popen(["xdg-open", str(path)])
