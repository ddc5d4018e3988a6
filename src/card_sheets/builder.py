"""High-level API: card sources in, print-ready PDF out."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence

from rich.progress import Progress

from .assembler import DocumentAssembler
from .config import SheetConfig
from .errors import CardSheetError
from .layout import LayoutEngine, LayoutSummary
from .pdf_generator import SheetRenderer
from .sources import CardSource, chain_sources


@dataclass
class BuildResult:
    """What a finished run produced."""

    output_path: Path
    cards: int
    sheets: int
    pages: int
    layout: LayoutSummary


def build_sheets_pdf(
    sources: Sequence[CardSource],
    output_path: Path,
    config: Optional[SheetConfig] = None,
    progress: Optional[Progress] = None,
    metadata: Optional[Dict[str, str]] = None,
) -> BuildResult:
    """
    Lay out all cards of ``sources`` and write the duplex PDF.

    - Sources are read in the given order, one card at a time.
    - The output file is only written once every card has been placed;
      any error leaves no file behind.

    Args:
        sources: Card sources, concatenated in order
        output_path: Path to the output PDF file
        config: Sheet parameters (defaults when omitted)
        progress: Rich Progress instance for progress display
        metadata: PDF document info overriding the defaults

    Raises:
        ConfigurationError: If ``config`` is invalid
        CardSheetError: If the sources contain no cards, or any source fails
    """
    config = (config or SheetConfig()).checked()

    assembler = DocumentAssembler(config, metadata)
    renderer = SheetRenderer(config, assembler)

    task_id = None
    if progress is not None:
        task_id = progress.add_task("[green]Placing cards...", total=None)

    def on_card(count: int) -> None:
        if progress is not None and task_id is not None:
            progress.update(
                task_id,
                advance=1,
                description=f"[green]Placing card [bold]{count}[/bold]...",
            )

    layout = LayoutEngine(config, renderer, on_card=on_card).run(chain_sources(sources))
    if layout.cards == 0:
        raise CardSheetError("No card images found in the given sources.")

    front_pdf, back_pdf = renderer.finish()
    assembler.write(front_pdf, back_pdf, output_path)

    return BuildResult(
        output_path=output_path,
        cards=layout.cards,
        sheets=assembler.page_pairs,
        pages=assembler.page_count,
        layout=layout,
    )
