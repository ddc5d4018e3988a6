"""CLI entry point for card_sheets."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Sequence, Tuple

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn, TimeElapsedColumn
from rich.panel import Panel
from rich.table import Table
from rich import box
from rich.markup import escape

from card_sheets.assembler import generate_output_path, open_viewer
from card_sheets.builder import BuildResult, build_sheets_pdf
from card_sheets.config import (
    DEFAULT_CARD_HEIGHT,
    DEFAULT_CARD_WIDTH,
    DEFAULT_GAP,
    DEFAULT_PDF_ZOOM,
    BleedMode,
    Orientation,
    SheetConfig,
    SourceDescriptor,
    SourceKind,
    parse_source_descriptors,
)
from card_sheets.errors import CardSheetError, ConfigurationError
from card_sheets.sources import CardSource, build_card_source

console = Console()


class _SourceAction(argparse.Action):
    """Collect --file/--dir/--zip values in command line order, tagged by kind."""

    def __call__(self, parser, namespace, values, option_string=None):
        entries = list(getattr(namespace, self.dest, None) or [])
        entries.append((self.const, list(values)))
        setattr(namespace, self.dest, entries)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="card-sheets",
        description="Card Sheets – Lay out card fronts and backs for double-sided printing",
        epilog=(
            "Source formats: "
            "'pdf PATH [BACK_INDEX]', "
            "'images BACK FRONT [FRONT ...]' (--file) or 'images PATH BACK_PATTERN' (--dir/--zip), "
            "'multiimages PATH COLUMNS ROWS [BACK_INDEX]'."
        ),
    )

    for kind, help_text in (
        (SourceKind.FILE, "Read cards from a file: FORMAT PATH [ARGS ...]"),
        (SourceKind.DIR, "Read cards from every file of a directory: FORMAT PATH [ARGS ...]"),
        (SourceKind.ZIP, "Read cards from every file of a ZIP archive: FORMAT PATH [ARGS ...]"),
    ):
        parser.add_argument(
            f"--{kind.value}",
            dest="sources",
            action=_SourceAction,
            const=kind,
            nargs="+",
            metavar="ARG",
            help=help_text,
        )

    parser.add_argument(
        "--size",
        type=float,
        nargs=2,
        metavar=("WIDTH", "HEIGHT"),
        default=(DEFAULT_CARD_WIDTH, DEFAULT_CARD_HEIGHT),
        help=f"Card size in mm (default: {DEFAULT_CARD_WIDTH:g} {DEFAULT_CARD_HEIGHT:g}).",
    )
    parser.add_argument(
        "--gap",
        type=float,
        default=DEFAULT_GAP,
        help=f"Gap between cards in mm (default: {DEFAULT_GAP:g}).",
    )
    parser.add_argument(
        "--landscape",
        action="store_true",
        help="Use landscape sheets.",
    )
    parser.add_argument(
        "--bleed",
        choices=["none", "front", "back"],
        default="none",
        help="Draw the images of this side over the surrounding gap (default: none).",
    )
    parser.add_argument(
        "--no-front",
        action="store_true",
        help="Leave the front pages out of the document.",
    )
    parser.add_argument(
        "--no-back",
        action="store_true",
        help="Leave the back pages out of the document.",
    )
    parser.add_argument(
        "--zoom",
        type=float,
        default=DEFAULT_PDF_ZOOM,
        help=f"Rasterization zoom for PDF pages (default: {DEFAULT_PDF_ZOOM:g}).",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Path to output file (default: cards_<id>.pdf in the current directory).",
    )
    parser.add_argument(
        "--open",
        action="store_true",
        help="Open the finished PDF with the default viewer.",
    )

    return parser


def config_from_args(args: argparse.Namespace) -> SheetConfig:
    width, height = args.size
    return SheetConfig(
        card_width=width,
        card_height=height,
        gap=args.gap,
        bleed=BleedMode.parse(args.bleed),
        orientation=Orientation.LANDSCAPE if args.landscape else Orientation.PORTRAIT,
        print_front=not args.no_front,
        print_back=not args.no_back,
        pdf_zoom=args.zoom,
    )


def prepare_run(args: argparse.Namespace) -> Tuple[SheetConfig, List[CardSource]]:
    """
    Validate everything up front.

    Raises:
        ConfigurationError: With every problem found, before any file is read
    """
    config = config_from_args(args)
    errors: List[str] = config.validate()

    entries: Sequence[Tuple[SourceKind, Sequence[str]]] = args.sources or []
    descriptors: List[SourceDescriptor] = []
    if not entries:
        errors.append("No card source given (use --file, --dir or --zip).")
    else:
        try:
            descriptors = parse_source_descriptors(entries)
        except ConfigurationError as e:
            errors.extend(e.messages)

    sources: List[CardSource] = []
    for descriptor in descriptors:
        try:
            sources.append(build_card_source(descriptor, config))
        except ConfigurationError as e:
            errors.extend(e.messages)

    if errors:
        raise ConfigurationError(errors)
    return config, sources


def get_file_size_str(file_path: Path) -> str:
    """Human readable size such as "1.5 MB" or "256.0 KB"."""
    file_size = file_path.stat().st_size
    if file_size >= 1024 * 1024:
        return f"{file_size / (1024 * 1024):.1f} MB"
    return f"{file_size / 1024:.1f} KB"


def print_summary(result: BuildResult, config: SheetConfig) -> None:
    console.print()

    geometry = result.layout.geometry
    table = Table(box=box.ROUNDED, border_style="green")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("🃏 Cards placed", f"[bold]{result.cards}[/bold]")
    if geometry is not None:
        table.add_row(
            "📐 Grid per sheet",
            f"[bold]{geometry.cards_per_row} x {geometry.cards_per_column}[/bold]",
        )
    table.add_row("📑 Sheets", f"[bold]{result.sheets}[/bold]")
    table.add_row("📄 Pages", f"[bold]{result.pages}[/bold]")
    if not config.print_front:
        table.add_row("⚠ Fronts", "[yellow]left out[/yellow]")
    if not config.print_back:
        table.add_row("⚠ Backs", "[yellow]left out[/yellow]")
    table.add_row("💾 Output file", f"[bold]{escape(str(result.output_path))}[/bold]")
    table.add_row("📊 File size", f"[bold]{get_file_size_str(result.output_path)}[/bold]")

    console.print(table)


def run_build(config: SheetConfig, sources: List[CardSource], output_path: Path) -> BuildResult:
    """Run the build with progress display."""
    console.print()
    console.print(Panel.fit(
        "[bold magenta]📋 Card Sheets[/bold magenta]\n"
        "[dim]Creating double-sided print sheets[/dim]",
        border_style="magenta",
    ))
    console.print()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        result = build_sheets_pdf(
            sources,
            output_path=output_path,
            config=config,
            progress=progress,
        )

    print_summary(result, config)

    console.print()
    console.print("[green]✔[/green] [bold green]Done![/bold green] Your card sheets are ready to print.")
    console.print()
    return result


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config, sources = prepare_run(args)
    except ConfigurationError as e:
        for message in e.messages:
            console.print(f"[red]✘[/red] {escape(message)}")
        raise SystemExit(2)

    output_path = (
        Path(args.output).resolve()
        if args.output is not None
        else generate_output_path(Path.cwd())
    )

    try:
        result = run_build(config, sources, output_path)
    except CardSheetError as e:
        console.print(f"[red]✘[/red] [bold]{type(e).__name__}[/bold]: {escape(str(e))}")
        raise SystemExit(1)

    if args.open:
        open_viewer(result.output_path)


if __name__ == "__main__":
    main()
