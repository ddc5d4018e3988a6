"""Run configuration: sheet parameters and card source descriptors."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, Flag
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm

from .errors import ConfigurationError


# Sheet size in millimetres (A4, portrait)
PAGE_SIZE_MM: Tuple[float, float] = (round(A4[0] / mm, 3), round(A4[1] / mm, 3))

# Default card dimensions in millimetres
DEFAULT_CARD_WIDTH = 41.0
DEFAULT_CARD_HEIGHT = 64.0
DEFAULT_GAP = 5.0

# Zoom used when rasterizing PDF pages (2 = 144 dpi)
DEFAULT_PDF_ZOOM = 2.0


class BleedMode(Flag):
    """Which side gets its image drawn over the surrounding gap."""

    NONE = 0
    FRONT = 1
    BACK = 2

    @classmethod
    def parse(cls, value: str) -> "BleedMode":
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ConfigurationError(
                f"Unknown bleed mode {value!r} (expected none, front or back)"
            ) from None


class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class ImageFormat(str, Enum):
    """How the files of a card source are interpreted."""

    PDF = "pdf"
    IMAGES = "images"
    MULTI_IMAGES = "multiimages"

    @classmethod
    def parse(cls, value: str) -> "ImageFormat":
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise ConfigurationError(
                f"Unknown image format {value!r} (expected one of: {choices})"
            ) from None


class SourceKind(str, Enum):
    """Where the files of a card source live."""

    FILE = "file"
    DIR = "dir"
    ZIP = "zip"


@dataclass(frozen=True)
class SheetConfig:
    """Immutable parameters for one run. All lengths are in millimetres."""

    card_width: float = DEFAULT_CARD_WIDTH
    card_height: float = DEFAULT_CARD_HEIGHT
    gap: float = DEFAULT_GAP
    bleed: BleedMode = BleedMode.NONE
    orientation: Orientation = Orientation.PORTRAIT
    print_front: bool = True
    print_back: bool = True
    pdf_zoom: float = DEFAULT_PDF_ZOOM

    @property
    def page_size(self) -> Tuple[float, float]:
        """Page width and height in millimetres for the configured orientation."""
        if self.orientation is Orientation.LANDSCAPE:
            return landscape(PAGE_SIZE_MM)
        return PAGE_SIZE_MM

    @property
    def sides_per_sheet(self) -> int:
        return int(self.print_front) + int(self.print_back)

    def validate(self) -> List[str]:
        """Return a list of problems with this configuration (empty if valid)."""
        errors: List[str] = []
        if self.card_width <= 0 or self.card_height <= 0:
            errors.append(
                f"Card size must be positive, got {self.card_width}x{self.card_height}"
            )
        if self.gap < 0:
            errors.append(f"Gap must not be negative, got {self.gap}")
        if self.pdf_zoom <= 0:
            errors.append(f"PDF zoom must be positive, got {self.pdf_zoom}")
        if not self.print_front and not self.print_back:
            errors.append("Both front and back are disabled, nothing would be printed")
        return errors

    def checked(self) -> "SheetConfig":
        errors = self.validate()
        if errors:
            raise ConfigurationError(errors)
        return self


@dataclass(frozen=True)
class SourceDescriptor:
    """A validated description of one card source given on the command line."""

    kind: SourceKind
    image_format: ImageFormat
    path: Path
    back_index: int = 0
    front_paths: Tuple[Path, ...] = field(default_factory=tuple)
    back_pattern: Optional[str] = None
    columns: int = 0
    rows: int = 0


# ---------------------------------------------------------------------------
# Descriptor parsing
# ---------------------------------------------------------------------------

ArgParser = Callable[[SourceKind, ImageFormat, Path, Sequence[str]], SourceDescriptor]


@dataclass(frozen=True)
class DescriptorRule:
    """How the arguments after the path are parsed for one kind/format."""

    parser: ArgParser
    min_args: int
    max_args: Optional[int]
    usage: str


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


def _parse_page_source(
    kind: SourceKind, image_format: ImageFormat, path: Path, args: Sequence[str]
) -> SourceDescriptor:
    back_index = _parse_int(args[0], "Back page index") if args else 0
    if back_index < 0:
        raise ConfigurationError(f"Back page index must not be negative, got {back_index}")
    return SourceDescriptor(kind=kind, image_format=image_format, path=path, back_index=back_index)


def _parse_image_list(
    kind: SourceKind, image_format: ImageFormat, path: Path, args: Sequence[str]
) -> SourceDescriptor:
    return SourceDescriptor(
        kind=kind,
        image_format=image_format,
        path=path,
        front_paths=tuple(Path(a) for a in args),
    )


def _parse_back_pattern(
    kind: SourceKind, image_format: ImageFormat, path: Path, args: Sequence[str]
) -> SourceDescriptor:
    pattern = args[0]
    try:
        re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid back image pattern {pattern!r}: {e}") from None
    return SourceDescriptor(kind=kind, image_format=image_format, path=path, back_pattern=pattern)


def _parse_sprite_grid(
    kind: SourceKind, image_format: ImageFormat, path: Path, args: Sequence[str]
) -> SourceDescriptor:
    columns = _parse_int(args[0], "Columns")
    rows = _parse_int(args[1], "Rows")
    back_index = _parse_int(args[2], "Back cell index") if len(args) > 2 else 0
    if columns < 1 or rows < 1:
        raise ConfigurationError(f"Sprite grid needs at least 1x1 cells, got {columns}x{rows}")
    if not 0 <= back_index < columns * rows:
        raise ConfigurationError(
            f"Back cell index {back_index} is outside the {columns}x{rows} grid"
        )
    return SourceDescriptor(
        kind=kind,
        image_format=image_format,
        path=path,
        columns=columns,
        rows=rows,
        back_index=back_index,
    )


_PDF_RULE = DescriptorRule(_parse_page_source, 0, 1, "pdf PATH [BACK_INDEX]")
_GRID_RULE = DescriptorRule(_parse_sprite_grid, 2, 3, "multiimages PATH COLUMNS ROWS [BACK_INDEX]")
_PATTERN_RULE = DescriptorRule(_parse_back_pattern, 1, 1, "images PATH BACK_PATTERN")

DESCRIPTOR_RULES: Dict[Tuple[SourceKind, ImageFormat], DescriptorRule] = {
    (SourceKind.FILE, ImageFormat.PDF): _PDF_RULE,
    (SourceKind.FILE, ImageFormat.IMAGES): DescriptorRule(
        _parse_image_list, 1, None, "images BACK FRONT [FRONT ...]"
    ),
    (SourceKind.FILE, ImageFormat.MULTI_IMAGES): _GRID_RULE,
    (SourceKind.DIR, ImageFormat.PDF): _PDF_RULE,
    (SourceKind.DIR, ImageFormat.IMAGES): _PATTERN_RULE,
    (SourceKind.DIR, ImageFormat.MULTI_IMAGES): _GRID_RULE,
    (SourceKind.ZIP, ImageFormat.PDF): _PDF_RULE,
    (SourceKind.ZIP, ImageFormat.IMAGES): _PATTERN_RULE,
    (SourceKind.ZIP, ImageFormat.MULTI_IMAGES): _GRID_RULE,
}


def parse_source_descriptor(kind: SourceKind, tokens: Sequence[str]) -> SourceDescriptor:
    """
    Parse the tokens following a --file/--dir/--zip flag.

    Args:
        kind: Which flag introduced the tokens
        tokens: FORMAT PATH followed by the format specific arguments

    Returns:
        The parsed descriptor

    Raises:
        ConfigurationError: If the tokens do not match the format's usage
    """
    if len(tokens) < 2:
        raise ConfigurationError(f"--{kind.value} expects FORMAT PATH, got {' '.join(tokens)!r}")

    image_format = ImageFormat.parse(tokens[0])
    path = Path(tokens[1])
    args = list(tokens[2:])

    rule = DESCRIPTOR_RULES[(kind, image_format)]
    if len(args) < rule.min_args or (rule.max_args is not None and len(args) > rule.max_args):
        raise ConfigurationError(
            f"--{kind.value} {image_format.value}: expected '{rule.usage}', "
            f"got {' '.join(tokens)!r}"
        )
    return rule.parser(kind, image_format, path, args)


def parse_source_descriptors(
    entries: Sequence[Tuple[SourceKind, Sequence[str]]],
) -> List[SourceDescriptor]:
    """
    Parse all source flags, collecting every error before failing.

    Raises:
        ConfigurationError: With one message per malformed entry
    """
    descriptors: List[SourceDescriptor] = []
    errors: List[str] = []
    for kind, tokens in entries:
        try:
            descriptors.append(parse_source_descriptor(kind, tokens))
        except ConfigurationError as e:
            errors.extend(e.messages)
    if errors:
        raise ConfigurationError(errors)
    return descriptors
