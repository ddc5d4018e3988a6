"""ZIP archive extraction and card file discovery."""
from __future__ import annotations

import re
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Sequence

from .errors import AmbiguousResourceError, SourceReadError


# Supported image extensions
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".tif", ".tiff"}


def is_image_file(name: str | Path) -> bool:
    """Check if a filename has a supported image extension."""
    return Path(name).suffix.lower() in IMAGE_EXTENSIONS


def is_pdf_file(name: str | Path) -> bool:
    """Check if a filename has a PDF extension."""
    return Path(name).suffix.lower() == ".pdf"


def list_files(directory: Path) -> List[Path]:
    """
    List all regular files directly in a directory, sorted by name.

    Raises:
        SourceReadError: If the directory does not exist
    """
    if not directory.is_dir():
        raise SourceReadError(f"Directory not found: {directory}")
    return sorted(p for p in directory.iterdir() if p.is_file())


def list_pdf_files(files: Sequence[Path]) -> List[Path]:
    """Keep only the PDF files, preserving order."""
    return [p for p in files if is_pdf_file(p)]


def list_image_files(files: Sequence[Path]) -> List[Path]:
    """Keep only the image files, preserving order."""
    return [p for p in files if is_image_file(p)]


def list_entries_in_zip(zf: zipfile.ZipFile) -> List[str]:
    """
    List all file entries in an open ZIP archive.

    Filters out:
    - Directory entries (paths ending with /)
    - macOS metadata files (__MACOSX/)

    Returns:
        Sorted list of entry names within the ZIP
    """
    return sorted(
        name
        for name in zf.namelist()
        if not name.endswith("/")
        and not name.startswith("__MACOSX/")
    )


@contextmanager
def extracted_archive(zip_path: Path) -> Iterator[List[Path]]:
    """
    Extract a ZIP archive into a temporary directory.

    The directory and everything in it is removed when the context exits,
    whether normally or through an exception.

    Args:
        zip_path: Path to the ZIP file

    Yields:
        Sorted list of the extracted file paths

    Raises:
        SourceReadError: If the archive is missing or not a valid ZIP file
    """
    with tempfile.TemporaryDirectory(prefix="card_sheets_") as tmp:
        target = Path(tmp)
        try:
            with zipfile.ZipFile(zip_path, "r") as zf:
                extracted = [
                    Path(zf.extract(name, target)) for name in list_entries_in_zip(zf)
                ]
        except (OSError, zipfile.BadZipFile) as e:
            raise SourceReadError(f"Cannot read archive {zip_path}: {e}") from e
        yield sorted(extracted)


def resolve_back_image(files: Sequence[Path], pattern: str) -> Path:
    """
    Find the single file whose name matches the back image pattern.

    Args:
        files: Candidate files
        pattern: Regular expression searched in each file name

    Returns:
        Path of the matching file

    Raises:
        AmbiguousResourceError: If no file or more than one file matches
    """
    regex = re.compile(pattern)
    matches = [p for p in files if regex.search(p.name)]
    if not matches:
        raise AmbiguousResourceError(f"No back image matches pattern {pattern!r}")
    if len(matches) > 1:
        names = ", ".join(p.name for p in matches)
        raise AmbiguousResourceError(
            f"More than one back image matches pattern {pattern!r}: {names}"
        )
    return matches[0]
