"""Housekeeping for the image store: WebP conversion, counts and listings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Set

from PIL import Image

logger = logging.getLogger("cover_scout")

CONVERTIBLE_SUFFIXES = {".jpg", ".jpeg", ".png"}
COUNTED_SUFFIXES = ("jpg", "jpeg", "gif", "png")


@dataclass
class ImageStats:
    """Per-extension file counts for a directory tree."""

    counts: Dict[str, int] = field(
        default_factory=lambda: {suffix: 0 for suffix in COUNTED_SUFFIXES}
    )
    unique_filenames: Set[str] = field(default_factory=set)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def upscale_images(
    input_dir: Path,
    output_dir: Path,
    scale: float = 2.0,
    quality: int = 80,
) -> List[Path]:
    """Resize JPEG/PNG covers by ``scale`` and save them as WebP."""
    output_dir.mkdir(parents=True, exist_ok=True)
    sources = sorted(
        path
        for path in input_dir.iterdir()
        if path.is_file() and path.suffix.lower() in CONVERTIBLE_SUFFIXES
    )
    logger.info("Found %d images to process", len(sources))

    written: List[Path] = []
    for path in sources:
        destination = output_dir / f"{path.stem}.webp"
        try:
            with Image.open(path) as image:
                if image.mode not in ("RGB", "RGBA"):
                    image = image.convert("RGBA" if "transparency" in image.info else "RGB")
                new_size = (
                    max(1, round(image.width * scale)),
                    max(1, round(image.height * scale)),
                )
                resized = image.resize(new_size, Image.Resampling.LANCZOS)
                resized.save(destination, "WEBP", quality=quality)
        except (OSError, ValueError) as exc:
            logger.error("Error processing %s: %s", path.name, exc)
            continue
        logger.info("Processed: %s -> %s", path.name, destination.name)
        written.append(destination)
    return written


def iter_files(directory: Path) -> List[Path]:
    """Every regular file below ``directory``; unreadable entries are logged."""
    files: List[Path] = []
    try:
        entries = sorted(directory.iterdir())
    except OSError as exc:
        logger.error("Error reading directory %s: %s", directory, exc)
        return files
    for entry in entries:
        try:
            if entry.is_dir():
                files.extend(iter_files(entry))
            elif entry.is_file():
                files.append(entry)
        except OSError as exc:
            logger.error("Error processing file %s: %s", entry, exc)
    return files


def count_images(directory: Path) -> ImageStats:
    stats = ImageStats()
    for path in iter_files(directory):
        stats.unique_filenames.add(path.name)
        suffix = path.suffix.lower().lstrip(".")
        if suffix in stats.counts:
            stats.counts[suffix] += 1
    return stats


def list_image_filenames(directory: Path) -> List[str]:
    return [path.name for path in iter_files(directory)]


def write_filename_index(directory: Path, output: Path) -> int:
    """Write one artifact filename per line; returns how many were written."""
    names = list_image_filenames(directory)
    output.write_text("\n".join(names), encoding="utf-8")
    logger.info("Wrote %d filenames to %s", len(names), output)
    return len(names)
