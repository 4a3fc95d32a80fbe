"""Image classification and persistence for candidate cover references."""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import tempfile
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Tuple
from urllib.parse import urlparse

import requests
from filetype import guess

from .config import DEFAULT_EXTENSION, PipelineConfig
from .errors import (
    AcquisitionError,
    MalformedReference,
    RejectedPlaceholder,
    TransportFailure,
)
from .models import ImageArtifact
from .utils import sanitize_filename, shorten

logger = logging.getLogger("cover_scout")

DATA_URI_PATTERN = re.compile(r"^data:([A-Za-z0-9.+/-]+);base64,(.+)$", re.DOTALL)
EXTENSION_PATTERN = re.compile(r"^\.[A-Za-z0-9]{1,5}$")
CHUNK_SIZE = 64 * 1024
SIGNATURE_BYTES = 262


def _default_file_mode() -> int:
    """Permissions a plain ``open()`` would give a new file under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def looks_like_non_image(data: bytes) -> bool:
    """True when the signature identifies a known type that is not an image."""
    kind = guess(data)
    return bool(kind) and not kind.mime.startswith("image/")


def parse_data_uri(image_ref: str) -> Tuple[str, bytes]:
    """Split a base64 ``data:`` URI into its MIME type and decoded bytes."""
    match = DATA_URI_PATTERN.match(image_ref.strip())
    if not match:
        raise MalformedReference("data URI is not of the form data:<mime>;base64,<payload>")
    mime_type = match.group(1).lower()
    if not mime_type.startswith("image/"):
        raise MalformedReference(f"data URI carries {mime_type}, not an image")
    payload = re.sub(r"\s+", "", match.group(2))
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedReference(f"invalid base64 payload: {exc}") from exc
    return mime_type, data


def extension_from_mime(mime_type: str) -> str:
    subtype = mime_type.split("/", 1)[-1].split("+", 1)[0].strip().lower()
    if subtype == "jpeg":
        subtype = "jpg"
    if not subtype:
        return DEFAULT_EXTENSION
    return f".{subtype}"


def extension_from_url(url: str) -> str:
    """Pick the file extension from the URL path, ignoring any query string."""
    suffix = PurePosixPath(urlparse(url).path).suffix
    if not suffix or not EXTENSION_PATTERN.match(suffix):
        return DEFAULT_EXTENSION
    return suffix.lower()


def _write_atomically(destination: Path, chunks: Iterable[bytes], min_bytes: int) -> int:
    """Stream chunks into a temp file beside ``destination`` and rename it in place.

    The temp file is removed on any failure, so a partial or rejected body
    never ends up at the destination path.
    """
    fd, tmp_path = tempfile.mkstemp(dir=destination.parent, prefix=".", suffix=".part")
    size = 0
    head = b""
    try:
        with os.fdopen(fd, "wb") as handle:
            for chunk in chunks:
                if not chunk:
                    continue
                if len(head) < SIGNATURE_BYTES:
                    head += chunk[: SIGNATURE_BYTES - len(head)]
                handle.write(chunk)
                size += len(chunk)
        if size < min_bytes:
            raise RejectedPlaceholder(
                f"{size} bytes is below the {min_bytes} byte threshold"
            )
        if looks_like_non_image(head):
            raise RejectedPlaceholder("downloaded body is not an image")
        os.chmod(tmp_path, _default_file_mode())
        os.replace(tmp_path, destination)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return size


class ImageWriter:
    """Decides whether a candidate image is usable and writes it to the store."""

    def __init__(
        self,
        config: PipelineConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()

    def namespace_dir(self, namespace: str) -> Path:
        directory = self.config.image_root / namespace
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def destination_for(self, namespace: str, display_title: str, extension: str) -> Path:
        """Resolve the artifact path, applying the configured collision policy."""
        stem = sanitize_filename(display_title)
        directory = self.namespace_dir(namespace)
        destination = directory / f"{stem}{extension}"
        if not destination.exists():
            return destination
        if self.config.collision == "overwrite":
            logger.warning("Overwriting existing image %s", destination)
            return destination
        counter = 2
        while True:
            candidate = directory / f"{stem}-{counter}{extension}"
            if not candidate.exists():
                logger.info("%s exists; writing %s instead", destination.name, candidate.name)
                return candidate
            counter += 1

    def acquire(
        self,
        image_ref: Optional[str],
        display_title: str,
        namespace: str,
        min_bytes: Optional[int] = None,
    ) -> bool:
        """Return True iff an artifact was written for ``image_ref``."""
        return self.write(image_ref, display_title, namespace, min_bytes) is not None

    def write(
        self,
        image_ref: Optional[str],
        display_title: str,
        namespace: str,
        min_bytes: Optional[int] = None,
    ) -> Optional[ImageArtifact]:
        threshold = self.config.min_image_bytes if min_bytes is None else min_bytes
        try:
            ref = self._check_reference(image_ref)
            if ref.startswith("data:"):
                return self._write_data_uri(ref, display_title, namespace, threshold)
            return self._download(ref, display_title, namespace, threshold)
        except AcquisitionError as exc:
            logger.info(
                "Skipping image for title: %s (%s: %s)", display_title, exc.reason, exc
            )
        except OSError as exc:
            logger.error("Failed to store image for title: %s: %s", display_title, exc)
        return None

    def _check_reference(self, image_ref: Optional[str]) -> str:
        if not image_ref or not image_ref.strip():
            raise RejectedPlaceholder("no image reference")
        for marker in self.config.placeholder_markers:
            if marker in image_ref:
                raise RejectedPlaceholder(f"reference matches placeholder marker {marker!r}")
        return image_ref

    def _write_data_uri(
        self,
        image_ref: str,
        display_title: str,
        namespace: str,
        threshold: int,
    ) -> ImageArtifact:
        mime_type, data = parse_data_uri(image_ref)
        if len(data) < threshold:
            raise RejectedPlaceholder(
                f"embedded image of {len(data)} bytes is below the {threshold} byte threshold"
            )
        destination = self.destination_for(
            namespace, display_title, extension_from_mime(mime_type)
        )
        size = _write_atomically(destination, [data], threshold)
        logger.info("Image saved (base64): %s, Size: %d bytes", destination, size)
        return ImageArtifact(
            source=namespace,
            title=display_title,
            path=destination,
            size=size,
            origin="data-uri",
        )

    def _download(
        self,
        url: str,
        display_title: str,
        namespace: str,
        threshold: int,
    ) -> ImageArtifact:
        destination = self.destination_for(namespace, display_title, extension_from_url(url))
        headers = {"User-Agent": self.config.download_user_agent}
        logger.info("Saving image for title: %s from URL: %s", display_title, shorten(url, 120))
        try:
            with self.session.get(
                url,
                headers=headers,
                stream=True,
                timeout=self.config.download_timeout,
            ) as response:
                response.raise_for_status()
                content_type = response.headers.get("Content-Type", "")
                if content_type.startswith("text/"):
                    raise RejectedPlaceholder(f"server answered with {content_type}")
                size = _write_atomically(
                    destination,
                    response.iter_content(chunk_size=CHUNK_SIZE),
                    threshold,
                )
        except requests.RequestException as exc:
            raise TransportFailure(str(exc)) from exc
        logger.info("Image saved: %s, Size: %d bytes", destination, size)
        return ImageArtifact(
            source=namespace,
            title=display_title,
            path=destination,
            size=size,
            origin="url",
        )
