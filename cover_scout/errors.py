"""Exception types raised inside the acquisition pipeline."""

from __future__ import annotations


class CoverScoutError(Exception):
    """Base class for all cover-scout errors."""


class AcquisitionError(CoverScoutError):
    """A single source attempt failed; recovered at the adapter boundary."""

    reason = "failed"


class NoMatch(AcquisitionError):
    """The source returned no usable title or image reference."""

    reason = "no match"


class RejectedPlaceholder(AcquisitionError):
    """The image looked like a stand-in graphic rather than a cover."""

    reason = "placeholder"


class TransportFailure(AcquisitionError):
    """Rendering or downloading failed at the network level."""

    reason = "transport failure"


class MalformedReference(AcquisitionError):
    """An embedded data URI could not be parsed."""

    reason = "malformed reference"


class CatalogError(CoverScoutError):
    """The input catalog could not be read; stops the whole run."""
