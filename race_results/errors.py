"""Exceptions raised by the race results pipeline.

Only DocumentUnreadable, InvalidArgument and NotFound escape the pipeline;
FormatUnrecognized and MalformedRecord are caught where they are raised and
turned into a degraded (but non-empty) result.
"""


class RaceResultsError(Exception):
    """Base class for every pipeline error."""


class DocumentUnreadable(RaceResultsError):
    """The source file exists but cannot be opened or decoded."""


class FormatUnrecognized(RaceResultsError):
    """No layout signature matched the document."""


class MalformedRecord(RaceResultsError):
    """A canonical record has no usable structure."""


class InvalidArgument(RaceResultsError, ValueError):
    """A caller passed a null path, a zero time or an invalid entity."""


class NotFound(RaceResultsError, FileNotFoundError):
    """The source file does not exist."""
