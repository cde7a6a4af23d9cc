"""Format detection: pick the layout parser for a document."""

import logging
from typing import Optional, Sequence

from .errors import FormatUnrecognized
from .extract import Page, document_text
from .formats import (
    ChallengeLaMeuseParser,
    CrossCupParser,
    FormatParser,
    FrenchColumnParser,
    GenericParser,
    GlobalPacingParser,
    GoalTimingParser,
    GrandChallengeParser,
    OtopParser,
)
from .models import RaceMetadata

logger = logging.getLogger(__name__)

# Most specific layouts first
PARSERS = (
    ChallengeLaMeuseParser,
    GlobalPacingParser,
    GoalTimingParser,
    OtopParser,
    FrenchColumnParser,
    CrossCupParser,
    GrandChallengeParser,
)


def select_parser(pages: Sequence[Page], metadata: Optional[RaceMetadata] = None,
                  filename: Optional[str] = None) -> FormatParser:
    """Return the first layout whose signature matches, or raise FormatUnrecognized."""
    text = document_text(pages)
    for parser_cls in PARSERS:
        parser = parser_cls()
        if parser.detect_signature(pages, metadata, filename, text=text):
            return parser
    raise FormatUnrecognized(f"No known layout matches {filename or 'document'}")


def detect(pages: Sequence[Page], metadata: Optional[RaceMetadata] = None,
           filename: Optional[str] = None) -> FormatParser:
    """Never fails: unknown layouts get the generic parser."""
    try:
        parser = select_parser(pages, metadata, filename)
    except FormatUnrecognized as exc:
        logger.warning("%s; using the generic parser", exc)
        return GenericParser()
    logger.info("Detected %s layout for %s", parser.name, filename or 'document')
    return parser
