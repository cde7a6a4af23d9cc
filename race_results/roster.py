"""Member roster loading from JSON."""

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from .errors import DocumentUnreadable, NotFound
from .models import Member
from .normalize import normalize_for_comparison

logger = logging.getLogger(__name__)


class RosterEntry(BaseModel):
    """One roster row; accepts both ``FirstName`` and ``first_name`` keys."""
    first_name: Optional[str] = Field(default=None, validation_alias=AliasChoices('FirstName', 'first_name'))
    last_name: Optional[str] = Field(default=None, validation_alias=AliasChoices('LastName', 'last_name'))
    email: Optional[str] = Field(default=None, validation_alias=AliasChoices('Email', 'email'))
    is_member: Optional[bool] = Field(default=None, validation_alias=AliasChoices('IsMember', 'is_member'))
    is_challenger: Optional[bool] = Field(default=None, validation_alias=AliasChoices('IsChallenger', 'is_challenger'))

    def to_member(self) -> Member:
        return Member(
            first_name=(self.first_name or '').strip(),
            last_name=self.last_name.strip(),
            email=self.email,
            is_member=True if self.is_member is None else self.is_member,
            is_challenger=bool(self.is_challenger),
        )


def load_members(path: Union[str, Path]) -> List[Member]:
    """Load roster members, skipping entries without a last name."""
    path = Path(path)
    if not path.is_file():
        raise NotFound(f"Roster file not found: {path}")
    try:
        raw = json.loads(path.read_text(encoding='utf-8-sig'))
        entries = [RosterEntry.model_validate(item) for item in raw or []]
    except (ValueError, TypeError, ValidationError) as exc:
        raise DocumentUnreadable(f"Cannot read roster {path.name}: {exc}") from exc

    members = [e.to_member() for e in entries if e.last_name and e.last_name.strip()]
    skipped = len(entries) - len(members)
    if skipped:
        logger.warning("Skipped %d roster entr%s without a last name", skipped, 'y' if skipped == 1 else 'ies')
    logger.info("Loaded %d member(s) from %s", len(members), path.name)
    return members


def find_member(members: List[Member], first_name: str, last_name: str) -> Optional[Member]:
    """Roster lookup ignoring accents and case."""
    wanted = (normalize_for_comparison(first_name), normalize_for_comparison(last_name))
    for member in members:
        if member.identity == wanted:
            return member
    return None
