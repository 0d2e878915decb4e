"""
BriefDesk - Data Models

Brief records as stored in the archive. The stored form uses camelCase
keys so records written by earlier deployments remain readable.
"""

import re
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# "2026-02-22" or a domain-prefixed variant such as "battery-2026-02-22"
BRIEF_DATE_PATTERN = re.compile(r"^(?:(?P<prefix>[a-z][a-z0-9_]*)-)?(?P<day>\d{4}-\d{2}-\d{2})$")


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict:
        """JSON-safe dictionary in stored (camelCase) form."""
        return self.model_dump(mode="json", by_alias=True)


class IssueItem(CamelModel):
    """One analyzed issue inside a brief."""
    headline: str
    key_facts: List[str] = Field(default_factory=list)
    insight: str = ""
    framework: str = ""
    sources: List[str] = Field(default_factory=list)


class BriefReport(CamelModel):
    """A dated collection of analyzed issues."""
    id: str
    date: str
    day_of_week: str
    generated_at: datetime
    total_issues: int = Field(ge=0)
    issues: List[IssueItem] = Field(default_factory=list)
    markdown: str = ""

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        match = BRIEF_DATE_PATTERN.match(value)
        if not match:
            raise ValueError(f"Invalid brief date key: {value!r}")
        # Reject impossible calendar days like 2026-02-30
        datetime.strptime(match.group("day"), "%Y-%m-%d")
        return value


def split_date_key(date: str) -> tuple:
    """
    Split a brief date key into (prefix, calendar day).

    Returns (None, None) when the key is malformed.
    """
    match = BRIEF_DATE_PATTERN.match(date or "")
    if not match:
        return None, None
    return match.group("prefix"), match.group("day")
