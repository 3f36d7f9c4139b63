# TutorTime - Query/path parameter helpers

import re
from datetime import date
from typing import Optional

from tutortime.services.errors import ValidationError


_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date_param(value: Optional[str], name: str, required: bool = True) -> Optional[date]:
    """
    Strict YYYY-MM-DD parsing for request parameters.

    Rejects other ISO shapes and impossible dates (2024-02-30).
    """
    if value is None or value == "":
        if required:
            raise ValidationError(f"{name} must be YYYY-MM-DD")
        return None
    trimmed = value.strip()
    if not _DATE_ONLY.match(trimmed):
        raise ValidationError(f"{name} must be YYYY-MM-DD")
    try:
        return date.fromisoformat(trimmed)
    except ValueError:
        raise ValidationError(f"{name} must be YYYY-MM-DD")
