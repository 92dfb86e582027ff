"""Filter form for monthly user reports."""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Mapping
from datetime import date
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
TRUTHY = {"1", "true", "on", "yes"}
FALSY = {"", "0", "false", "off", "no"}


class SumType(str, enum.Enum):
    DURATION = "duration"
    RATE = "rate"
    INTERNAL_RATE = "internalRate"


def _parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUTHY:
        return True
    if text in FALSY:
        return False
    raise ValueError("decimal must be a boolean flag.")


class MonthlyUserListForm(BaseModel):
    """Bound filter values: month reference, team, summary column and display mode."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    month: date | None = Field(default=None, alias="date")
    team: UUID | None = None
    sum_type: SumType = Field(default=SumType.DURATION, alias="sumType")
    decimal: bool = False

    @field_validator("month", mode="before")
    @classmethod
    def parse_month(cls, value: object) -> object:
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            match = MONTH_RE.match(text)
            if match:
                return f"{match.group(1)}-{match.group(2)}-01"
            return text
        return value

    @field_validator("team", mode="before")
    @classmethod
    def empty_team(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("decimal", mode="before")
    @classmethod
    def parse_decimal(cls, value: object) -> bool:
        return _parse_bool(value)


FORM_FIELDS = ("date", "team", "sumType", "decimal")
SUM_TYPE_VALUES = {member.value for member in SumType}


def parse_report_form(params: Mapping[str, object], *, default_date: date) -> tuple[MonthlyUserListForm, bool]:
    """Bind raw query parameters and report whether the form is valid.

    An invalid form never raises: the month falls back to ``default_date`` and
    the team filter is dropped, while ``sumType`` and ``decimal`` keep any
    value that parses on its own.
    """

    raw = {key: params[key] for key in FORM_FIELDS if key in params and params[key] is not None}
    try:
        form = MonthlyUserListForm.model_validate(raw)
    except ValidationError as exc:
        logger.debug("Invalid report filter %s, falling back to defaults: %s", raw, exc.errors())
        return fallback_form(raw, default_date=default_date), False

    if form.month is None:
        form = form.model_copy(update={"month": default_date})
    return form, True


def fallback_form(raw: Mapping[str, object], *, default_date: date) -> MonthlyUserListForm:
    """Defaults for an invalid submission, keeping display options that still parse."""

    raw_sum_type = str(raw.get("sumType", SumType.DURATION.value))
    sum_type = SumType(raw_sum_type) if raw_sum_type in SUM_TYPE_VALUES else SumType.DURATION

    raw_decimal = str(raw.get("decimal", "")).strip().lower()
    return MonthlyUserListForm(
        month=default_date,
        team=None,
        sum_type=sum_type,
        decimal=raw_decimal in TRUTHY,
    )
