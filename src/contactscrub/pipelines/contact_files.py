"""Contact file import pipeline.

Loads address-book exports into :class:`~contactscrub.models.ContactRecord`
values.  Two formats are accepted:

- JSON: a list of exported contacts in the address-book exporter's
  camelCase shape (``givenName``, ``emails: [{label, value}]``, ...), each
  carrying an ``identifier`` (or ``id``).
- CSV: one row per contact with snake_case columns; multi-valued columns
  (``emails``, ``phones``, ``urls``) hold ``;``-separated values.

Rows without an identifier are still returned so that the engine's
validation can report them.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd
import structlog

from contactscrub.models import (
    Birthday,
    ContactRecord,
    InstantMessage,
    LabeledValue,
    PostalAddress,
    SocialProfile,
)

logger = structlog.get_logger(__name__)

REQUIRED_COLUMNS = ["identifier"]

_CSV_TEXT_COLUMNS = [
    "name_prefix",
    "given_name",
    "middle_name",
    "family_name",
    "name_suffix",
    "nickname",
    "organization",
    "department",
    "job_title",
    "note",
]

_MULTI_VALUE_SEPARATOR = ";"


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _labeled(entries: Any) -> tuple[LabeledValue, ...]:
    return tuple(
        LabeledValue(value=_text(e.get("value")), label=e.get("label"))
        for e in entries or []
        if _text(e.get("value"))
    )


def _birthday(data: Any) -> Birthday | None:
    if not data:
        return None
    birthday = Birthday(day=data.get("day"), month=data.get("month"), year=data.get("year"))
    return None if birthday.is_empty() else birthday


def contact_from_export(data: dict[str, Any]) -> ContactRecord:
    """Convert one exported contact dict into a ContactRecord."""
    return ContactRecord(
        identifier=_text(data.get("identifier") or data.get("id")),
        name_prefix=_text(data.get("namePrefix")),
        given_name=_text(data.get("givenName")),
        middle_name=_text(data.get("middleName")),
        family_name=_text(data.get("familyName")),
        name_suffix=_text(data.get("nameSuffix")),
        nickname=_text(data.get("nickname")),
        emails=_labeled(data.get("emails")),
        phones=_labeled(data.get("phones")),
        postal_addresses=tuple(
            PostalAddress(
                label=a.get("label"),
                street=_text(a.get("street")),
                city=_text(a.get("city")),
                state=_text(a.get("state")),
                postal_code=_text(a.get("postalCode")),
                country=_text(a.get("country")),
            )
            for a in data.get("postalAddresses") or []
        ),
        urls=_labeled(data.get("urls")),
        social_profiles=tuple(
            SocialProfile(
                service=_text(p.get("service")),
                username=_text(p.get("username")),
                url=_text(p.get("url")),
                label=p.get("label"),
            )
            for p in data.get("socialProfiles") or []
        ),
        instant_messages=tuple(
            InstantMessage(
                service=_text(m.get("service")),
                username=_text(m.get("username")),
                label=m.get("label"),
            )
            for m in data.get("instantMessageAddresses") or []
        ),
        organization=_text(data.get("organizationName")),
        department=_text(data.get("departmentName")),
        job_title=_text(data.get("jobTitle")),
        birthday=_birthday(data.get("birthday")),
        note=_text(data.get("note")),
        has_image=bool(data.get("hasImage", False)),
    )


def load_contacts_json(path: Path) -> list[ContactRecord]:
    """Load a JSON export (a list of contacts, or ``{"contacts": [...]}``)."""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)
    if isinstance(payload, dict):
        payload = payload.get("contacts", [])
    records = [contact_from_export(item) for item in payload]
    logger.info("contacts_loaded", path=str(path), format="json", count=len(records))
    return records


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def validate_csv(df: pd.DataFrame) -> list[str]:
    """Check that the CSV has all required columns. Returns list of missing columns."""
    return [col for col in REQUIRED_COLUMNS if col not in df.columns]


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(_MULTI_VALUE_SEPARATOR) if part.strip()]


def _int_or_none(value: str) -> int | None:
    value = value.strip()
    return int(value) if value.isdigit() else None


def contact_from_row(row: dict[str, str]) -> ContactRecord:
    """Convert one CSV row (all values as strings) into a ContactRecord."""
    text = {col: _text(row.get(col, "")) for col in _CSV_TEXT_COLUMNS}
    birthday = Birthday(
        day=_int_or_none(row.get("birthday_day", "")),
        month=_int_or_none(row.get("birthday_month", "")),
        year=_int_or_none(row.get("birthday_year", "")),
    )
    return ContactRecord(
        identifier=_text(row.get("identifier", "")),
        emails=tuple(LabeledValue(v) for v in _split(row.get("emails", ""))),
        phones=tuple(LabeledValue(v) for v in _split(row.get("phones", ""))),
        urls=tuple(LabeledValue(v) for v in _split(row.get("urls", ""))),
        birthday=None if birthday.is_empty() else birthday,
        has_image=row.get("has_image", "").strip().lower() in ("true", "yes", "1"),
        **text,
    )


def load_contacts_csv(path: Path) -> list[ContactRecord]:
    """Load a CSV export.

    Raises
    ------
    ValueError
        If a required column is missing.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    missing = validate_csv(df)
    if missing:
        logger.error("contacts_csv_missing_columns", missing=missing, path=str(path))
        raise ValueError(f"{path}: missing required column(s): {', '.join(missing)}")

    records = [contact_from_row(row) for row in df.to_dict(orient="records")]
    logger.info("contacts_loaded", path=str(path), format="csv", count=len(records))
    return records


def load_contacts(path: Path) -> list[ContactRecord]:
    """Dispatch on file extension (``.json`` or ``.csv``)."""
    suffix = path.suffix.lower()
    if suffix == ".json":
        return load_contacts_json(path)
    if suffix == ".csv":
        return load_contacts_csv(path)
    raise ValueError(f"Unsupported contact file type {suffix!r} (expected .json or .csv)")
