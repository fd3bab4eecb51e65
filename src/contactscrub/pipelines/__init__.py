"""Import pipelines that materialise contact records from export files."""

from __future__ import annotations

from contactscrub.pipelines.contact_files import (
    contact_from_export,
    contact_from_row,
    load_contacts,
    load_contacts_csv,
    load_contacts_json,
)

__all__ = [
    "contact_from_export",
    "contact_from_row",
    "load_contacts",
    "load_contacts_csv",
    "load_contacts_json",
]
