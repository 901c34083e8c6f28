from __future__ import annotations

import re
from typing import Optional, Sequence

from dockday.models import ContactMethod, WhitelistedAgent


def normalize_email(value: str) -> str:
    return value.strip().lower()


def normalize_phone(value: str) -> str:
    # Only the mainland prefix is stripped; this is not E.164 normalisation.
    digits = re.sub(r"[^\d+]", "", value.strip())
    digits = re.sub(r"^\+", "", digits)
    return re.sub(r"^86", "", digits)


def normalize_contact(method: ContactMethod, value: str) -> str:
    return normalize_email(value) if method == "email" else normalize_phone(value)


def agent_key(method: ContactMethod, value: str) -> str:
    return f"{method}:{normalize_contact(method, value)}"


class AgentWhitelist:
    """Resolves an agent contact to the agency company it is bound to."""

    def __init__(self, entries: Sequence[WhitelistedAgent]):
        self.entries = list(entries)

    def resolve(self, method: str, raw_value: Optional[str]) -> Optional[str]:
        if method not in ("phone", "email") or not raw_value:
            return None
        wanted = normalize_contact(method, raw_value)
        for entry in self.entries:
            listed = entry.email if method == "email" else entry.phone
            if listed and normalize_contact(method, listed) == wanted:
                return entry.agency_company_id
        return None

    def is_whitelisted(self, method: str, raw_value: Optional[str]) -> bool:
        return self.resolve(method, raw_value) is not None
