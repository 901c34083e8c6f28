from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from dockday.core import CatalogError
from dockday.models import AgencyCompany, Tariff, WhitelistedAgent

DEFAULT_CATALOG_PATH = Path(__file__).with_name("catalog.yaml")


class Settings(BaseSettings):
    # Storage
    NAMESPACE: str = "dockday"
    DATABASE_PATH: str = ":memory:"

    # Static directory data
    CATALOG_PATH: Path = DEFAULT_CATALOG_PATH

    # Order history caps
    AGENT_HISTORY_LIMIT: int = 50
    GLOBAL_HISTORY_LIMIT: int = 500

    # Admin surface
    APPROVER_NAME: str = "System administrator"
    EXPORT_DIR: Path = Path("exports")
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_prefix="DOCKDAY_",
        env_file=".env",
        extra="ignore",
    )


@dataclass
class Catalog:
    """Static whitelist, agency directory and estimator tariff."""

    whitelist: list[WhitelistedAgent] = field(default_factory=list)
    agency_companies: list[AgencyCompany] = field(default_factory=list)
    tariff: Tariff = field(default_factory=Tariff)


def load_catalog(path: Path | str = DEFAULT_CATALOG_PATH) -> Catalog:
    path = Path(path)
    with path.open("r", encoding="utf-8") as catalog_file:
        loaded = yaml.safe_load(catalog_file)

    if not isinstance(loaded, dict):
        msg = f"Catalog file must contain a dictionary at root: {path}"
        raise CatalogError(msg)

    return parse_catalog(loaded, source=str(path))


def parse_catalog(raw: dict[str, Any], source: str = "<memory>") -> Catalog:
    try:
        return Catalog(
            whitelist=[WhitelistedAgent.model_validate(item) for item in raw.get("whitelist") or []],
            agency_companies=[
                AgencyCompany.model_validate(item) for item in raw.get("agency_companies") or []
            ],
            tariff=Tariff.model_validate(raw.get("tariff") or {}),
        )
    except ValidationError as exc:
        raise CatalogError(f"Invalid catalog {source}: {exc}") from exc
