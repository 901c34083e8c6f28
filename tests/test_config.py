import pytest

from dockday.config import Settings, load_catalog
from dockday.core import CatalogError


def test_packaged_catalog_loads():
    catalog = load_catalog()

    assert [a.agency_company_id for a in catalog.whitelist] == ["agency-demo", "agency-demo"]
    assert catalog.agency_companies[0].accounts[0].credit_limit == 20000
    assert catalog.tariff.meal_per_person == {"standard": 25, "premium": 45}


def test_catalog_root_must_be_mapping(tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(CatalogError):
        load_catalog(path)


def test_invalid_catalog_entries_are_reported(tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text("agency_companies:\n  - name: Missing id\n", encoding="utf-8")

    with pytest.raises(CatalogError, match="Invalid catalog"):
        load_catalog(path)


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("DOCKDAY_NAMESPACE", "staging")
    monkeypatch.setenv("DOCKDAY_AGENT_HISTORY_LIMIT", "10")

    settings = Settings()

    assert settings.NAMESPACE == "staging"
    assert settings.AGENT_HISTORY_LIMIT == 10
    assert settings.GLOBAL_HISTORY_LIMIT == 500
