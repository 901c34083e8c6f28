import pytest

from dockday.agents import AgentWhitelist, agent_key, normalize_email, normalize_phone
from dockday.config import load_catalog


@pytest.fixture
def whitelist():
    return AgentWhitelist(load_catalog().whitelist)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("13800138000", "13800138000"),
        ("+86 138-0013-8000", "13800138000"),
        ("86 (138) 0013 8000", "13800138000"),
        ("  +1 415 555 0100 ", "14155550100"),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_email():
    assert normalize_email("  Agent@Example.COM ") == "agent@example.com"


def test_resolve_by_phone_and_email(whitelist):
    assert whitelist.resolve("phone", "+86 13800138000") == "agency-demo"
    assert whitelist.resolve("email", "AGENT@example.com ") == "agency-demo"
    assert whitelist.is_whitelisted("phone", "138 0013 8000")


def test_methods_do_not_cross_match(whitelist):
    assert whitelist.resolve("email", "13800138000") is None
    assert whitelist.resolve("phone", "agent@example.com") is None


def test_unknown_contacts_resolve_to_none(whitelist):
    assert whitelist.resolve("phone", "13900000000") is None
    assert whitelist.resolve("phone", "") is None
    assert whitelist.resolve("fax", "13800138000") is None
    assert not whitelist.is_whitelisted("email", None)


def test_agent_key_uses_normalized_value():
    assert agent_key("phone", "+86 138 0013 8000") == "phone:13800138000"
    assert agent_key("email", " Agent@Example.com") == "email:agent@example.com"
