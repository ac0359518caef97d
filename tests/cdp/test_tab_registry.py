"""Tests for birdie/cdp/registry.py."""

from birdie.cdp.registry import TabRegistry

from conftest import make_tab


def test_replace_all_discards_previous_tabs():
    registry = TabRegistry()
    registry.replace_all([make_tab("1", "https://discord.com/"), make_tab("2", "https://example.com/")])
    registry.replace_all([make_tab("3", "https://web.telegram.org/")])

    assert [t.id for t in registry.all()] == ["3"]
    assert registry.get("1") is None
    assert len(registry) == 1


def test_monitored_subset_only_has_selector_tabs():
    registry = TabRegistry()
    registry.replace_all(
        [
            make_tab("1", "https://discord.com/channels/1"),
            make_tab("2", "https://example.com/"),
            make_tab("3", "https://meet.google.com/abc"),
        ]
    )
    assert [t.id for t in registry.monitored_subset()] == ["1", "3"]


def test_find_by_title_case_sensitivity():
    registry = TabRegistry()
    registry.replace_all([make_tab("1", "https://discord.com/", title="Discord | general")])

    assert registry.find_by_title("general").id == "1"
    assert registry.find_by_title("GENERAL") is None
    assert registry.find_by_title("GENERAL", case_sensitive=False).id == "1"


def test_find_by_title_returns_first_match():
    registry = TabRegistry()
    registry.replace_all(
        [
            make_tab("1", "https://a.com/", title="Inbox (3)"),
            make_tab("2", "https://b.com/", title="Inbox (9)"),
        ]
    )
    assert registry.find_by_title("Inbox").id == "1"


def test_find_by_domain():
    registry = TabRegistry()
    registry.replace_all([make_tab("1", "https://web.whatsapp.com/")])
    assert registry.find_by_domain("web.whatsapp.com").id == "1"
    assert registry.find_by_domain("discord.com") is None
