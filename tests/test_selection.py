import uuid

import pytest

from autopostr.services.asset_discovery import DiscoveredAccount, DiscoveredPage
from autopostr.services.selection import SelectionError, SelectionGateway, SelectionState

PAGES = [
    DiscoveredPage(id="p1", name="Bakery", access_token="t1"),
    DiscoveredPage(id="p2", name="Cafe", access_token="t2"),
]
ACCOUNTS = [
    DiscoveredAccount(ig_user_id="ig1", username="bakery", page_id="p1", page_name="Bakery", page_access_token="t1"),
    DiscoveredAccount(ig_user_id="ig2", username="cafe", page_id="p2", page_name="Cafe", page_access_token="t2"),
]


def test_selecting_account_selects_its_page():
    state = SelectionState(PAGES, ACCOUNTS)
    state.select_account("ig2")
    pages, accounts = state.chosen()
    assert [p.id for p in pages] == ["p2"]
    assert [a.ig_user_id for a in accounts] == ["ig2"]


def test_deselecting_page_drops_its_accounts():
    state = SelectionState(PAGES, ACCOUNTS)
    state.select_account("ig1")
    state.select_account("ig2")
    state.deselect_page("p1")
    pages, accounts = state.chosen()
    assert [p.id for p in pages] == ["p2"]
    assert [a.ig_user_id for a in accounts] == ["ig2"]


def test_deselecting_account_keeps_page():
    state = SelectionState(PAGES, ACCOUNTS)
    state.select_account("ig1")
    state.deselect_account("ig1")
    pages, accounts = state.chosen()
    assert [p.id for p in pages] == ["p1"]
    assert accounts == []


def test_toggles():
    state = SelectionState(PAGES, ACCOUNTS)
    state.toggle_account("ig1")
    state.toggle_page("p1")
    assert state.is_empty()
    state.toggle_page("p2")
    assert state.selected_pages == {"p2"}


def test_unknown_targets_rejected():
    state = SelectionState(PAGES, ACCOUNTS)
    with pytest.raises(SelectionError):
        state.select_page("nope")
    with pytest.raises(SelectionError):
        state.select_account("nope")


def test_account_without_discovered_page_brings_page_along():
    state = SelectionState.from_submission([], [ACCOUNTS[1]])
    pages, _ = state.chosen()
    assert pages[0].id == "p2"
    assert pages[0].access_token == "t2"
    assert pages[0].name == "Cafe"


async def test_gateway_rejects_empty_selection_before_touching_the_database():
    gateway = SelectionGateway(session=None)
    with pytest.raises(SelectionError, match="No selections provided"):
        await gateway.save(uuid.uuid4(), [], [])
