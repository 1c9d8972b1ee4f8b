import sys

import pytest

from tandemgraph import listing
from tandemgraph.encoding import FullKey
from tandemgraph.errors import TandemApiError
from tandemgraph.hierarchy import HierarchyGraph, HierarchyView


def _key(n):
    return FullKey("urn:adsk.dtm:m", f"k{n}")


@pytest.fixture()
def view():
    graph = HierarchyGraph.freeze(
        levels={_key(1): {"n:n": "Level 1"}},
        rooms={_key(10): {"n:n": "Office"}, _key(11): {"n:n": "Store"}, _key(12): {}},
        assets={_key(100): {"n:n": "Desk"}, _key(101): {"n:n": "Shelf"}},
        room_assets={_key(10): {_key(100): None}, _key(11): {_key(101): None}, _key(12): {}},
        room_level={_key(10): _key(1)},
    )
    return HierarchyView(graph)


def test_format_structure_indents_each_depth(view):
    assert listing.format_structure(view) == ["Level 1", "  Office", "    Desk"]


def test_format_structure_can_show_rooms_without_level(view):
    lines = listing.format_structure(view, show_unassigned=True)

    assert lines[3:] == ["(no level)", "  Store", "    Shelf", f"  <{_key(12)}>"]


def test_main_prints_tree_and_summary(view, monkeypatch, capsys):
    captured = {}

    def fake_list_structure(settings):
        captured["settings"] = settings
        return view

    monkeypatch.setattr(listing, "list_structure", fake_list_structure)
    monkeypatch.delenv("TANDEM_FACILITY_URN", raising=False)

    listing.main(["--facility", "urn:adsk.dtt:f", "--concurrency", "2", "--strict"])

    out = capsys.readouterr().out
    assert "Level 1\n  Office\n    Desk\n" in out
    assert "Summary: levels=1, rooms=3, assets=2" in out
    assert captured["settings"].facility_urn == "urn:adsk.dtt:f"
    assert captured["settings"].concurrency == 2
    assert captured["settings"].strict_references is True


def test_main_without_facility_exits(monkeypatch, capsys):
    monkeypatch.delenv("TANDEM_FACILITY_URN", raising=False)

    with pytest.raises(SystemExit) as info:
        listing.main([])

    assert info.value.code == 2
    assert "No facility given" in capsys.readouterr().err


def test_main_reports_api_errors(monkeypatch, capsys):
    def failing(settings):
        raise TandemApiError("GET twins failed with 401", status_code=401)

    monkeypatch.setattr(listing, "list_structure", failing)

    with pytest.raises(SystemExit) as info:
        listing.main(["--facility", "urn:adsk.dtt:f"])

    assert info.value.code == 2
    assert "401" in capsys.readouterr().err


def test_console_script_exits_cleanly_after_listing(view, monkeypatch):
    monkeypatch.setattr(listing, "list_structure", lambda settings: view)

    with pytest.raises(SystemExit) as info:
        sys.exit(listing.main(["--facility", "urn:adsk.dtt:f"]))

    assert info.value.code in (None, 0)
