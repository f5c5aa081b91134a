from __future__ import annotations

import json
from pathlib import Path

import pytest

from edgeconsole.backends import available_backends, create_backend
from edgeconsole.backends.memory import MemoryRuleStore
from edgeconsole.catalog import InMemoryGameCatalog
from edgeconsole.config import Settings
from edgeconsole.errors import RuleNotFoundError, StoreError, UnknownGameError


def test_snapshot_round_trip_keeps_games(tmp_path: Path, make_rule) -> None:
    path = tmp_path / "house_edges.json"
    path.write_text(json.dumps({"games": [{"internal_id": "1", "game_code": "g1", "name": "Demo"}]}))

    store = MemoryRuleStore(snapshot_path=path)
    rule = make_rule()
    store.bulk_create([rule])

    payload = json.loads(path.read_text())
    assert payload["games"][0]["game_code"] == "g1"
    assert payload["house_edges"][0]["id"] == rule.id
    assert payload["house_edges"][0]["game_type"] == "slot"

    reloaded = MemoryRuleStore(snapshot_path=path)
    assert reloaded.list_rules() == [rule]


def test_missing_snapshot_is_empty(tmp_path: Path) -> None:
    assert MemoryRuleStore(snapshot_path=tmp_path / "absent.json").list_rules() == []


def test_invalid_snapshot_raises(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(StoreError):
        MemoryRuleStore(snapshot_path=path)


def test_bulk_create_rejects_existing_ids(make_rule) -> None:
    rule = make_rule()
    store = MemoryRuleStore(rules=[rule])
    with pytest.raises(StoreError):
        store.bulk_create([make_rule(), make_rule(id=rule.id)])
    assert store.list_rules() == [rule]


def test_status_and_delete(make_rule, fixed_now) -> None:
    first, second = make_rule(), make_rule()
    store = MemoryRuleStore(rules=[first, second])

    assert store.bulk_set_status([first.id], False, fixed_now) == 1
    assert store.list_rules()[0].is_active is False
    with pytest.raises(RuleNotFoundError):
        store.bulk_set_status(["missing"], True, fixed_now)

    assert store.bulk_delete([first.id, "missing"]) == 1
    store.delete_rule(second.id)
    assert store.list_rules() == []


def test_update_missing_rule(make_rule) -> None:
    with pytest.raises(RuleNotFoundError):
        MemoryRuleStore().update_rule(make_rule())


def test_registry(tmp_path: Path) -> None:
    assert available_backends() == ["http", "memory", "postgres"]
    backend = create_backend("memory", settings=Settings(snapshot_path=str(tmp_path / "s.json")))
    assert isinstance(backend, MemoryRuleStore)
    with pytest.raises(ValueError):
        create_backend("sqlite", settings=Settings())


def test_catalog_from_snapshot_resolves_ids_and_codes(tmp_path: Path) -> None:
    path = tmp_path / "house_edges.json"
    path.write_text(
        json.dumps(
            {
                "games": [
                    {"internal_id": "1", "game_code": "g1", "name": "One"},
                    {"internal_id": "2", "game_code": "g2", "name": "Two"},
                ]
            }
        )
    )
    catalog = InMemoryGameCatalog.from_snapshot(path)

    refs = catalog.resolve(["2", "g1"])
    assert [ref.code for ref in refs] == ["g2", "g1"]
    assert refs[0].display_name == "Two"

    with pytest.raises(UnknownGameError) as excinfo:
        catalog.resolve(["g1", "g9"])
    assert excinfo.value.details["selectors"] == ["g9"]
