"""
In-memory durability backend (demonstration mode).

Holds rules in an insertion-ordered dict. When a snapshot path is given, the
backend loads `house_edges` from that JSON file on start-up and writes the whole
collection back after every successful mutation, which is what lets the CLI keep
state between invocations without a server. The same file may also carry a
`games` list consumed by `InMemoryGameCatalog.from_snapshot`.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from edgeconsole.backends.abstract import AbstractRuleDurabilityStore
from edgeconsole.domain.models import HouseEdgeRule
from edgeconsole.errors import RuleNotFoundError, StoreError
from edgeconsole.utils.logging import get_logger

log = get_logger(__name__)


def read_snapshot(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Snapshot {path} is not valid JSON", details={"path": str(path)}) from exc
    if not isinstance(payload, dict):
        raise StoreError(f"Snapshot {path} must contain a JSON object", details={"path": str(path)})
    return payload


def write_snapshot(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
    tmp_path.replace(path)


class MemoryRuleStore(AbstractRuleDurabilityStore):
    """
    Rules kept in process memory, optionally mirrored to a JSON snapshot.
    """

    name: str = "memory"
    description: str = "In-memory mirror with optional JSON snapshot (demonstration mode)."

    def __init__(
        self,
        rules: Optional[Sequence[HouseEdgeRule]] = None,
        snapshot_path: Optional[Path | str] = None,
    ) -> None:
        self._snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._rules: Dict[str, HouseEdgeRule] = {}
        if rules is not None:
            self._rules = {rule.id: rule for rule in rules}
        elif self._snapshot_path is not None:
            self.load()

    @property
    def snapshot_path(self) -> Optional[Path]:
        return self._snapshot_path

    def load(self) -> int:
        """(Re)load rules from the snapshot file; returns how many were read."""
        if self._snapshot_path is None:
            return len(self._rules)
        payload = read_snapshot(self._snapshot_path)
        rules = [HouseEdgeRule.model_validate(item) for item in payload.get("house_edges", [])]
        self._rules = {rule.id: rule for rule in rules}
        log.debug(
            "Snapshot loaded",
            extra={"path": str(self._snapshot_path), "rules": len(self._rules)},
        )
        return len(self._rules)

    def save(self) -> None:
        if self._snapshot_path is None:
            return
        payload = read_snapshot(self._snapshot_path)
        payload["house_edges"] = [rule.to_wire() for rule in self._rules.values()]
        write_snapshot(self._snapshot_path, payload)

    def _persist(self, previous: Dict[str, HouseEdgeRule]) -> None:
        try:
            self.save()
        except OSError as exc:
            self._rules = previous
            raise StoreError(
                f"Could not write snapshot {self._snapshot_path}", details={"error": str(exc)}
            ) from exc

    def list_rules(self) -> List[HouseEdgeRule]:
        return list(self._rules.values())

    def bulk_create(self, rules: Sequence[HouseEdgeRule]) -> List[HouseEdgeRule]:
        clashes = [rule.id for rule in rules if rule.id in self._rules]
        if clashes:
            raise StoreError("Rule ids already exist", details={"rule_ids": clashes})
        previous = dict(self._rules)
        for rule in rules:
            self._rules[rule.id] = rule
        self._persist(previous)
        return list(rules)

    def update_rule(self, rule: HouseEdgeRule) -> HouseEdgeRule:
        if rule.id not in self._rules:
            raise RuleNotFoundError(rule.id)
        previous = dict(self._rules)
        self._rules[rule.id] = rule
        self._persist(previous)
        return rule

    def bulk_delete(self, rule_ids: Sequence[str]) -> int:
        previous = dict(self._rules)
        removed = 0
        for rule_id in rule_ids:
            if self._rules.pop(rule_id, None) is not None:
                removed += 1
        if removed:
            self._persist(previous)
        return removed

    def bulk_set_status(
        self, rule_ids: Sequence[str], is_active: bool, updated_at: datetime
    ) -> int:
        missing = [rule_id for rule_id in rule_ids if rule_id not in self._rules]
        if missing:
            raise RuleNotFoundError(missing[0])
        previous = dict(self._rules)
        for rule_id in rule_ids:
            self._rules[rule_id] = self._rules[rule_id].model_copy(
                update={"is_active": is_active, "updated_at": updated_at}
            )
        self._persist(previous)
        return len(rule_ids)


__all__ = ["MemoryRuleStore", "read_snapshot", "write_snapshot"]
