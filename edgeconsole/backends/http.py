"""
REST durability backend for the house-edge admin API.

Talks to `/api/admin/house-edge-management`:

- GET    ?page=&per_page=        paginated listing (`house_edges`, `total_pages`)
- POST   /                       create one rule
- PUT    /{id}                   update one rule
- DELETE /{id}                   delete one rule
- POST   /bulk                   create one rule per `game_ids` entry from a template
- DELETE /bulk                   delete `house_edge_ids`
- PUT    /bulk-status            set `is_active` on `house_edge_ids`

`house_edge` travels as a decimal-fraction string and timestamps as RFC3339.
The server assigns ids; rules returned by the API replace the locally minted
ones so the session snapshot mirrors what was persisted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from edgeconsole.backends.abstract import AbstractRuleDurabilityStore
from edgeconsole.domain.models import HouseEdgeRule
from edgeconsole.errors import StoreError
from edgeconsole.infrastructure.api_client import build_client, request_json
from edgeconsole.utils.logging import get_logger

log = get_logger(__name__)

RULES_PATH = "/api/admin/house-edge-management"
LIST_PAGE_SIZE = 100

# Fields a bulk request shares across every target game.
_TEMPLATE_FIELDS = (
    "game_type",
    "game_variant",
    "house_edge",
    "min_bet",
    "max_bet",
    "is_active",
    "effective_from",
    "effective_until",
)


def _parse_rule(payload: Any) -> HouseEdgeRule:
    try:
        return HouseEdgeRule.model_validate(payload)
    except ValidationError as exc:
        rule_id = payload.get("id") if isinstance(payload, dict) else None
        raise StoreError(
            f"Malformed house edge from API: {exc.error_count()} invalid field(s)",
            details={"rule_id": rule_id, "fields": [".".join(map(str, err["loc"])) for err in exc.errors()]},
        ) from exc


def _request_body(rule: HouseEdgeRule) -> Dict[str, Any]:
    wire = rule.to_wire()
    body = {field: wire[field] for field in _TEMPLATE_FIELDS}
    body["game_id"] = wire["game_id"]
    return body


class HttpRuleStore(AbstractRuleDurabilityStore):
    """
    Rules persisted by the remote admin API.
    """

    name: str = "http"
    description: str = "Remote admin REST API (/api/admin/house-edge-management)."

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        page_size: int = LIST_PAGE_SIZE,
    ) -> None:
        self._client = client or build_client(base_url=base_url, token=token)
        self._owns_client = client is None
        self.page_size = page_size

    def list_rules(self) -> List[HouseEdgeRule]:
        rules: List[HouseEdgeRule] = []
        page = 1
        while True:
            data = request_json(
                self._client,
                "GET",
                RULES_PATH,
                params={"page": page, "per_page": self.page_size, "sort_by": "created_at", "sort_order": "asc"},
            ) or {}
            batch = data.get("house_edges") or []
            rules.extend(_parse_rule(item) for item in batch)
            total_pages = data.get("total_pages") or 1
            if not batch or page >= total_pages:
                break
            page += 1
        log.debug("Rules listed from API", extra={"rules": len(rules), "pages": page})
        return rules

    def create_rule(self, rule: HouseEdgeRule) -> HouseEdgeRule:
        data = request_json(self._client, "POST", RULES_PATH, json=_request_body(rule))
        return self._merge(rule, data)

    def update_rule(self, rule: HouseEdgeRule) -> HouseEdgeRule:
        data = request_json(
            self._client,
            "PUT",
            f"{RULES_PATH}/{rule.id}",
            json=_request_body(rule),
            rule_id=rule.id,
        )
        return self._merge(rule, data)

    def delete_rule(self, rule_id: str) -> None:
        request_json(self._client, "DELETE", f"{RULES_PATH}/{rule_id}", rule_id=rule_id)

    def bulk_create(self, rules: Sequence[HouseEdgeRule]) -> List[HouseEdgeRule]:
        if not rules:
            return []
        template = {field: _request_body(rules[0])[field] for field in _TEMPLATE_FIELDS}
        for rule in rules[1:]:
            body = _request_body(rule)
            if any(body[field] != template[field] for field in _TEMPLATE_FIELDS):
                raise StoreError(
                    "The bulk endpoint accepts a single template per request",
                    details={"rule_id": rule.id},
                )
        payload = {"game_ids": [rule.game_id for rule in rules], **template}
        data = request_json(self._client, "POST", f"{RULES_PATH}/bulk", json=payload)

        created = data.get("house_edges") if isinstance(data, dict) else data
        if not isinstance(created, list) or len(created) != len(rules):
            # The API acknowledged the batch without echoing it; keep local ids.
            return list(rules)
        return [self._merge(local, remote) for local, remote in zip(rules, created)]

    def bulk_delete(self, rule_ids: Sequence[str]) -> int:
        if not rule_ids:
            return 0
        data = request_json(
            self._client,
            "DELETE",
            f"{RULES_PATH}/bulk",
            json={"house_edge_ids": list(rule_ids)},
        )
        if isinstance(data, dict) and isinstance(data.get("deleted_count"), int):
            return data["deleted_count"]
        return len(rule_ids)

    def bulk_set_status(
        self, rule_ids: Sequence[str], is_active: bool, updated_at: datetime
    ) -> int:
        if not rule_ids:
            return 0
        request_json(
            self._client,
            "PUT",
            f"{RULES_PATH}/bulk-status",
            json={"house_edge_ids": list(rule_ids), "is_active": is_active},
        )
        return len(rule_ids)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    @staticmethod
    def _merge(local: HouseEdgeRule, remote: Any) -> HouseEdgeRule:
        """Prefer the server's representation, filling gaps from the local rule."""
        if not isinstance(remote, dict):
            return local
        merged = local.to_wire()
        merged.update({key: value for key, value in remote.items() if value not in (None, "")})
        return _parse_rule(merged)


__all__ = ["HttpRuleStore", "RULES_PATH"]
