"""
Bulk-mutation engine for house-edge rules.

Every bulk operation follows the same shape:

1. validate the submitted form value (nothing is touched on failure),
2. plan the mutation in batches of `bulk_batch_size` (minting new rules or
   collecting matching ids), pausing at a checkpoint after each batch,
3. commit the whole plan with a single store call.

Bulk operations are written as generators that yield at each checkpoint and
return a MutationResult; single-rule edits run straight through.
`BulkMutationEngine` drives the generators synchronously and honours a
CancelToken at every checkpoint; `AsyncBulkMutationEngine` drives the very same
generators from a coroutine and hands control back to the event loop between
batches. Because the commit happens after the last checkpoint, a cancelled
operation never leaves a partial batch behind.

Usage:
    engine = BulkMutationEngine(store, catalog)
    result = engine.apply_to_all_games(RuleTemplate(game_type="slot", house_edge="5", min_bet="1"))
    print(result.count)
"""

from __future__ import annotations

import asyncio
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Generator, Iterator, List, Optional, Sequence, TypeVar

from edgeconsole.catalog import GameCatalogProvider
from edgeconsole.config import Settings, get_settings
from edgeconsole.domain.codec import normalize_amount, to_fraction
from edgeconsole.domain.criteria import RuleCriteria, matches
from edgeconsole.domain.forms import (
    RulePatch,
    RuleTemplate,
    ValidationResult,
    validate_bulk,
    validate_patch,
    validate_single,
)
from edgeconsole.domain.models import GameRef, GameType, GameVariant, HouseEdgeRule
from edgeconsole.domain.windows import parse_timestamp, resolve_window, utcnow
from edgeconsole.errors import ConfirmationDeclined, OperationCancelled, TemplateValidationError
from edgeconsole.store import HouseEdgeStore
from edgeconsole.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

# Generator protocol of an operation: yields at checkpoints, returns the result.
Steps = Generator[None, None, "MutationResult"]


@dataclass
class MutationResult:
    """
    Outcome of one engine operation.
    """

    operation: str
    created: List[HouseEdgeRule] = field(default_factory=list)
    updated: List[HouseEdgeRule] = field(default_factory=list)
    removed_ids: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def count(self) -> int:
        return len(self.created) + len(self.updated) + len(self.removed_ids)


@dataclass(frozen=True)
class RemovalPlan:
    """The exact set of rules a remove-all request would delete."""

    criteria: RuleCriteria
    rule_ids: tuple[str, ...]
    store_size: int

    @property
    def count(self) -> int:
        return len(self.rule_ids)

    @property
    def removes_everything(self) -> bool:
        return self.count > 0 and self.count == self.store_size

    def describe(self) -> str:
        text = f"Remove {self.count} house edge rule(s) matching {self.criteria.describe()}"
        if self.criteria.is_unrestricted:
            text += " (no filter set: this deletes EVERY rule in the store)"
        elif self.removes_everything:
            text += " (this is every rule in the store)"
        return text


class CancelToken:
    """Cooperative cancellation flag checked at every engine checkpoint."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def _batched(items: Sequence[T], batch_size: int) -> Iterator[Sequence[T]]:
    """
    Yield consecutive slices of at most `batch_size` items.
    """
    size = max(1, batch_size)
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _raise_if_invalid(result: ValidationResult) -> None:
    if not result.ok:
        raise TemplateValidationError(result.field_errors)


class BulkMutationEngine:
    """
    Single, bulk, apply-to-all and remove-all-matching mutations over a store.
    """

    def __init__(
        self,
        store: HouseEdgeStore,
        catalog: GameCatalogProvider,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        settings = settings or get_settings()
        self.store = store
        self.catalog = catalog
        self.batch_size = settings.bulk_batch_size
        self.window_days = settings.default_window_days
        self.default_max_bet = settings.default_max_bet
        self.default_variant = GameVariant(settings.default_variant)
        self._clock = clock
        self._new_id = id_factory

    # ------------------------------------------------------------------ create

    def create_single(self, game_ref: Optional[GameRef], template: RuleTemplate) -> MutationResult:
        return self._run_once("create_single", lambda: self._create_single(game_ref, template))

    def create_bulk(
        self,
        game_refs: Sequence[GameRef],
        template: RuleTemplate,
        cancel: Optional[CancelToken] = None,
    ) -> MutationResult:
        return self._run("create_bulk", self._create_bulk_steps(game_refs, template), cancel)

    def apply_to_all_games(
        self, template: RuleTemplate, cancel: Optional[CancelToken] = None
    ) -> MutationResult:
        """
        Mint one rule per catalog game from `template`.

        Always additive: games that already have a rule for the same type and
        variant receive another one.
        """
        return self._run("apply_to_all", self._apply_to_all_steps(template), cancel)

    # ------------------------------------------------------------------ remove

    def plan_removal(self, criteria: RuleCriteria) -> RemovalPlan:
        rules = self.store.all()
        return RemovalPlan(
            criteria=criteria,
            rule_ids=tuple(rule.id for rule in rules if matches(rule, criteria)),
            store_size=len(rules),
        )

    def remove_all_matching(
        self,
        criteria: RuleCriteria,
        confirm: Callable[[RemovalPlan], bool],
        cancel: Optional[CancelToken] = None,
    ) -> MutationResult:
        """
        Delete every rule in the store that matches `criteria`.

        `confirm` receives the RemovalPlan (exact count and description) and
        must return True for anything to be deleted. Unrestricted criteria match
        every rule.
        """
        return self._run("remove_all", self._remove_all_steps(criteria, confirm), cancel)

    # ------------------------------------------------------------------ edit

    def edit_rule(self, rule_id: str, patch: RulePatch) -> MutationResult:
        return self._run_once("edit", lambda: self._edit(rule_id, patch))

    def toggle_status(self, rule_id: str) -> MutationResult:
        rule = self.store.get(rule_id)
        return self.set_status([rule_id], not rule.is_active)

    def set_status(self, rule_ids: Sequence[str], is_active: bool) -> MutationResult:
        return self._run_once("set_status", lambda: self._set_status(rule_ids, is_active))

    def delete_rule(self, rule_id: str) -> MutationResult:
        return self.delete_rules([rule_id])

    def delete_rules(self, rule_ids: Sequence[str]) -> MutationResult:
        return self._run_once("delete", lambda: self._delete(rule_ids))

    # ------------------------------------------------------------------ steps

    def _materialize(self, template: RuleTemplate, now: datetime) -> Dict[str, Any]:
        """Shared rule fields for every rule minted from `template`."""
        start, end = resolve_window(
            template.effective_from, template.effective_until, now=now, window_days=self.window_days
        )
        return {
            "game_type": GameType(template.game_type),
            "game_variant": GameVariant(template.game_variant) if template.game_variant else self.default_variant,
            "house_edge": to_fraction(template.house_edge),
            "min_bet": normalize_amount(template.min_bet, field="min_bet"),
            "max_bet": normalize_amount(template.max_bet, field="max_bet") if template.max_bet else self.default_max_bet,
            "is_active": template.is_active,
            "effective_from": start,
            "effective_until": end,
            "created_at": now,
            "updated_at": now,
        }

    def _mint(self, game_ref: GameRef, fields: Dict[str, Any]) -> HouseEdgeRule:
        return HouseEdgeRule(
            id=self._new_id(),
            game_id=game_ref.code,
            game_name=game_ref.display_name,
            **fields,
        )

    def _create_single(self, game_ref: Optional[GameRef], template: RuleTemplate) -> MutationResult:
        _raise_if_invalid(validate_single(game_ref, template, default_max_bet=self.default_max_bet))
        if game_ref is None:
            raise TemplateValidationError({"game": "Please select a game"})
        rule = self._mint(game_ref, self._materialize(template, self._clock()))
        created = self.store.insert(rule)
        return MutationResult(operation="create_single", created=[created])

    def _mint_for_targets(self, operation: str, game_refs: Sequence[GameRef], template: RuleTemplate) -> Steps:
        _raise_if_invalid(validate_bulk(game_refs, template, default_max_bet=self.default_max_bet))
        fields = self._materialize(template, self._clock())
        planned: List[HouseEdgeRule] = []
        for batch in _batched(game_refs, self.batch_size):
            planned.extend(self._mint(ref, fields) for ref in batch)
            yield
        created = self.store.insert_many(planned)
        return MutationResult(operation=operation, created=created)

    def _create_bulk_steps(self, game_refs: Sequence[GameRef], template: RuleTemplate) -> Steps:
        return (yield from self._mint_for_targets("create_bulk", list(game_refs), template))

    def _apply_to_all_steps(self, template: RuleTemplate) -> Steps:
        targets = [game.to_ref() for game in self.catalog.list_games()]
        return (yield from self._mint_for_targets("apply_to_all", targets, template))

    def _remove_all_steps(self, criteria: RuleCriteria, confirm: Callable[[RemovalPlan], bool]) -> Steps:
        rules = self.store.all()
        matched: List[str] = []
        for batch in _batched(rules, self.batch_size):
            matched.extend(rule.id for rule in batch if matches(rule, criteria))
            yield
        plan = RemovalPlan(criteria=criteria, rule_ids=tuple(matched), store_size=len(rules))
        if plan.count == 0:
            return MutationResult(operation="remove_all")
        if not confirm(plan):
            raise ConfirmationDeclined(
                "Remove-all was not confirmed; nothing was deleted",
                details={"count": plan.count, "criteria": criteria.describe()},
            )
        self.store.delete_many(plan.rule_ids)
        return MutationResult(operation="remove_all", removed_ids=list(plan.rule_ids))

    def _edit(self, rule_id: str, patch: RulePatch) -> MutationResult:
        _raise_if_invalid(validate_patch(patch))
        rule = self.store.get(rule_id)
        changes: Dict[str, Any] = {"updated_at": self._clock()}
        if patch.game_type:
            changes["game_type"] = GameType(patch.game_type)
        if patch.game_variant:
            changes["game_variant"] = GameVariant(patch.game_variant)
        if patch.house_edge is not None:
            changes["house_edge"] = to_fraction(patch.house_edge)
        if patch.min_bet is not None:
            changes["min_bet"] = normalize_amount(patch.min_bet, field="min_bet")
        if patch.max_bet is not None:
            changes["max_bet"] = normalize_amount(patch.max_bet, field="max_bet")
        if patch.is_active is not None:
            changes["is_active"] = patch.is_active
        if patch.effective_from:
            changes["effective_from"] = parse_timestamp(patch.effective_from)
        if patch.effective_until:
            changes["effective_until"] = parse_timestamp(patch.effective_until)
        updated = self.store.update(rule.model_copy(update=changes))
        return MutationResult(operation="edit", updated=[updated])

    def _set_status(self, rule_ids: Sequence[str], is_active: bool) -> MutationResult:
        if not rule_ids:
            raise TemplateValidationError({"house_edge_ids": "Select at least one house edge rule"})
        updated = self.store.set_status(list(rule_ids), is_active, self._clock())
        return MutationResult(operation="set_status", updated=updated)

    def _delete(self, rule_ids: Sequence[str]) -> MutationResult:
        if not rule_ids:
            raise TemplateValidationError({"house_edge_ids": "Select at least one house edge rule"})
        for rule_id in rule_ids:
            self.store.get(rule_id)
        self.store.delete_many(list(rule_ids))
        return MutationResult(operation="delete", removed_ids=list(dict.fromkeys(rule_ids)))

    # ------------------------------------------------------------------ drivers

    def _run(self, operation: str, steps: Steps, cancel: Optional[CancelToken] = None) -> MutationResult:
        log.info(f"[BULK START] {operation}", extra={"operation": operation})
        start = time.perf_counter()
        try:
            while True:
                next(steps)
                if cancel is not None and cancel.cancelled:
                    steps.close()
                    raise OperationCancelled(
                        f"{operation} was cancelled before commit", details={"operation": operation}
                    )
        except StopIteration as stop:
            result: MutationResult = stop.value
        except Exception as exc:
            log.warning(f"[BULK FAILED] {operation}", extra={"operation": operation, "error": str(exc)})
            raise
        return _finish(result, start)

    def _run_once(self, operation: str, action: Callable[[], MutationResult]) -> MutationResult:
        log.info(f"[BULK START] {operation}", extra={"operation": operation})
        start = time.perf_counter()
        try:
            result = action()
        except Exception as exc:
            log.warning(f"[BULK FAILED] {operation}", extra={"operation": operation, "error": str(exc)})
            raise
        return _finish(result, start)


def _finish(result: MutationResult, start: float) -> MutationResult:
    result.duration_seconds = time.perf_counter() - start
    log.info(
        f"[BULK COMPLETE] {result.operation}",
        extra={
            "operation": result.operation,
            "created_count": len(result.created),
            "updated_count": len(result.updated),
            "removed_count": len(result.removed_ids),
            "duration_seconds": round(result.duration_seconds, 4),
        },
    )
    return result


class AsyncBulkMutationEngine:
    """
    Event-loop friendly facade over BulkMutationEngine.

    Drives the same batched steps but awaits `asyncio.sleep(0)` at every
    checkpoint. Cancelling the awaiting task aborts before commit.
    """

    def __init__(self, engine: BulkMutationEngine) -> None:
        self.engine = engine

    async def create_bulk(self, game_refs: Sequence[GameRef], template: RuleTemplate) -> MutationResult:
        return await self._run("create_bulk", self.engine._create_bulk_steps(game_refs, template))

    async def apply_to_all_games(self, template: RuleTemplate) -> MutationResult:
        return await self._run("apply_to_all", self.engine._apply_to_all_steps(template))

    async def remove_all_matching(
        self, criteria: RuleCriteria, confirm: Callable[[RemovalPlan], bool]
    ) -> MutationResult:
        return await self._run("remove_all", self.engine._remove_all_steps(criteria, confirm))

    async def _run(self, operation: str, steps: Steps) -> MutationResult:
        log.info(f"[BULK START] {operation}", extra={"operation": operation, "mode": "async"})
        start = time.perf_counter()
        try:
            while True:
                next(steps)
                await asyncio.sleep(0)
        except StopIteration as stop:
            result: MutationResult = stop.value
        except asyncio.CancelledError:
            steps.close()
            log.info(f"[BULK CANCELLED] {operation}", extra={"operation": operation})
            raise
        return _finish(result, start)


__all__ = [
    "AsyncBulkMutationEngine",
    "BulkMutationEngine",
    "CancelToken",
    "MutationResult",
    "RemovalPlan",
]
