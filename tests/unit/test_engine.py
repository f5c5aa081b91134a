from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from edgeconsole.backends.abstract import AbstractRuleDurabilityStore
from edgeconsole.catalog import InMemoryGameCatalog
from edgeconsole.domain.criteria import RuleCriteria
from edgeconsole.domain.forms import RulePatch, RuleTemplate
from edgeconsole.domain.models import GameRef, GameType, GameVariant
from edgeconsole.engine import BulkMutationEngine, CancelToken, RemovalPlan, _batched
from edgeconsole.errors import (
    ConfirmationDeclined,
    OperationCancelled,
    RuleNotFoundError,
    StoreError,
    TemplateValidationError,
)
from edgeconsole.query import find_duplicate_active_rules
from edgeconsole.store import HouseEdgeStore

EXPECTED_CATALOG_SIZE = 3

APPLY_TEMPLATE = RuleTemplate(
    game_type="slot",
    game_variant="classic",
    house_edge="5",
    min_bet="1",
    max_bet="100",
)


class RejectingBackend(AbstractRuleDurabilityStore):
    name = "rejecting"

    def list_rules(self):
        return []

    def bulk_create(self, rules):
        raise StoreError("insert failed")

    def update_rule(self, rule):
        raise StoreError("update failed")

    def bulk_delete(self, rule_ids):
        raise StoreError("delete failed")

    def bulk_set_status(self, rule_ids, is_active, updated_at):
        raise StoreError("status failed")


class TestApplyToAll:
    def test_creates_one_rule_per_catalog_game(self, engine: BulkMutationEngine, fixed_now) -> None:
        result = engine.apply_to_all_games(APPLY_TEMPLATE)

        assert result.operation == "apply_to_all"
        assert len(result.created) == EXPECTED_CATALOG_SIZE
        assert [rule.game_id for rule in result.created] == ["g1", "g2", "g3"]
        for rule in result.created:
            assert rule.house_edge == "0.0500"
            assert rule.house_edge_percent == "5.00%"
            assert rule.game_type is GameType.SLOT
            assert rule.game_variant is GameVariant.CLASSIC
            assert rule.is_active
            assert rule.min_bet == "1"
            assert rule.max_bet == "100"
            assert rule.effective_from == fixed_now
            assert rule.effective_until == fixed_now + timedelta(days=365)
            assert rule.created_at == rule.updated_at == fixed_now
        assert engine.store.all() == result.created

    def test_is_additive(self, engine: BulkMutationEngine) -> None:
        engine.apply_to_all_games(APPLY_TEMPLATE)
        engine.apply_to_all_games(APPLY_TEMPLATE)

        assert len(engine.store) == 2 * EXPECTED_CATALOG_SIZE
        assert len({rule.id for rule in engine.store}) == 2 * EXPECTED_CATALOG_SIZE
        duplicates = find_duplicate_active_rules(engine.store.all())
        assert len(duplicates) == EXPECTED_CATALOG_SIZE
        assert all(len(ids) == 2 for ids in duplicates.values())

    def test_empty_catalog_is_a_validation_error(self, memory_store, engine_settings) -> None:
        engine = BulkMutationEngine(memory_store, InMemoryGameCatalog(), settings=engine_settings)
        with pytest.raises(TemplateValidationError) as excinfo:
            engine.apply_to_all_games(APPLY_TEMPLATE)
        assert "games" in excinfo.value.field_errors

    def test_logs_operation_markers(self, engine: BulkMutationEngine, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="edgeconsole.engine"):
            engine.apply_to_all_games(APPLY_TEMPLATE)
        messages = [record.getMessage() for record in caplog.records]
        assert "[BULK START] apply_to_all" in messages
        assert "[BULK COMPLETE] apply_to_all" in messages
        complete = next(r for r in caplog.records if r.getMessage() == "[BULK COMPLETE] apply_to_all")
        assert complete.created_count == EXPECTED_CATALOG_SIZE


class TestCreate:
    def test_bulk_cardinality_and_defaults(self, engine: BulkMutationEngine, catalog) -> None:
        refs = catalog.resolve(["101", "g2", "103"])
        template = RuleTemplate(game_type="table", house_edge="2.5", min_bet="0.5")

        result = engine.create_bulk(refs, template)

        assert len(result.created) == 3
        assert len({rule.id for rule in result.created}) == 3
        assert {rule.game_variant for rule in result.created} == {GameVariant.CLASSIC}
        assert {rule.max_bet for rule in result.created} == {"1000"}
        assert {rule.house_edge for rule in result.created} == {"0.0250"}
        assert [rule.game_name for rule in result.created] == ["Sweet Bonanza", "Lightning Roulette", "Starburst"]

    def test_single_create(self, engine: BulkMutationEngine) -> None:
        ref = GameRef(internal_id="101", code="g1", display_name="Sweet Bonanza")
        template = RuleTemplate(game_type="live", game_variant="real", house_edge="0.03", min_bet="5", max_bet="50")

        result = engine.create_single(ref, template)

        assert len(result.created) == 1
        rule = engine.store.get(result.created[0].id)
        assert rule.house_edge == "0.0300"
        assert rule.game_id == "g1"

    def test_single_requires_variant(self, engine: BulkMutationEngine) -> None:
        ref = GameRef(internal_id="101", code="g1")
        with pytest.raises(TemplateValidationError) as excinfo:
            engine.create_single(ref, RuleTemplate(game_type="slot", house_edge="5"))
        assert "game_variant" in excinfo.value.field_errors
        assert len(engine.store) == 0

    def test_invalid_template_mutates_nothing(self, engine: BulkMutationEngine, catalog) -> None:
        refs = catalog.resolve(["g1", "g2"])
        with pytest.raises(TemplateValidationError):
            engine.create_bulk(refs, RuleTemplate(game_type="slot", house_edge="150", min_bet="1"))
        assert len(engine.store) == 0

    def test_min_bet_above_default_max_bet_is_a_field_error(self, engine: BulkMutationEngine, catalog) -> None:
        ref = GameRef(internal_id="101", code="g1")
        with pytest.raises(TemplateValidationError) as excinfo:
            engine.create_single(ref, RuleTemplate(game_type="slot", game_variant="classic", house_edge="5",
                                                   min_bet="5000"))
        assert "max_bet" in excinfo.value.field_errors

        with pytest.raises(TemplateValidationError) as excinfo:
            engine.create_bulk(catalog.resolve(["g1", "g2"]), RuleTemplate(game_type="slot", house_edge="5",
                                                                           min_bet="5000"))
        assert "max_bet" in excinfo.value.field_errors
        assert len(engine.store) == 0

    def test_single_create_without_game(self, engine: BulkMutationEngine) -> None:
        with pytest.raises(TemplateValidationError) as excinfo:
            engine.create_single(None, RuleTemplate(game_type="slot", game_variant="classic", house_edge="5"))
        assert "game" in excinfo.value.field_errors

    def test_backend_failure_leaves_store_unchanged(self, catalog, engine_settings) -> None:
        store = HouseEdgeStore(RejectingBackend())
        engine = BulkMutationEngine(store, catalog, settings=engine_settings)
        with pytest.raises(StoreError):
            engine.apply_to_all_games(APPLY_TEMPLATE)
        assert store.all() == []


class TestRemoveAll:
    def _seed(self, engine: BulkMutationEngine) -> None:
        engine.apply_to_all_games(APPLY_TEMPLATE)
        engine.apply_to_all_games(RuleTemplate(game_type="live", game_variant="real", house_edge="3", min_bet="1"))

    def test_wildcard_with_confirmation_removes_everything(self, engine: BulkMutationEngine) -> None:
        self._seed(engine)
        seen: list[RemovalPlan] = []

        def confirm(plan: RemovalPlan) -> bool:
            seen.append(plan)
            return True

        result = engine.remove_all_matching(RuleCriteria(), confirm)

        assert len(result.removed_ids) == 6
        assert len(engine.store) == 0
        assert seen[0].count == 6
        assert seen[0].removes_everything
        assert "EVERY rule" in seen[0].describe()

    def test_declining_removes_nothing(self, engine: BulkMutationEngine) -> None:
        self._seed(engine)
        with pytest.raises(ConfirmationDeclined):
            engine.remove_all_matching(RuleCriteria(), lambda plan: False)
        assert len(engine.store) == 6

    def test_type_filter_removes_only_matches(self, engine: BulkMutationEngine) -> None:
        self._seed(engine)
        result = engine.remove_all_matching(RuleCriteria(game_type=GameType.LIVE), lambda plan: True)
        assert len(result.removed_ids) == 3
        assert {rule.game_type for rule in engine.store} == {GameType.SLOT}

    def test_nothing_matching_skips_confirmation(self, engine: BulkMutationEngine) -> None:
        self._seed(engine)

        def confirm(plan: RemovalPlan) -> bool:
            raise AssertionError("confirmation should not be requested")

        result = engine.remove_all_matching(RuleCriteria(game_type=GameType.CRASH), confirm)
        assert result.count == 0
        assert len(engine.store) == 6

    def test_plan_removal_is_read_only(self, engine: BulkMutationEngine) -> None:
        self._seed(engine)
        plan = engine.plan_removal(RuleCriteria(game_variant=GameVariant.CLASSIC))
        assert plan.count == 3
        assert not plan.removes_everything
        assert len(engine.store) == 6


class TestBatching:
    @pytest.mark.parametrize("batch_size", [0, -1, 1, 2, 5])
    def test_batches_cover_every_item_once(self, batch_size: int) -> None:
        items = list(range(5))
        flattened = [item for batch in _batched(items, batch_size) for item in batch]
        assert flattened == items

    @pytest.mark.parametrize("batch_size", [0, -1])
    def test_non_positive_batch_size_still_mutates_everything(
        self, engine: BulkMutationEngine, batch_size: int
    ) -> None:
        engine.batch_size = batch_size

        assert len(engine.apply_to_all_games(APPLY_TEMPLATE).created) == EXPECTED_CATALOG_SIZE
        assert len(engine.store) == EXPECTED_CATALOG_SIZE

        result = engine.remove_all_matching(RuleCriteria(), confirm=lambda plan: True)
        assert len(result.removed_ids) == EXPECTED_CATALOG_SIZE
        assert len(engine.store) == 0


class TestCancellation:
    def test_cancelled_bulk_commits_nothing(self, engine: BulkMutationEngine) -> None:
        token = CancelToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            engine.apply_to_all_games(APPLY_TEMPLATE, cancel=token)
        assert len(engine.store) == 0

    def test_cancelled_removal_deletes_nothing(self, engine: BulkMutationEngine) -> None:
        engine.apply_to_all_games(APPLY_TEMPLATE)
        token = CancelToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            engine.remove_all_matching(RuleCriteria(), lambda plan: True, cancel=token)
        assert len(engine.store) == EXPECTED_CATALOG_SIZE


class TestEdits:
    def test_edit_percent_is_stored_as_fraction(self, engine: BulkMutationEngine, make_rule, fixed_now) -> None:
        rule = engine.store.insert(make_rule())

        result = engine.edit_rule(rule.id, RulePatch(house_edge="12"))

        updated = engine.store.get(rule.id)
        assert result.updated == [updated]
        assert updated.house_edge == "0.1200"
        assert updated.house_edge_percent == "12.00%"
        assert updated.updated_at == fixed_now
        assert updated.created_at == rule.created_at

    def test_edit_window_and_variant(self, engine: BulkMutationEngine, make_rule) -> None:
        rule = engine.store.insert(make_rule())
        engine.edit_rule(rule.id, RulePatch(game_variant="v2", effective_until="2030-01-01T00:00"))
        updated = engine.store.get(rule.id)
        assert updated.game_variant is GameVariant.V2
        assert updated.effective_until.year == 2030

    def test_edit_missing_rule(self, engine: BulkMutationEngine) -> None:
        with pytest.raises(RuleNotFoundError):
            engine.edit_rule("missing", RulePatch(house_edge="3"))

    def test_toggle_and_bulk_status(self, engine: BulkMutationEngine, make_rule) -> None:
        first = engine.store.insert(make_rule())
        second = engine.store.insert(make_rule())

        engine.toggle_status(first.id)
        assert engine.store.get(first.id).is_active is False

        engine.set_status([first.id, second.id], False)
        assert {rule.is_active for rule in engine.store} == {False}

        with pytest.raises(TemplateValidationError):
            engine.set_status([], True)

    def test_delete_rules(self, engine: BulkMutationEngine, make_rule) -> None:
        rules = [engine.store.insert(make_rule()) for _ in range(3)]

        result = engine.delete_rules([rules[0].id, rules[2].id])
        assert result.removed_ids == [rules[0].id, rules[2].id]
        assert [rule.id for rule in engine.store] == [rules[1].id]

        engine.delete_rule(rules[1].id)
        assert len(engine.store) == 0

    def test_delete_unknown_id_deletes_nothing(self, engine: BulkMutationEngine, make_rule) -> None:
        rule = engine.store.insert(make_rule())
        with pytest.raises(RuleNotFoundError):
            engine.delete_rules([rule.id, "missing"])
        assert len(engine.store) == 1
