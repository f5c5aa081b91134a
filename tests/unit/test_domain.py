from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from edgeconsole.domain.criteria import RuleCriteria, matches, select_matching
from edgeconsole.domain.forms import RulePatch, RuleTemplate, validate_bulk, validate_patch, validate_single
from edgeconsole.domain.models import GameRef, GameType, GameVariant
from edgeconsole.domain.windows import normalize_timestamp, parse_timestamp, resolve_window

REF = GameRef(internal_id="101", code="g1", display_name="Sweet Bonanza")


class TestCriteria:
    def test_unrestricted_matches_everything(self, make_rule) -> None:
        rules = [
            make_rule(game_type=GameType.SLOT),
            make_rule(game_type=GameType.LIVE, game_variant=GameVariant.REAL),
        ]
        criteria = RuleCriteria()
        assert criteria.is_unrestricted
        assert select_matching(rules, criteria) == rules

    def test_type_only(self, make_rule) -> None:
        slot = make_rule(game_type=GameType.SLOT)
        live = make_rule(game_type=GameType.LIVE)
        criteria = RuleCriteria(game_type=GameType.SLOT)
        assert matches(slot, criteria)
        assert not matches(live, criteria)

    def test_both_fields_are_conjunctive(self, make_rule) -> None:
        rule = make_rule(game_type=GameType.SLOT, game_variant=GameVariant.V1)
        assert matches(rule, RuleCriteria(game_type=GameType.SLOT, game_variant=GameVariant.V1))
        assert not matches(rule, RuleCriteria(game_type=GameType.SLOT, game_variant=GameVariant.CLASSIC))

    def test_from_form_maps_empty_to_wildcard(self) -> None:
        criteria = RuleCriteria.from_form("", "v1")
        assert criteria.game_type is None
        assert criteria.game_variant is GameVariant.V1
        assert criteria.describe() == "game_type=*, game_variant=v1"

    def test_from_form_rejects_unknown_values(self) -> None:
        with pytest.raises(ValueError):
            RuleCriteria.from_form("poker", "")


class TestWindows:
    def test_minute_precision_is_completed(self) -> None:
        assert normalize_timestamp("2025-03-01T10:30") == "2025-03-01T10:30:00Z"
        assert normalize_timestamp("2025-03-01T10:30:15Z") == "2025-03-01T10:30:15Z"
        assert normalize_timestamp("") == ""

    def test_parse_treats_naive_as_utc(self) -> None:
        parsed = parse_timestamp("2025-03-01T10:30:00")
        assert parsed == datetime(2025, 3, 1, 10, 30, tzinfo=timezone.utc)

    def test_parse_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp("next tuesday")

    def test_resolve_window_defaults(self, fixed_now: datetime) -> None:
        start, end = resolve_window("", "", now=fixed_now, window_days=365)
        assert start == fixed_now
        assert end == fixed_now + timedelta(days=365)

    def test_resolve_window_keeps_given_bounds(self, fixed_now: datetime) -> None:
        start, end = resolve_window("2025-02-01T00:00", "", now=fixed_now, window_days=30)
        assert start == datetime(2025, 2, 1, tzinfo=timezone.utc)
        assert end == fixed_now + timedelta(days=30)


class TestValidation:
    def test_single_requires_game_type_and_variant(self) -> None:
        result = validate_single(None, RuleTemplate(house_edge="5"))
        assert not result.ok
        assert set(result.field_errors) == {"game", "game_type", "game_variant"}

    def test_single_valid(self) -> None:
        template = RuleTemplate(game_type="slot", game_variant="classic", house_edge="5", min_bet="1", max_bet="100")
        assert validate_single(REF, template).ok

    def test_bulk_requires_targets_type_edge_and_min_bet(self) -> None:
        result = validate_bulk([], RuleTemplate())
        assert set(result.field_errors) == {"games", "game_type", "house_edge", "min_bet"}

    def test_bulk_variant_is_optional(self) -> None:
        template = RuleTemplate(game_type="table", house_edge="2.5", min_bet="1")
        assert validate_bulk([REF], template).ok

    @pytest.mark.parametrize(("edge", "message"), [("-5", "negative"), ("100", "below 100%")])
    def test_house_edge_range(self, edge: str, message: str) -> None:
        template = RuleTemplate(game_type="slot", game_variant="classic", house_edge=edge)
        result = validate_single(REF, template)
        assert message in result.field_errors["house_edge"]

    def test_min_bet_must_not_exceed_max_bet(self) -> None:
        template = RuleTemplate(game_type="slot", house_edge="5", min_bet="200", max_bet="100")
        result = validate_bulk([REF], template)
        assert "max_bet" in result.field_errors

    def test_window_order_and_format(self) -> None:
        reversed_window = RuleTemplate(
            game_type="slot",
            house_edge="5",
            min_bet="1",
            effective_from="2025-06-01T00:00",
            effective_until="2025-01-01T00:00",
        )
        assert "effective_until" in validate_bulk([REF], reversed_window).field_errors

        garbage = RuleTemplate(game_type="slot", house_edge="5", min_bet="1", effective_from="soon")
        assert "effective_from" in validate_bulk([REF], garbage).field_errors

    def test_unknown_choice(self) -> None:
        result = validate_bulk([REF], RuleTemplate(game_type="poker", house_edge="5", min_bet="1"))
        assert result.field_errors["game_type"] == "Unknown game type 'poker'"

    def test_patch_only_checks_given_fields(self) -> None:
        assert validate_patch(RulePatch()).ok
        assert validate_patch(RulePatch(house_edge="12")).ok
        assert not validate_patch(RulePatch(game_variant="v9")).ok
