from __future__ import annotations

import sys
from contextlib import contextmanager
from typing import Generator, List, Optional, Tuple

import typer

from edgeconsole.catalog import GameCatalogProvider, HttpGameCatalog, InMemoryGameCatalog
from edgeconsole.config import Settings, get_settings
from edgeconsole.domain.criteria import RuleCriteria
from edgeconsole.domain.forms import RulePatch, RuleTemplate
from edgeconsole.engine import BulkMutationEngine, RemovalPlan
from edgeconsole.errors import EdgeConsoleError, TemplateValidationError
from edgeconsole.query import PageRequest, RuleFilters, SortSpec, compute_stats, find_duplicate_active_rules, query_rules
from edgeconsole.reporter import (
    print_duplicates,
    print_page,
    print_plan,
    print_result,
    print_stats,
)
from edgeconsole.store import HouseEdgeStore, open_store
from edgeconsole.utils.logging import configure_logging

app = typer.Typer(help="House edge management console.")


@app.callback()
def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _catalog_for(store: HouseEdgeStore, settings: Settings) -> GameCatalogProvider:
    if store.mode == "remote" and settings.store_backend == "http":
        return HttpGameCatalog()
    if settings.snapshot_path:
        return InMemoryGameCatalog.from_snapshot(settings.snapshot_path)
    return InMemoryGameCatalog()


@contextmanager
def _session() -> Generator[Tuple[HouseEdgeStore, BulkMutationEngine], None, None]:
    """
    Open the store and engine for one command and turn console errors into a
    red message plus exit code 1.
    """
    settings = get_settings()
    store: Optional[HouseEdgeStore] = None
    try:
        store = open_store(settings)
        engine = BulkMutationEngine(store, _catalog_for(store, settings), settings=settings)
        yield store, engine
    except TemplateValidationError as exc:
        typer.secho(exc.message, fg=typer.colors.RED, err=True)
        for name, error in exc.field_errors.items():
            typer.secho(f"  {name}: {error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    except EdgeConsoleError as exc:
        typer.secho(f"[{exc.code}] {exc.message}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    finally:
        if store is not None:
            store.close()


def _template(
    game_type: str,
    game_variant: str,
    house_edge: str,
    min_bet: str,
    max_bet: str,
    inactive: bool,
    effective_from: str,
    effective_until: str,
) -> RuleTemplate:
    return RuleTemplate(
        game_type=game_type,
        game_variant=game_variant,
        house_edge=house_edge,
        min_bet=min_bet,
        max_bet=max_bet,
        is_active=not inactive,
        effective_from=effective_from,
        effective_until=effective_until,
    )


GameTypeOpt = typer.Option("", "--type", "-t", help="Game type (slot, table, live, ...).")
VariantOpt = typer.Option("", "--variant", "-v", help="Game variant (classic, v1, real, ...).")
EdgeOpt = typer.Option("", "--edge", "-e", help="House edge as a percentage, e.g. 5 or 2.5.")
MinBetOpt = typer.Option("", "--min-bet", help="Minimum bet.")
MaxBetOpt = typer.Option("", "--max-bet", help="Maximum bet (defaults to the configured value for bulk forms).")
InactiveOpt = typer.Option(False, "--inactive", help="Create the rule(s) inactive.")
FromOpt = typer.Option("", "--from", help="Effective from (YYYY-MM-DDTHH:MM, UTC). Defaults to now.")
UntilOpt = typer.Option("", "--until", help="Effective until (YYYY-MM-DDTHH:MM, UTC). Defaults to a year from now.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    if settings.store_backend == "postgres":
        target = f"{settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    elif settings.store_backend == "http":
        target = settings.api_base_url
    else:
        target = settings.snapshot_path or "(no snapshot)"
    typer.echo(
        f"backend={settings.store_backend} target={target} | "
        f"batch={settings.bulk_batch_size} per_page={settings.default_per_page} "
        f"window_days={settings.default_window_days}"
    )


@app.command("list")
def list_rules(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Substring of game name or id."),
    game_id: Optional[str] = typer.Option(None, "--game-id", help="Exact game id."),
    game_type: Optional[str] = typer.Option(None, "--type", "-t", help="Exact game type."),
    game_variant: Optional[str] = typer.Option(None, "--variant", "-v", help="Exact game variant."),
    active: Optional[bool] = typer.Option(None, "--active/--inactive", help="Filter by status."),
    sort_by: str = typer.Option("created_at", "--sort-by", help="game_type, game_variant, house_edge, created_at, updated_at."),
    sort_order: str = typer.Option("desc", "--sort-order", help="asc or desc."),
    page: int = typer.Option(1, "--page", "-p"),
    per_page: Optional[int] = typer.Option(None, "--per-page", min=1),
) -> None:
    """
    List rules with search, filters, sorting and pagination.
    """
    settings = get_settings()
    with _session() as (store, _):
        try:
            filters = RuleFilters(
                search=search,
                game_id=game_id,
                game_type=game_type or None,
                game_variant=game_variant or None,
                is_active=active,
            )
            sort = SortSpec(sort_by=sort_by, sort_order=sort_order)
        except ValueError as exc:
            typer.secho(f"Invalid list options: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=2)
        result = query_rules(
            store.all(), filters, sort, PageRequest(page=page, per_page=per_page or settings.default_per_page)
        )
        print_page(result)


@app.command()
def stats() -> None:
    """
    Show aggregate counts over all rules.
    """
    with _session() as (store, _):
        print_stats(compute_stats(store.all()))


@app.command()
def create(
    game: str = typer.Option(..., "--game", "-g", help="Game internal id or game code."),
    game_type: str = GameTypeOpt,
    game_variant: str = VariantOpt,
    house_edge: str = EdgeOpt,
    min_bet: str = MinBetOpt,
    max_bet: str = MaxBetOpt,
    inactive: bool = InactiveOpt,
    effective_from: str = FromOpt,
    effective_until: str = UntilOpt,
) -> None:
    """
    Create one rule for one game.
    """
    template = _template(game_type, game_variant, house_edge, min_bet, max_bet, inactive, effective_from, effective_until)
    with _session() as (_, engine):
        ref = engine.catalog.resolve([game])[0]
        print_result(engine.create_single(ref, template))


@app.command("bulk-create")
def bulk_create(
    games: List[str] = typer.Option(..., "--game", "-g", help="Repeat for each target game."),
    game_type: str = GameTypeOpt,
    game_variant: str = VariantOpt,
    house_edge: str = EdgeOpt,
    min_bet: str = MinBetOpt,
    max_bet: str = MaxBetOpt,
    inactive: bool = InactiveOpt,
    effective_from: str = FromOpt,
    effective_until: str = UntilOpt,
) -> None:
    """
    Create one rule per selected game from a shared template.
    """
    template = _template(game_type, game_variant, house_edge, min_bet, max_bet, inactive, effective_from, effective_until)
    with _session() as (_, engine):
        refs = engine.catalog.resolve(games)
        print_result(engine.create_bulk(refs, template))


@app.command("apply-all")
def apply_all(
    game_type: str = GameTypeOpt,
    game_variant: str = VariantOpt,
    house_edge: str = EdgeOpt,
    min_bet: str = MinBetOpt,
    max_bet: str = MaxBetOpt,
    inactive: bool = InactiveOpt,
    effective_from: str = FromOpt,
    effective_until: str = UntilOpt,
) -> None:
    """
    Create one rule for every game in the catalog. Existing rules are kept.
    """
    template = _template(game_type, game_variant, house_edge, min_bet, max_bet, inactive, effective_from, effective_until)
    with _session() as (_, engine):
        print_result(engine.apply_to_all_games(template))


@app.command("remove-all")
def remove_all(
    game_type: str = typer.Option("", "--type", "-t", help="Only rules of this type (empty: any)."),
    game_variant: str = typer.Option("", "--variant", "-v", help="Only rules of this variant (empty: any)."),
    expect_count: Optional[int] = typer.Option(
        None,
        "--expect-count",
        help="Confirm without prompting, but only if exactly this many rules match.",
    ),
) -> None:
    """
    Delete every rule matching the criteria. With no criteria this deletes all rules.
    """
    try:
        criteria = RuleCriteria.from_form(game_type, game_variant)
    except ValueError as exc:
        typer.secho(f"Invalid criteria: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    def confirm(plan: RemovalPlan) -> bool:
        print_plan(plan)
        if expect_count is not None:
            if plan.count != expect_count:
                typer.secho(
                    f"Expected {expect_count} matching rule(s) but found {plan.count}.",
                    fg=typer.colors.RED,
                    err=True,
                )
                return False
            return True
        return typer.confirm(f"Delete {plan.count} rule(s)?", default=False)

    with _session() as (_, engine):
        print_result(engine.remove_all_matching(criteria, confirm))


@app.command()
def edit(
    rule_id: str = typer.Argument(..., help="Rule id."),
    game_type: Optional[str] = typer.Option(None, "--type", "-t"),
    game_variant: Optional[str] = typer.Option(None, "--variant", "-v"),
    house_edge: Optional[str] = typer.Option(None, "--edge", "-e", help="House edge as a percentage."),
    min_bet: Optional[str] = typer.Option(None, "--min-bet"),
    max_bet: Optional[str] = typer.Option(None, "--max-bet"),
    active: Optional[bool] = typer.Option(None, "--active/--inactive"),
    effective_from: Optional[str] = typer.Option(None, "--from"),
    effective_until: Optional[str] = typer.Option(None, "--until"),
) -> None:
    """
    Edit one rule. Only the given fields change.
    """
    patch = RulePatch(
        game_type=game_type,
        game_variant=game_variant,
        house_edge=house_edge,
        min_bet=min_bet,
        max_bet=max_bet,
        is_active=active,
        effective_from=effective_from,
        effective_until=effective_until,
    )
    with _session() as (_, engine):
        print_result(engine.edit_rule(rule_id, patch))


@app.command()
def toggle(rule_id: str = typer.Argument(..., help="Rule id.")) -> None:
    """
    Flip a rule between active and inactive.
    """
    with _session() as (_, engine):
        print_result(engine.toggle_status(rule_id))


@app.command()
def delete(rule_ids: List[str] = typer.Argument(..., help="One or more rule ids.")) -> None:
    """
    Delete rules by id.
    """
    with _session() as (_, engine):
        print_result(engine.delete_rules(rule_ids))


@app.command()
def duplicates() -> None:
    """
    Report active rules that share game, type and variant.
    """
    with _session() as (store, _):
        print_duplicates(find_duplicate_active_rules(store.all()))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
