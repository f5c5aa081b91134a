from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from edgeconsole.domain.models import GameType, GameVariant, HouseEdgeRule
from edgeconsole.engine import MutationResult, RemovalPlan
from edgeconsole.query import RulePage, RuleStats


def _window(rule: HouseEdgeRule) -> str:
    start = rule.effective_from.strftime("%Y-%m-%d %H:%M") if rule.effective_from else "-"
    end = rule.effective_until.strftime("%Y-%m-%d %H:%M") if rule.effective_until else "-"
    return f"{start} → {end}"


def build_rules_table(rules: Sequence[HouseEdgeRule], title: str = "House Edge Rules") -> Table:
    """
    Build the rule list table. House edge is shown as a percentage.
    """
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Game", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Variant", style="blue")
    table.add_column("House Edge", justify="right", style="bold green")
    table.add_column("Bet Range", justify="right", style="yellow")
    table.add_column("Status")
    table.add_column("Effective", style="dim")

    for rule in rules:
        game = rule.game_name or rule.game_id
        if rule.game_name:
            game = f"{rule.game_name}\n[dim]{rule.game_id}[/dim]"
        status = "[green]Active[/green]" if rule.is_active else "[red]Inactive[/red]"
        table.add_row(
            rule.id,
            game,
            rule.game_type.label,
            rule.game_variant.label,
            rule.house_edge_percent,
            f"{rule.min_bet} - {rule.max_bet}",
            status,
            _window(rule),
        )
    return table


def print_page(page: RulePage, console: Optional[Console] = None) -> None:
    console = console or Console()
    if not page.items:
        console.print("[yellow]No house edge rules match the current filters.[/yellow]")
        return
    table = build_rules_table(page.items)
    table.caption = f"Page {page.page} of {page.total_pages} │ {page.total} rule(s)"
    console.print(table)


def print_stats(stats: RuleStats, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="House Edge Stats", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="bold")
    table.add_row("Total Rules", str(stats.total))
    table.add_row("Active", f"[green]{stats.active}[/green]")
    table.add_row("Inactive", f"[red]{stats.inactive}[/red]")
    table.add_row("Game Types", str(stats.unique_game_types))
    table.add_row("Game Variants", str(stats.unique_game_variants))
    console.print(table)


def print_result(result: MutationResult, console: Optional[Console] = None) -> None:
    console = console or Console()
    parts: List[str] = []
    if result.created:
        parts.append(f"created {len(result.created)}")
    if result.updated:
        parts.append(f"updated {len(result.updated)}")
    if result.removed_ids:
        parts.append(f"removed {len(result.removed_ids)}")
    summary = ", ".join(parts) or "no changes"
    console.print(
        f"[bold green]✓[/bold green] {result.operation}: {summary} "
        f"[dim]({result.duration_seconds:.3f}s)[/dim]"
    )
    if result.created and len(result.created) <= 20:
        console.print(build_rules_table(result.created, title="Created"))


def print_plan(plan: RemovalPlan, console: Optional[Console] = None) -> None:
    console = console or Console()
    style = "bold red" if plan.criteria.is_unrestricted or plan.removes_everything else "yellow"
    console.print(f"[{style}]{plan.describe()}[/{style}]")


def print_duplicates(
    duplicates: Dict[Tuple[str, GameType, GameVariant], List[str]],
    console: Optional[Console] = None,
) -> None:
    console = console or Console()
    if not duplicates:
        console.print("[green]No duplicate active rules.[/green]")
        return
    table = Table(title="Duplicate Active Rules", box=box.ROUNDED)
    table.add_column("Game", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Variant", style="blue")
    table.add_column("Count", justify="right", style="bold red")
    table.add_column("Rule IDs", style="dim")
    for (game_id, game_type, game_variant), ids in sorted(duplicates.items(), key=lambda item: item[0][0]):
        table.add_row(game_id, game_type.label, game_variant.label, str(len(ids)), "\n".join(ids))
    console.print(table)


__all__ = [
    "build_rules_table",
    "print_duplicates",
    "print_page",
    "print_plan",
    "print_result",
    "print_stats",
]
