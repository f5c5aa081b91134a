"""
Demo data generator for the house-edge console.

Emits a deterministic game catalog and a set of seed rules as one JSON snapshot,
the format `MemoryRuleStore` and `InMemoryGameCatalog.from_snapshot` read. With
`--load`, the rules are also inserted into Postgres through the regular backend.
"""

from __future__ import annotations

import sys
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path

import typer

from edgeconsole.backends import PostgresRuleStore
from edgeconsole.backends.memory import write_snapshot
from edgeconsole.domain.models import CatalogGame, GameType, GameVariant, HouseEdgeRule

app = typer.Typer(help="Generate a demo catalog and house-edge rules snapshot.")

TYPES = [GameType.SLOT, GameType.TABLE, GameType.LIVE]
VARIANTS = [GameVariant.CLASSIC, GameVariant.V1, GameVariant.REAL]
EDGES = ["0.0200", "0.0250", "0.0300"]
PROVIDERS = ["Pragmatic Play", "Evolution", "NetEnt", "Play'n GO"]


def build_games(count: int) -> list[CatalogGame]:
    return [
        CatalogGame(
            internal_id=f"{i + 1}",
            game_code=f"game_{i + 1:04d}",
            name=f"Demo Game {i + 1}",
            provider=PROVIDERS[i % len(PROVIDERS)],
        )
        for i in range(count)
    ]


def build_rules(games: list[CatalogGame], count: int, now: datetime, window_days: int = 365) -> list[HouseEdgeRule]:
    rules: list[HouseEdgeRule] = []
    for i in range(count):
        game = games[i % len(games)]
        created = now - timedelta(hours=i)
        rules.append(
            HouseEdgeRule(
                id=f"he_{i + 1:05d}",
                game_id=game.game_code,
                game_name=game.name,
                game_type=TYPES[i % len(TYPES)],
                game_variant=VARIANTS[i % len(VARIANTS)],
                house_edge=EDGES[i % len(EDGES)],
                min_bet="0.10",
                max_bet="500" if i % 2 == 0 else "1000",
                is_active=i % 5 != 2,
                effective_from=created,
                effective_until=created + timedelta(days=window_days),
                created_at=created,
                updated_at=created,
            )
        )
    return rules


@app.command()
def main(
    games: int = typer.Option(
        12,
        "--games",
        "-g",
        help="Number of catalog games to generate.",
    ),
    rules: int = typer.Option(
        25,
        "--rules",
        "-r",
        help="Number of seed rules (assigned to games round-robin).",
    ),
    output: Path = typer.Option(
        Path("data/house_edges.json"),
        "--output",
        "-o",
        help="Snapshot path to write.",
    ),
    load: bool = typer.Option(
        False,
        "--load",
        help="Also insert the seed rules into Postgres.",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
) -> None:
    """
    Generate the demo snapshot and optionally load the rules into Postgres.
    """
    if games < 1:
        typer.echo("At least one game is required.", err=True)
        raise typer.Exit(code=2)

    start = time.perf_counter()
    catalog = build_games(games)
    seed_rules = build_rules(catalog, rules, datetime.now(UTC).replace(microsecond=0))
    write_snapshot(
        output,
        {
            "games": [game.model_dump(mode="json") for game in catalog],
            "house_edges": [rule.to_wire() for rule in seed_rules],
        },
    )
    typer.echo(
        f"Wrote {len(catalog)} games and {len(seed_rules)} rules -> {output} "
        f"in {time.perf_counter() - start:.2f}s"
    )

    if not load:
        return

    store = PostgresRuleStore(dsn_override=dsn)
    try:
        store.bulk_create(seed_rules)
    finally:
        store.close()
    typer.echo(f"Loaded {len(seed_rules)} rules into Postgres.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
