"""Click CLI: config loading, health check, one battle round, output."""

import asyncio
import logging
import random
import sys

import click
import httpx
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from arena.battle import BattleOrchestrator
from arena.errors import CancellationError
from arena.healthcheck import run_health_check
from arena.models import BattleResult, ProviderSlot, RequestContext
from arena.output import print_result, slot_label
from config.config_loader import AppConfig, load_config

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _pick_topics(
    config: AppConfig,
    topic_a: str | None,
    topic_b: str | None,
    spin: bool,
    rng: random.Random | None = None,
) -> tuple[str, str]:
    """Explicit topics win; --spin fills in whatever is missing from the configured lists."""
    rng = rng or random.Random()
    if spin:
        if not topic_a:
            if not config.topics.concepts:
                raise click.UsageError("No concepts configured to spin from.")
            topic_a = rng.choice(config.topics.concepts)
        if not topic_b:
            if not config.topics.user_groups:
                raise click.UsageError("No user groups configured to spin from.")
            topic_b = rng.choice(config.topics.user_groups)
    if not topic_a or not topic_b or not topic_a.strip() or not topic_b.strip():
        raise click.UsageError("Provide TOPIC_A and TOPIC_B, or use --spin.")
    return topic_a.strip(), topic_b.strip()


async def _check_health(client: httpx.AsyncClient, config: AppConfig) -> None:
    """Print the backend's provider status and ask before continuing when degraded."""
    console.print("\n[bold]Checking pitch service...[/bold]")
    report = await run_health_check(client, config)

    if not report.reachable:
        console.print(f"  [red]FAIL[/red] {config.endpoints.base_url}: {report.error.splitlines()[0][:120]}")
    else:
        for name, (ok, err) in report.provider_results(config.provider_names).items():
            if ok:
                console.print(f"  [green]OK  [/green] {name}")
            else:
                console.print(f"  [red]FAIL[/red] {name}: {err}")

    if report.healthy:
        console.print()
        return

    console.print("\n[yellow]Failing providers will be replaced by fallback pitches.[/yellow]")
    if not click.confirm("Continue anyway?", default=True):
        sys.exit(0)
    console.print()


async def _run_battle(
    config: AppConfig,
    topic_a: str,
    topic_b: str,
    skip_health_check: bool,
) -> BattleResult:
    timeout = httpx.Timeout(config.timeouts.pitch_sec, connect=config.timeouts.connect_sec)
    async with httpx.AsyncClient(timeout=timeout) as client:
        if not skip_health_check:
            await _check_health(client, config)

        console.print(f"[bold cyan]Pitch Arena[/bold cyan]: [italic]{topic_a}[/italic] for [italic]{topic_b}[/italic]\n")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            tasks = {
                name: progress.add_task(f"{provider.display_name}: waiting", total=None)
                for name, provider in config.providers.items()
            }
            judge_task = progress.add_task("Judge: waiting for pitches", total=None)

            def on_slot_update(slot: ProviderSlot) -> None:
                display = config.providers[slot.provider].display_name
                progress.update(tasks[slot.provider], description=f"{display}: {slot_label(slot)}")

            def on_pitches_complete(pitches: dict[str, str]) -> None:
                progress.update(judge_task, description="Judge: scoring")

            orchestrator = BattleOrchestrator(
                config,
                client,
                on_slot_update=on_slot_update,
                on_pitches_complete=on_pitches_complete,
            )
            async with orchestrator:
                return await orchestrator.run_round(RequestContext(topic_a=topic_a, topic_b=topic_b))


@click.command()
@click.argument("topic_a", required=False)
@click.argument("topic_b", required=False)
@click.option("--spin", is_flag=True, default=False, help="Pick random topics from the configured lists")
@click.option("--base-url", default=None, help="Pitch service base URL (default: from config or ARENA_BASE_URL)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the pitch service check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    topic_a: str | None,
    topic_b: str | None,
    spin: bool,
    base_url: str | None,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """Pitch Arena -- three models pitch a product, a judge picks the winner.

    \b
    Examples:
      pitch-arena "meal kit" "retirees"
      pitch-arena --spin
      pitch-arena "drone delivery" --spin
      pitch-arena "tool rental" "gamers" --base-url http://localhost:3000
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if base_url:
        config.endpoints.base_url = base_url.rstrip("/")

    topic_a, topic_b = _pick_topics(config, topic_a, topic_b, spin)

    try:
        result = asyncio.run(_run_battle(config, topic_a, topic_b, skip_health_check))
    except CancellationError:
        console.print("[yellow]Round cancelled.[/yellow]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)

    print_result(result, config)


if __name__ == "__main__":
    main()
