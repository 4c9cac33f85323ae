"""Rich console output for battle results."""

import logging

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from arena.models import BattleResult, ProviderSlot, VerdictResult
from config.config_loader import AppConfig

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _display_name(config: AppConfig, provider: str) -> str:
    provider_cfg = config.providers.get(provider)
    return provider_cfg.display_name if provider_cfg else provider


def slot_label(slot: ProviderSlot) -> str:
    """Short status text for progress rows."""
    if slot.status == "fallback":
        code = slot.errored.code if slot.errored else "ERROR"
        return f"[yellow]fallback[/yellow] ({code})"
    if slot.status == "retrying":
        code = slot.errored.code if slot.errored else ""
        return f"[yellow]retrying[/yellow] {code}".rstrip()
    if slot.status == "complete":
        return f"[green]done[/green] {len(slot.content)} chars"
    if slot.status == "streaming":
        return f"streaming {len(slot.content)} chars"
    return "[dim]waiting[/dim]"


def print_pitches(result: BattleResult, config: AppConfig) -> None:
    """One panel per pitch, fallback pitches tagged."""
    console.print(Rule(f"[bold cyan]{result.context.topic_a} for {result.context.topic_b}[/bold cyan]"))
    for name in config.provider_names:
        slot = result.pitches[name]
        title = f"[bold]{_display_name(config, name)}[/bold] ({name})"
        subtitle = None
        border = "dim"
        if slot.degraded:
            subtitle = f"[yellow]fallback pitch: {slot.errored.code}[/yellow]"
            border = "yellow"
        console.print(Panel(Markdown(slot.content), title=title, subtitle=subtitle, border_style=border))


def print_verdict(verdict: VerdictResult, config: AppConfig) -> None:
    console.print(Rule("[bold green]Verdict[/bold green]"))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Provider")
    table.add_column("Score", justify="right")
    table.add_column("Notes")
    for name in config.provider_names:
        score = verdict.scores[name]
        marker = " [bold green]*[/bold green]" if name == verdict.winner else ""
        table.add_row(f"{_display_name(config, name)}{marker}", f"{score.score}/10", score.reasoning)
    console.print(table)

    if verdict.degraded:
        code = verdict.error.code if verdict.error else "ERROR"
        console.print(Text(f"Judge unavailable ({code}); showing a fallback verdict.", style="yellow"))
    console.print(Markdown(verdict.reasoning))


def print_result(result: BattleResult, config: AppConfig) -> None:
    print_pitches(result, config)
    print_verdict(result.verdict, config)
    console.print(
        Text(
            f"Winner: {_display_name(config, result.verdict.winner)} | "
            f"Duration: {result.duration_sec:.1f}s | "
            f"Round: {result.context.round_id[:8]}",
            style="dim",
        )
    )
