"""
CLI interface for Usage Insights.

Builds usage reports from exported event files.
"""

import json
import logging
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from usage_insights.config.loader import load_report_config
from usage_insights.core.report import UsageReport, build_report, report_to_dict
from usage_insights.core.streaks import summarize_completions_by_user
from usage_insights.storage.loader import (
    load_completion_events,
    load_playback_events,
    load_tutor_events,
)

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """Usage Insights CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S"
    )
    if ctx.invoked_subcommand is None:
        console.print("Usage Insights - Use --help to see available commands")


@app.command()
def report(
    playback: Optional[str] = typer.Option(
        None,
        "--playback",
        "-p",
        help="JSON export of playback events"
    ),
    tutor: Optional[str] = typer.Option(
        None,
        "--tutor",
        "-t",
        help="JSON export of tutor events"
    ),
    completions: Optional[str] = typer.Option(
        None,
        "--completions",
        "-c",
        help="JSON export of finished-article events"
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        help="YAML report configuration"
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the full report as JSON"
    ),
    skip_invalid: bool = typer.Option(
        False,
        "--skip-invalid",
        help="Drop malformed rows instead of failing"
    )
):
    """
    Build a usage report from exported events.

    Any export may be omitted; its section is then computed over no events.
    """
    try:
        report_config = load_report_config(config)
        result = build_report(
            playback_events=load_playback_events(playback, skip_invalid) if playback else [],
            tutor_events=load_tutor_events(tutor, skip_invalid) if tutor else [],
            completion_events=(
                load_completion_events(completions, skip_invalid) if completions else []
            ),
            config=report_config
        )
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if as_json:
        typer.echo(json.dumps(report_to_dict(result), ensure_ascii=False, indent=2))
    else:
        _display_report(result)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def streak(
    completions: str = typer.Option(
        ...,
        "--completions",
        "-c",
        help="JSON export of finished-article events"
    ),
    user: Optional[str] = typer.Option(
        None,
        "--user",
        "-u",
        help="Only show this user"
    ),
    skip_invalid: bool = typer.Option(
        False,
        "--skip-invalid",
        help="Drop malformed rows instead of failing"
    )
):
    """Show reading streaks per user."""
    try:
        events = load_completion_events(completions, skip_invalid)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if user is not None:
        events = [e for e in events if e.user_id == user]

    summaries = summarize_completions_by_user(events)
    if not summaries:
        console.print("[bold yellow]No finished articles found[/]")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title="Reading Streaks")
    table.add_column("User")
    table.add_column("Finished", justify="right")
    table.add_column("Today", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("Longest", justify="right")
    for user_id, summary in summaries.items():
        table.add_row(
            user_id,
            str(summary.total_finished),
            str(summary.finished_today),
            str(summary.streaks.current),
            str(summary.streaks.longest)
        )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


def _format_currency(amount: float) -> str:
    """Format currency with four decimals; TTS costs are fractions of a cent."""
    return f"${amount:,.4f}"


def _display_report(result: UsageReport):
    """Display report sections as tables."""
    playback = result.playback
    tutor = result.tutor

    console.print("\n[bold]Text-to-Speech Usage[/bold]")
    console.print("-" * 40)
    console.print(f"Total plays: {playback.total_plays:,}")
    console.print(f"Total characters: {playback.total_characters:,}")
    console.print(f"Total cost: {_format_currency(playback.total_cost)}")
    console.print(f"Effective cost after free quota: {_format_currency(playback.effective_total_cost)}")

    tiers = Table(title="Voice Tiers")
    tiers.add_column("Tier")
    tiers.add_column("Plays", justify="right")
    tiers.add_column("Share", justify="right")
    tiers.add_column("Quota used", justify="right")
    tiers.add_column("Overage", justify="right")
    for tier, share in playback.voice_type_distribution.items():
        tiers.add_row(
            tier.value,
            f"{share.count:,}",
            f"{share.percentage:.1f}%",
            f"{playback.quota_usage[tier]:,}",
            _format_currency(playback.overage_cost[tier])
        )
    console.print(tiers)

    articles = Table(title="Top Articles")
    articles.add_column("Article")
    articles.add_column("Plays", justify="right")
    articles.add_column("Sentences", justify="right")
    articles.add_column("Cost", justify="right")
    for article in playback.top_articles:
        articles.add_row(
            article.article_id,
            f"{article.plays:,}",
            str(article.unique_sentences),
            _format_currency(article.cost)
        )
    console.print(articles)

    console.print("\n[bold]AI Tutor Usage[/bold]")
    console.print("-" * 40)
    console.print(f"Total tokens: {tutor.total_tokens:,}")
    console.print(f"Total cost: {_format_currency(tutor.total_cost)}")
    console.print(f"Follow-up rate: {tutor.follow_up_rate:.1f}%")
    console.print(f"Average response time: {tutor.avg_response_time_ms / 1000:.1f}s")

    if result.reading:
        console.print("\n[bold]Reading Streaks[/bold]")
        console.print("-" * 40)
        for user_id, summary in result.reading.items():
            console.print(
                f"{user_id}: current {summary.streaks.current}, "
                f"longest {summary.streaks.longest}"
            )
    print()


if __name__ == "__main__":
    app()
