"""Quorum CLI — Typer + Rich terminal interface.

Commands: evaluate, discussions, personas, config.
"""

from __future__ import annotations

import asyncio
import logging
import re

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from quorum import __version__
from quorum.keys import load_keys_env, missing_keys
from quorum.providers.registry import (
    load_board_config,
    load_engine_config,
    load_models,
    load_slack_config,
)
from quorum.schemas.config import EngineConfig
from quorum.schemas.discussion import (
    ConsensusOutcome,
    Discussion,
    DiscussionStatus,
    Persona,
    Trigger,
    TriggerType,
)

console = Console()

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="quorum",
    help="Round-bounded consensus for AI persona discussions.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

discussions_app = typer.Typer(
    name="discussions",
    help="Inspect and resolve discussions.",
    no_args_is_help=True,
)
app.add_typer(discussions_app, name="discussions")

personas_app = typer.Typer(
    name="personas",
    help="Manage the persona roster.",
    no_args_is_help=True,
)
app.add_typer(personas_app, name="personas")

config_app = typer.Typer(
    name="config",
    help="Show engine configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


# ── App callback ─────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"quorum {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Quorum — drive persona discussions to a verdict."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose, markup=False)],
        force=True,
    )
    load_keys_env()


# ── Helpers ──────────────────────────────────────────────────────


def _load_config() -> EngineConfig:
    """Load engine config, exit on error."""
    try:
        return load_engine_config()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _status_style(status: str) -> str:
    return {
        "active": "bold cyan",
        "consensus": "bold green",
        "blocked": "bold yellow",
    }.get(status, "white")


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _discussion_row(d: Discussion) -> list:
    return [
        d.id[:12],
        d.trigger_type.value,
        d.trigger_ref,
        Text(d.status.value, style=_status_style(d.status.value)),
        d.consensus_result.value if d.consensus_result else "-",
        str(d.round),
        d.updated_at.strftime("%Y-%m-%d %H:%M"),
    ]


# ── quorum evaluate ──────────────────────────────────────────────


@app.command()
def evaluate(
    discussion_ids: list[str] = typer.Argument(..., help="Discussion IDs to evaluate"),
    context: str = typer.Option("", "--context", "-c", help="Extra trigger context"),
) -> None:
    """Run consensus evaluation for one or more discussions.

    Evaluations of the same id are serialized; different ids run
    concurrently.
    """
    from quorum.board.github import GitHubBoardActions
    from quorum.consensus.contributions import DeliberationCallbacks
    from quorum.consensus.evaluator import ConsensusEvaluator
    from quorum.consensus.locks import DiscussionLocks
    from quorum.persistence.database import close_db, init_db
    from quorum.persistence.discussions import SqliteDiscussionStore
    from quorum.persistence.personas import SqlitePersonaStore
    from quorum.providers.litellm_provider import LiteLLMResponder
    from quorum.transport.slack import SlackTransport

    config = _load_config()
    try:
        registry = load_models()
        board_config = load_board_config()
        slack_config = load_slack_config()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None

    async def _run() -> list[Discussion | None]:
        db = await init_db(config.db_path)
        transport = SlackTransport(slack_config)
        try:
            discussions = SqliteDiscussionStore(db)
            personas = SqlitePersonaStore(db)
            responder = LiteLLMResponder(registry, config)
            board = GitHubBoardActions(
                transport, discussions, personas, responder, board_config, config,
            )
            callbacks = DeliberationCallbacks(
                responder, transport, discussions, personas, config, board_config,
            )
            evaluator = ConsensusEvaluator(
                responder, transport, discussions, personas, board, config,
            )
            locks = DiscussionLocks()

            async def _one(discussion_id: str) -> Discussion | None:
                discussion = await discussions.get_by_id(discussion_id)
                if discussion is None:
                    return None
                trigger = Trigger(
                    type=discussion.trigger_type,
                    project_path=discussion.project_path,
                    ref=discussion.trigger_ref,
                    context=context,
                )
                await locks.run(
                    discussion_id,
                    lambda: evaluator.evaluate_consensus(discussion_id, trigger, callbacks),
                )
                return await discussions.get_by_id(discussion_id)

            return await asyncio.gather(*(_one(i) for i in discussion_ids))
        finally:
            await transport.close()
            await close_db(db)

    try:
        results = asyncio.run(_run())
    except Exception as e:
        console.print(f"[red]Evaluation failed:[/red] {e}")
        raise typer.Exit(1) from None

    table = Table(title="Evaluation Results")
    for column in ("ID", "Trigger", "Ref", "Status", "Result", "Round", "Updated"):
        table.add_column(column)
    missing = []
    for discussion_id, discussion in zip(discussion_ids, results):
        if discussion is None:
            missing.append(discussion_id)
            continue
        table.add_row(*_discussion_row(discussion))
    console.print(table)

    for discussion_id in missing:
        console.print(f"[yellow]Discussion not found:[/yellow] {discussion_id}")


# ── quorum discussions ───────────────────────────────────────────


@discussions_app.command("list")
def discussions_list(
    status: DiscussionStatus = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max discussions to show"),
) -> None:
    """Show recent discussions."""
    from quorum.persistence.database import close_db, init_db
    from quorum.persistence.discussions import SqliteDiscussionStore

    config = _load_config()

    async def _list() -> list[Discussion]:
        db = await init_db(config.db_path)
        try:
            return await SqliteDiscussionStore(db).list_discussions(status=status, limit=limit)
        finally:
            await close_db(db)

    rows = asyncio.run(_list())
    if not rows:
        console.print("[dim]No discussions found.[/dim]")
        return

    table = Table(title=f"Discussions ({len(rows)} shown)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Trigger")
    table.add_column("Ref", max_width=40)
    table.add_column("Status")
    table.add_column("Result", style="dim")
    table.add_column("Round", justify="right")
    table.add_column("Updated", style="dim")
    for d in rows:
        table.add_row(*_discussion_row(d))
    console.print(table)


@discussions_app.command("open")
def discussions_open(
    trigger_type: TriggerType = typer.Argument(..., help="Trigger type"),
    ref: str = typer.Argument(..., help="Trigger ref, e.g. 42 or owner/repo#7"),
    channel: str = typer.Option(..., "--channel", help="Channel holding the thread"),
    thread: str = typer.Option(..., "--thread", help="Thread id (Slack ts)"),
    project: str = typer.Option(".", "--project", "-p", help="Project path"),
) -> None:
    """Register an existing thread as a new discussion."""
    from quorum.persistence.database import close_db, init_db
    from quorum.persistence.discussions import SqliteDiscussionStore

    config = _load_config()
    trigger = Trigger(type=trigger_type, project_path=project, ref=ref)

    async def _open() -> tuple[Discussion, bool]:
        db = await init_db(config.db_path)
        try:
            store = SqliteDiscussionStore(db)
            existing = await store.get_latest_by_trigger(project, trigger_type, ref)
            if existing is not None and existing.is_active:
                return existing, False
            return await store.create(trigger, channel, thread), True
        finally:
            await close_db(db)

    d, created = asyncio.run(_open())
    if not created:
        console.print(f"[yellow]Already active:[/yellow] {d.id} for {trigger_type.value} {ref}")
        raise typer.Exit(1) from None
    console.print(f"[green]Opened[/green] {d.id} for {trigger_type.value} {ref}")


@discussions_app.command("show")
def discussions_show(
    discussion_id: str = typer.Argument(..., help="Discussion ID"),
) -> None:
    """Show full discussion details."""
    from quorum.persistence.database import close_db, init_db
    from quorum.persistence.discussions import SqliteDiscussionStore

    config = _load_config()

    async def _get() -> Discussion | None:
        db = await init_db(config.db_path)
        try:
            return await SqliteDiscussionStore(db).get_by_id(discussion_id)
        finally:
            await close_db(db)

    d = asyncio.run(_get())
    if d is None:
        console.print(f"[red]Discussion not found:[/red] {discussion_id}")
        raise typer.Exit(1) from None

    meta = Table(title=f"Discussion: {d.id}", show_header=False, show_lines=True)
    meta.add_column("Field", style="bold")
    meta.add_column("Value")
    meta.add_row("Project", d.project_path)
    meta.add_row("Trigger", f"{d.trigger_type.value} {d.trigger_ref}")
    meta.add_row("Thread", f"{d.channel_id} / {d.thread_ts}")
    meta.add_row("Status", Text(d.status.value, style=_status_style(d.status.value)))
    meta.add_row("Result", d.consensus_result.value if d.consensus_result else "-")
    meta.add_row("Round", str(d.round))
    meta.add_row("Participants", ", ".join(d.participants) or "-")
    meta.add_row("Created", d.created_at.isoformat())
    meta.add_row("Updated", d.updated_at.isoformat())
    console.print(meta)


@discussions_app.command("resolve")
def discussions_resolve(
    discussion_id: str = typer.Argument(..., help="Discussion ID"),
    outcome: ConsensusOutcome = typer.Option(
        ConsensusOutcome.HUMAN_NEEDED, "--outcome", "-o", help="Result to record",
    ),
) -> None:
    """Resolve an active discussion by hand."""
    from quorum.persistence.database import close_db, init_db
    from quorum.persistence.discussions import SqliteDiscussionStore

    config = _load_config()
    status = (
        DiscussionStatus.BLOCKED
        if outcome == ConsensusOutcome.HUMAN_NEEDED
        else DiscussionStatus.CONSENSUS
    )

    async def _resolve() -> Discussion | None:
        db = await init_db(config.db_path)
        try:
            store = SqliteDiscussionStore(db)
            await store.update_status(discussion_id, status, outcome)
            return await store.get_by_id(discussion_id)
        finally:
            await close_db(db)

    d = asyncio.run(_resolve())
    if d is None:
        console.print(f"[red]Discussion not found:[/red] {discussion_id}")
        raise typer.Exit(1) from None
    if d.status != status or d.consensus_result != outcome:
        console.print(
            f"[yellow]Already resolved:[/yellow] {d.id} is "
            f"{d.status.value}/{d.consensus_result.value if d.consensus_result else '-'}"
        )
        raise typer.Exit(1) from None
    console.print(f"[green]Resolved[/green] {d.id}: {status.value}/{outcome.value}")


# ── quorum personas ──────────────────────────────────────────────


@personas_app.command("list")
def personas_list(
    all_: bool = typer.Option(False, "--all", "-a", help="Include inactive personas"),
) -> None:
    """Show the persona roster."""
    from quorum.personas import find_executor, find_lead, persona_domain
    from quorum.persistence.database import close_db, init_db
    from quorum.persistence.personas import SqlitePersonaStore

    config = _load_config()

    async def _list() -> list[Persona]:
        db = await init_db(config.db_path)
        try:
            return await SqlitePersonaStore(db).list_personas(include_inactive=all_)
        finally:
            await close_db(db)

    personas = asyncio.run(_list())
    if not personas:
        console.print("[dim]No personas found.[/dim]")
        return

    lead = find_lead(personas, config)
    executor = find_executor(personas, config)

    table = Table(title=f"Personas ({len(personas)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Role")
    table.add_column("Domain", style="dim")
    table.add_column("Model", style="dim")
    table.add_column("Active")
    table.add_column("Seat")
    for p in personas:
        seat = ""
        if lead is not None and p.id == lead.id:
            seat = "[green]lead[/green]"
        elif executor is not None and p.id == executor.id:
            seat = "[blue]executor[/blue]"
        table.add_row(
            p.id,
            p.name,
            p.role,
            persona_domain(p),
            p.model or config.default_model or "-",
            "[green]yes[/green]" if p.is_active else "[red]no[/red]",
            seat,
        )
    console.print(table)


@personas_app.command("add")
def personas_add(
    name: str = typer.Argument(..., help="Display name"),
    role: str = typer.Argument(..., help="Role label, e.g. 'Tech Lead'"),
    persona_id: str = typer.Option(None, "--id", help="Persona ID (defaults to the slugified name)"),
    model: str = typer.Option("", "--model", "-m", help="Model registry key"),
) -> None:
    """Add or update a persona."""
    from quorum.persistence.database import close_db, init_db
    from quorum.persistence.personas import SqlitePersonaStore

    config = _load_config()
    if model:
        try:
            registry = load_models()
        except (FileNotFoundError, ValueError) as e:
            console.print(f"[red]Error loading models:[/red] {e}")
            raise typer.Exit(1) from None
        if model not in registry:
            console.print(f"[red]Unknown model:[/red] {model}")
            raise typer.Exit(1) from None

    persona = Persona(id=persona_id or _slugify(name), name=name, role=role, model=model)
    if not persona.id:
        console.print("[red]Persona ID cannot be empty[/red]")
        raise typer.Exit(1) from None

    async def _add() -> None:
        db = await init_db(config.db_path)
        try:
            await SqlitePersonaStore(db).upsert(persona)
        finally:
            await close_db(db)

    asyncio.run(_add())
    console.print(f"[green]Saved persona[/green] {persona.id} ({persona.name}, {persona.role})")


@personas_app.command("deactivate")
def personas_deactivate(
    persona_id: str = typer.Argument(..., help="Persona ID"),
) -> None:
    """Stop a persona from taking part in discussions."""
    from quorum.persistence.database import close_db, init_db
    from quorum.persistence.personas import SqlitePersonaStore

    config = _load_config()

    async def _deactivate() -> bool:
        db = await init_db(config.db_path)
        try:
            return await SqlitePersonaStore(db).set_active(persona_id, False)
        finally:
            await close_db(db)

    if not asyncio.run(_deactivate()):
        console.print(f"[red]Persona not found:[/red] {persona_id}")
        raise typer.Exit(1) from None
    console.print(f"[green]Deactivated[/green] {persona_id}")


# ── quorum config ────────────────────────────────────────────────


@config_app.command("show")
def config_show() -> None:
    """Show current engine configuration."""
    config = _load_config()

    table = Table(title="Engine Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Max Rounds", str(config.max_rounds))
    table.add_row("Thread Reply Budget", str(config.max_agent_thread_replies))
    table.add_row("Replies For Another Round", str(config.min_replies_for_another_round))
    table.add_row("Contributions Per Round", str(config.max_contributions_per_round))
    table.add_row("Human Delay", f"{config.human_delay_min:g}-{config.human_delay_max:g}s")
    table.add_row("History Limit", str(config.history_limit))
    table.add_row("Lead Role Tokens", ", ".join(config.lead_role_tokens))
    table.add_row("Lead Role Phrases", ", ".join(config.lead_role_phrases))
    table.add_row("Executor Markers", ", ".join(config.executor_role_markers))
    table.add_row("Default Model", config.default_model or "-")
    table.add_row("AI Timeout", f"{config.ai_timeout}s")
    table.add_row("Database", config.db_path)
    if config.lead_fallback_name:
        table.add_row("Lead Fallback", config.lead_fallback_name)
    if config.executor_name:
        table.add_row("Executor Name", config.executor_name)

    try:
        slack_config = load_slack_config()
        registry = load_models()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None
    key_vars = [slack_config.token_env] + sorted({m.api_key_env for m in registry.values()})
    missing = missing_keys(key_vars)
    table.add_row(
        "Missing Keys",
        Text(", ".join(missing), style="yellow") if missing else Text("none", style="green"),
    )

    console.print(table)
