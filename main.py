from __future__ import annotations

from dataclasses import dataclass

import click
from rich.console import Console
from rich.table import Table

from models.reply import OutcomeStatus, ScanReport
from services.auth_service import CredentialStore
from services.auto_responder import AutoResponder
from services.gmail_service import GmailService
from services.reply_decision import ReplyDecisionEngine
from utils.config import AppConfig, load_config
from utils.exceptions import ConfigurationError
from utils.logger import configure_logging

STATUS_STYLES = {
    OutcomeStatus.REPLIED: "green",
    OutcomeStatus.SKIPPED: "yellow",
    OutcomeStatus.FAILED: "red",
}


@dataclass(slots=True)
class AppContext:
    config: AppConfig
    credential_store: CredentialStore
    console: Console
    _responder: AutoResponder | None = None

    @property
    def responder(self) -> AutoResponder:
        if self._responder is None:
            self._responder = build_responder(self.config, self.credential_store)
        return self._responder


def build_responder(config: AppConfig, credential_store: CredentialStore) -> AutoResponder:
    credentials = credential_store.authorize()
    gmail_service = GmailService(config, credentials)
    return AutoResponder(config, gmail_service, ReplyDecisionEngine(), credential_store=credential_store)


def build_context(env_file: str) -> AppContext:
    config = load_config(env_file)
    configure_logging(config.log_dir, config.log_level)
    return AppContext(config=config, credential_store=CredentialStore(config), console=Console())


@click.group(invoke_without_command=True)
@click.option("--env-file", default=".env", show_default=True, help="Path to the .env file")
@click.pass_context
def cli(ctx: click.Context, env_file: str) -> None:
    """Auto-reply to the first message of new Gmail threads."""

    try:
        ctx.obj = build_context(env_file)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command("run")
@click.pass_obj
def run(app: AppContext) -> None:
    """Poll the mailbox on a fixed interval until interrupted."""

    responder = _responder_or_exit(app)
    app.console.print(
        f"Polling every {app.config.poll_interval_seconds} second(s). Press Ctrl+C to stop."
    )
    responder.run_forever()


@cli.command("scan")
@click.pass_obj
def scan_once(app: AppContext) -> None:
    """Run a single scan and print what happened to each message."""

    report = _responder_or_exit(app).scan()
    if report is None:
        return
    if report.error:
        app.console.print(f"[bold red]Scan failed:[/bold red] {report.error}")
        return
    if not report.outcomes:
        app.console.print("[bold green]No new emails.[/bold green]")
        return
    app.console.print(_build_report_table(report))


@cli.command("authorize")
@click.option("--force", is_flag=True, help="Run the browser flow even if a token is cached")
@click.pass_obj
def authorize(app: AppContext, force: bool) -> None:
    """Authorize Gmail access and cache the token."""

    try:
        app.credential_store.authorize(force=force)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    app.console.print(f"Token cached at {app.credential_store.token_file}.")


@cli.command("create-label")
@click.argument("label_name", required=False)
@click.pass_obj
def create_label(app: AppContext, label_name: str | None) -> None:
    """Create a Gmail label if it does not exist (defaults to the reply label)."""

    label_name = label_name or app.config.reply_label
    responder = _responder_or_exit(app)
    label_id = responder.gmail.ensure_label(label_name)
    app.console.print(f"Label {label_name} is ready (id: {label_id}).")


def _responder_or_exit(app: AppContext) -> AutoResponder:
    try:
        return app.responder
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc


def _build_report_table(report: ScanReport) -> Table:
    table = Table(title=f"Scan at {report.started_at:%Y-%m-%d %H:%M:%S} UTC", show_lines=False)
    table.add_column("Message", overflow="fold")
    table.add_column("Thread", overflow="fold")
    table.add_column("Status")
    table.add_column("Reply", overflow="fold")
    table.add_column("Detail")
    for outcome in report.outcomes:
        style = STATUS_STYLES[outcome.status]
        table.add_row(
            outcome.message_id,
            outcome.thread_id,
            f"[{style}]{outcome.status.value}[/{style}]",
            outcome.reply_id or "-",
            outcome.detail,
        )
    return table


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
