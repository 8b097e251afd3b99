from __future__ import annotations

import logging

import requests
import typer
from rich import print
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .allocator import ReviewerPoolExhausted, plan_assignments, submit_assignments
from .azure_devops import AzureDevOpsClient, AzureDevOpsError, devops_client, fetch_snapshot
from .config import load_settings
from .history import HistorySnapshot, build_history
from .models import AssignmentDecision
from .reports import ShareRow, build_author_report, build_reviewer_report

app = typer.Typer(help="Balance Azure DevOps pull request reviews across the reviewer pool.")

USAGE = "Usage: pr-load-balancer {orgUrl} {personalAccessToken} {projectName}"

console = Console()


def _share_table(title: str, rows: list[ShareRow]) -> Table:
    table = Table(title=title)
    table.add_column("Count", justify="right")
    table.add_column("Share", justify="right")
    table.add_column("Name")
    for row in rows:
        table.add_row(str(row.count), f"{row.percent:.0%}", escape(row.name))
    return table


def _print_stats(snapshot: HistorySnapshot) -> None:
    print(f"[bold]Pull requests:[/bold] {snapshot.total_pull_requests}")
    print(_share_table("PR Reviews by User", build_reviewer_report(snapshot)))
    print(_share_table("PRs Submitted by Author", build_author_report(snapshot.authors)))


def _print_decisions(decisions: list[AssignmentDecision], names: dict[str, str]) -> None:
    for decision in decisions:
        reviewer = names.get(decision.reviewer_id, decision.reviewer_id)
        console.print(
            f"Would assign reviewer {escape(reviewer)} to PR {escape(decision.pull_request.title)}",
            soft_wrap=True,
        )


def _submit(decisions: list[AssignmentDecision], client: AzureDevOpsClient) -> None:
    result = submit_assignments(decisions, client)
    print(f"[green]Submitted {len(result.submitted)} reviewers.[/green]")
    if result.failed:
        print(f"[yellow]{len(result.failed)} reviewers could not be added.[/yellow]")


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def run(
    ctx: typer.Context,
    org_url: str | None = typer.Argument(None, envvar="AZDO_ORG_URL", help="Organization URL."),
    token: str | None = typer.Argument(None, envvar="AZDO_TOKEN", help="Personal access token."),
    project: str | None = typer.Argument(None, envvar="AZDO_PROJECT", help="Project name."),
    apply: bool = typer.Option(False, help="Add the planned reviewers to the pull requests."),
    target: int | None = typer.Option(None, help="Reviewers each active pull request should have."),
    cap: int | None = typer.Option(None, help="Active reviews a reviewer may hold before being skipped."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr."),
) -> None:
    """Plan reviewer assignments for active pull requests."""
    if ctx.args or not (org_url and token and project):
        print(USAGE)
        raise typer.Exit(code=1)

    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings()
    except RuntimeError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)

    target = settings.target_reviewers if target is None else target
    cap = settings.concurrency_cap if cap is None else cap

    with devops_client(org_url, token, settings) as client:
        try:
            pull_requests = fetch_snapshot(client, project, max_workers=settings.max_workers)
        except (AzureDevOpsError, requests.RequestException) as exc:
            print(f"[red]Could not load pull requests: {escape(str(exc))}[/red]")
            raise typer.Exit(code=1)

        snapshot = build_history(pull_requests)
        _print_stats(snapshot)

        try:
            plan = plan_assignments(
                pull_requests,
                snapshot.histories,
                target=target,
                cap=cap,
                reviewer_names=snapshot.reviewer_names,
            )
        except ReviewerPoolExhausted as exc:
            _print_decisions(exc.decisions, snapshot.reviewer_names)
            if apply and exc.decisions:
                _submit(exc.decisions, client)
            print("[yellow]We ran out of reviewers to assign. Will wait for next invocation and try again[/yellow]")
            raise typer.Exit(code=1)

        _print_decisions(plan.decisions, snapshot.reviewer_names)
        if not plan.decisions:
            print("[green]Every active pull request has enough reviewers.[/green]")
            return

        if apply:
            _submit(plan.decisions, client)


if __name__ == "__main__":
    app()
