"""Find repositories carrying the pipeline and summarise recent runs."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_errors import GitHubAPIError
from tf_pipeline._pipeline_models import RepositoryInfo, WorkflowRun
from tf_pipeline._templates import CI_WORKFLOW_PATH, DESTROY_WORKFLOW_PATH

logger = logging.getLogger(__name__)

MAX_RUNS = 5
_STATUS_MARKERS = {"in_progress": "[running]", "queued": "[queued]"}


def has_pipeline(client: GitHubClient, repository: RepositoryInfo) -> bool:
    """Return whether either pipeline workflow exists on the default branch."""
    return any(
        client.path_exists(repository.owner, repository.name, path)
        for path in (CI_WORKFLOW_PATH, DESTROY_WORKFLOW_PATH)
    )


def list_pipeline_repositories(client: GitHubClient) -> list[str]:
    """Return ``owner/name`` of every accessible repository with a pipeline.

    Organisation listings are best-effort: a failure for one organisation is
    logged and the remaining ones are still searched.
    """
    candidates: dict[str, RepositoryInfo] = {
        repo.full_name: repo for repo in client.list_user_repositories()
    }
    try:
        organizations = client.list_organizations()
    except GitHubAPIError as exc:
        logger.warning("Could not list organizations: %s", exc)
        organizations = []
    for org in organizations:
        try:
            org_repos = client.list_org_repositories(org)
        except GitHubAPIError as exc:
            logger.warning("Could not list repositories of %s: %s", org, exc)
            continue
        for repo in org_repos:
            candidates.setdefault(repo.full_name, repo)

    return [name for name, repo in candidates.items() if has_pipeline(client, repo)]


def _run_marker(run: WorkflowRun) -> str:
    if run.status == "completed":
        return "[ok]" if run.conclusion == "success" else "[failed]"
    return _STATUS_MARKERS.get(run.status, "[running]")


def _format_created(created_at: str) -> str:
    try:
        created = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    except ValueError:
        return created_at or "N/A"
    return created.strftime("%b %d %H:%M")


def format_workflow_runs(runs: Sequence[WorkflowRun]) -> str:
    """Render at most five runs, one entry per run.

    Examples
    --------
    >>> format_workflow_runs([])
    '  No recent runs found'
    """
    if not runs:
        return "  No recent runs found"
    lines = []
    for run in runs[:MAX_RUNS]:
        lines.append(
            f"  {_run_marker(run)} {run.name} - {_format_created(run.created_at)} "
            f"({run.head_branch})"
        )
        lines.append(f"    {run.html_url}")
    return "\n".join(lines)
