"""Unit tests for pipeline status reporting."""

from __future__ import annotations

import logging

import pytest

from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_models import WorkflowRun
from tf_pipeline._status import format_workflow_runs, list_pipeline_repositories
from tf_pipeline.tests._fake_github import FakeGitHub


def _run(status: str, conclusion: str | None = None, name: str = "Terraform") -> WorkflowRun:
    return WorkflowRun(
        name=name,
        status=status,
        conclusion=conclusion,
        created_at="2024-03-05T14:07:00Z",
        head_branch="main",
        html_url="https://github.com/acme/infra/actions/runs/1",
    )


def test_format_workflow_runs_markers() -> None:
    text = format_workflow_runs(
        [
            _run("completed", "success"),
            _run("completed", "failure"),
            _run("in_progress"),
            _run("queued"),
        ]
    )
    lines = text.splitlines()

    assert lines[0] == "  [ok] Terraform - Mar 05 14:07 (main)"
    assert lines[1] == "    https://github.com/acme/infra/actions/runs/1"
    assert lines[2].startswith("  [failed]")
    assert lines[4].startswith("  [running]")
    assert lines[6].startswith("  [queued]")


def test_format_workflow_runs_limits_to_five() -> None:
    runs = [_run("completed", "success", name=f"run-{i}") for i in range(8)]
    text = format_workflow_runs(runs)

    assert "run-4" in text
    assert "run-5" not in text, "Only the five most recent runs are shown"


def test_format_workflow_runs_empty() -> None:
    assert format_workflow_runs([]) == "  No recent runs found"


def test_list_runs_through_client(fake_github: FakeGitHub, client: GitHubClient) -> None:
    repo = fake_github.add_repo("acme", "infra")
    repo.workflow_runs.append(
        {
            "name": "Terraform",
            "status": "completed",
            "conclusion": "success",
            "created_at": "2024-03-05T14:07:00Z",
            "head_branch": "main",
            "html_url": "https://github.com/acme/infra/actions/runs/9",
        }
    )

    runs = client.list_workflow_runs("acme", "infra")

    assert [run.conclusion for run in runs] == ["success"]


def test_list_pipeline_repositories(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    fake_github.add_repo("acme", "infra").commit_files(
        "main", {".github/workflows/terraform.yml": b"ci"}
    )
    fake_github.add_repo("acme", "website").commit_files("main", {"index.html": b"hi"})
    fake_github.add_repo("platform", "network").commit_files(
        "main", {".github/workflows/destroy.yml": b"d"}
    )
    fake_github.organizations.append("platform")

    names = list_pipeline_repositories(client)

    assert names == ["acme/infra", "platform/network"]


def test_org_listing_failure_is_tolerated(
    fake_github: FakeGitHub,
    client: GitHubClient,
    caplog: pytest.LogCaptureFixture,
) -> None:
    fake_github.add_repo("acme", "infra").commit_files(
        "main", {".github/workflows/terraform.yml": b"ci"}
    )
    fake_github.organizations.append("platform")
    fake_github.fail("GET", r"^/orgs/platform/repos$", 403, "Resource not accessible")

    with caplog.at_level(logging.WARNING, logger="tf_pipeline._status"):
        names = list_pipeline_repositories(client)

    assert names == ["acme/infra"]
    assert "platform" in caplog.text
