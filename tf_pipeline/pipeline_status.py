#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.13"
# dependencies = ["cyclopts>=2.9", "httpx>=0.27", "pyyaml>=6.0"]
# ///
"""List repositories carrying the pipeline or show one repository's runs."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from cyclopts import App, Parameter

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tf_pipeline._github_client import GitHubClient
from tf_pipeline._input_resolution import InputResolution, resolve_input
from tf_pipeline._pipeline_errors import PipelineError
from tf_pipeline._pipeline_models import Credentials
from tf_pipeline._status import format_workflow_runs, list_pipeline_repositories

app = App(help="Show Terraform pipeline status.")


@app.default
def main(
    repository: str | None = Parameter(),
) -> int:
    """Print pipeline repositories, or recent runs for ``repository``.

    Parameters
    ----------
    repository : str | None
        ``owner/name``; when omitted every pipeline repository is listed.

    Returns
    -------
    int
        Exit code (0 for success).
    """
    token = resolve_input(
        None, InputResolution(env_key="GITHUB_TOKEN", required=True), os.environ
    )
    try:
        with GitHubClient(Credentials(str(token))) as client:
            if repository is None:
                names = list_pipeline_repositories(client)
                if not names:
                    print("No repositories with Terraform workflows found")
                    return 0
                print(f"Found {len(names)} repositories with Terraform workflows:")
                for name in names:
                    print(f"  {name}")
                return 0

            owner, _, name = repository.partition("/")
            if not owner or not name:
                print(f"error: invalid repository format: {repository}", file=sys.stderr)
                return 1
            runs = client.list_workflow_runs(owner, name)
    except PipelineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(f"Pipeline status for {repository}")
    print(f"  Repository: https://github.com/{repository}")
    print(f"  Actions: https://github.com/{repository}/actions")
    print("\nRecent workflow runs:")
    print(format_workflow_runs(runs))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(app())
