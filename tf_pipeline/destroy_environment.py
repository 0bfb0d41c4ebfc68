#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.13"
# dependencies = ["cyclopts>=2.9", "httpx>=0.27", "pyyaml>=6.0", "rich>=13"]
# ///
"""Destroy the infrastructure of one environment after repeated confirmation.

The operator picks an environment, acknowledges a warning, types
``owner/repo-environment`` and confirms once more. Only then is the destroy
workflow refreshed on the default branch and dispatched.

Examples
--------
>>> python -m tf_pipeline.destroy_environment --repository acme/infra
"""

from __future__ import annotations

import sys
from pathlib import Path

from cyclopts import App, Parameter

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tf_pipeline._console_prompter import ConsolePrompter
from tf_pipeline._destroy import DestroyOrchestrator
from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_config import RawPipelineInputs, resolve_pipeline_inputs
from tf_pipeline._pipeline_errors import PipelineError
from tf_pipeline._pipeline_models import DestroyStage

app = App(help="Destroy an environment's infrastructure via the destroy workflow.")


@app.default
def main(
    repository: str | None = Parameter(),
    owner: str | None = Parameter(),
    aws_region: str | None = Parameter(),
    config: Path | None = Parameter(),
) -> int:
    """Run the guarded destroy flow.

    Parameters
    ----------
    repository, owner : str | None
        Repository holding the pipeline.
    aws_region : str | None
        Region assumed when ``backend.tf`` declares none.
    config : Path | None
        Optional YAML file supplying any of the inputs.

    Returns
    -------
    int
        Exit code: 0 when dispatched or cancelled, 1 on failure.
    """
    raw_inputs = RawPipelineInputs(
        owner=owner, repository=repository, aws_region=aws_region, config_file=config
    )
    try:
        inputs = resolve_pipeline_inputs(raw_inputs)
    except PipelineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    target = inputs.target

    try:
        with GitHubClient(inputs.credentials) as client:
            orchestrator = DestroyOrchestrator(
                client,
                target.owner,
                target.name,
                ConsolePrompter(),
                default_region=inputs.aws_region,
            )
            request = orchestrator.run()
    except KeyboardInterrupt:
        print("\nDestroy cancelled")
        return 0
    except PipelineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if request.stage is DestroyStage.CANCELLED:
        print("Destroy cancelled; nothing was changed.")
        return 0

    print("Destroy workflow triggered.")
    print(f"  Repository: {target.full_name}")
    print(f"  Branch: {request.target_branch}")
    print(f"  Environment: {request.environment}")
    print(f"Monitor progress: https://github.com/{target.full_name}/actions")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(app())
