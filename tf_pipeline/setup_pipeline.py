#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.13"
# dependencies = ["cyclopts>=2.9", "httpx>=0.27", "pynacl>=1.5", "pyyaml>=6.0"]
# ///
"""Set up the Terraform CI/CD pipeline in a GitHub repository.

This script:
- creates the repository when it does not exist;
- reuses the state bucket recorded in ``backend.tf`` or allocates a new name;
- commits ``backend.tf`` and the workflows in a single commit; and
- publishes the ``AWS_REGION``, ``TF_STATE_BUCKET`` and ``PIPELINE_ROLE_ARN``
  repository secrets.

Examples
--------
>>> python -m tf_pipeline.setup_pipeline --repository acme/infra --branch dev
"""

from __future__ import annotations

import sys
from pathlib import Path

from cyclopts import App, Parameter

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tf_pipeline._github_client import GitHubClient
from tf_pipeline._input_resolution import mask_secret
from tf_pipeline._pipeline import SyncResult, synchronize_pipeline
from tf_pipeline._pipeline_config import RawPipelineInputs, resolve_pipeline_inputs
from tf_pipeline._pipeline_errors import PipelineError

app = App(help="Set up the Terraform CI/CD pipeline in a GitHub repository.")


def print_summary(result: SyncResult, branch: str) -> None:
    """Print what the run created or updated."""
    repository = result.repository
    print("\nPipeline ready.")
    print(f"  Repository: https://github.com/{repository.full_name}")
    print(f"  Branch: {branch}")
    print(f"  Commit: {result.commit.sha}")
    print(f"  Files: {', '.join(result.commit.paths)}")
    print(f"  State bucket: {result.backend.bucket} ({result.backend.region})")
    print(f"  Secrets: {', '.join(result.secrets) or 'none'}")
    if not result.backend_discovered:
        print("\nCreate the S3 bucket in AWS before running Terraform.")
    print(f"Monitor runs: https://github.com/{repository.full_name}/actions")


@app.default
def main(
    repository: str | None = Parameter(),
    owner: str | None = Parameter(),
    branch: str | None = Parameter(),
    aws_region: str | None = Parameter(),
    pipeline_role_arn: str | None = Parameter(),
    description: str | None = Parameter(),
    private: str | None = Parameter(),
    config: Path | None = Parameter(),
) -> int:
    """Create or update the pipeline for a repository.

    Parameters
    ----------
    repository, owner, branch : str | None
        Target repository (``owner/name`` or a bare name with ``owner``) and
        branch.
    aws_region, pipeline_role_arn : str | None
        AWS settings published as repository secrets.
    description, private : str | None
        Settings used when the repository has to be created.
    config : Path | None
        Optional YAML file supplying any of the inputs.

    Returns
    -------
    int
        Exit code (0 for success).
    """
    raw_inputs = RawPipelineInputs(
        owner=owner,
        repository=repository,
        branch=branch,
        aws_region=aws_region,
        pipeline_role_arn=pipeline_role_arn,
        description=description,
        private=private,
        config_file=config,
    )
    try:
        inputs = resolve_pipeline_inputs(raw_inputs)
    except PipelineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    mask_secret(inputs.credentials.token)

    print(f"Setting up pipeline for {inputs.target.full_name}...")
    print(f"  Branch: {inputs.target.branch}")
    print(f"  Region: {inputs.aws_region}")

    try:
        with GitHubClient(inputs.credentials) as client:
            result = synchronize_pipeline(client, inputs)
    except PipelineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        print("Re-run the setup to finish; every step is safe to repeat.", file=sys.stderr)
        return 1

    print_summary(result, inputs.target.branch)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(app())
