"""Resolve and validate pipeline bootstrap inputs.

This module turns CLI, environment, or config-file values into a validated,
immutable :class:`PipelineConfig`. Defaults match the interactive tool:
branch ``main``, region ``us-east-1``, and a private repository.

Classes
-------
PipelineConfig
    Immutable configuration for one synchronizer or destroy run.
RawPipelineInputs
    Unvalidated inputs from the CLI.
"""

from __future__ import annotations

import re
from collections import abc as cabc
from dataclasses import dataclass
from pathlib import Path

from tf_pipeline._backend import DEFAULT_REGION
from tf_pipeline._input_resolution import (
    InputResolution,
    load_config_file,
    parse_bool,
    resolve_input,
)
from tf_pipeline._pipeline_errors import PipelineValidationError
from tf_pipeline._pipeline_models import DEFAULT_BRANCH, Credentials, RepositoryTarget

__all__ = ["PipelineConfig", "RawPipelineInputs", "resolve_pipeline_inputs"]

DEFAULT_DESCRIPTION = "Terraform infrastructure with CI/CD pipeline"
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Inputs for a pipeline run.

    Attributes
    ----------
    credentials : Credentials
        GitHub bearer token.
    target : RepositoryTarget
        Repository and branch receiving the pipeline.
    aws_region : str
        Region for the state bucket and the pipeline.
    pipeline_role_arn : str
        IAM role assumed by the workflow; empty leaves the secret unset.
    description, private
        Settings used only when the repository has to be created.
    """

    credentials: Credentials
    target: RepositoryTarget
    aws_region: str
    pipeline_role_arn: str
    description: str
    private: bool


@dataclass(frozen=True, slots=True)
class RawPipelineInputs:
    """Raw inputs from the CLI; ``None`` means "not given"."""

    github_token: str | None = None
    owner: str | None = None
    repository: str | None = None
    branch: str | None = None
    aws_region: str | None = None
    pipeline_role_arn: str | None = None
    description: str | None = None
    private: str | None = None
    config_file: Path | None = None


def _split_repository(owner: str | None, repository: str) -> tuple[str, str]:
    """Split ``owner/name`` or pair a bare name with ``owner``."""
    if "/" in repository:
        repo_owner, _, name = repository.partition("/")
        if owner and owner != repo_owner:
            msg = f"Repository {repository!r} does not belong to owner {owner!r}"
            raise PipelineValidationError(msg)
        owner = repo_owner
    else:
        name = repository
    if not owner:
        msg = "GITHUB_OWNER is required when GITHUB_REPOSITORY has no owner"
        raise PipelineValidationError(msg)
    for label, value in (("owner", owner), ("repository", name)):
        if not _NAME_PATTERN.match(value):
            msg = f"Invalid GitHub {label} name: {value!r}"
            raise PipelineValidationError(msg)
    return owner, name


def resolve_pipeline_inputs(
    raw: RawPipelineInputs,
    env: cabc.Mapping[str, str] | None = None,
) -> PipelineConfig:
    """Resolve pipeline inputs from CLI, environment, and config file.

    Parameters
    ----------
    raw : RawPipelineInputs
        Raw inputs from the CLI.
    env : Mapping[str, str] | None
        Environment override, defaults to ``os.environ``.

    Returns
    -------
    PipelineConfig
        Normalized configuration.
    """
    config_path = resolve_input(
        raw.config_file,
        InputResolution(env_key="TF_PIPELINE_CONFIG", as_path=True),
        env,
    )
    config = load_config_file(Path(config_path) if config_path else None)

    def _resolve(value: str | None, resolution: InputResolution) -> str | None:
        resolved = resolve_input(value, resolution, env, config)
        return None if resolved is None else str(resolved)

    token = _resolve(raw.github_token, InputResolution(env_key="GITHUB_TOKEN", required=True))
    owner = _resolve(raw.owner, InputResolution(env_key="GITHUB_OWNER"))
    repository = _resolve(
        raw.repository, InputResolution(env_key="GITHUB_REPOSITORY", required=True)
    )
    branch = _resolve(
        raw.branch, InputResolution(env_key="GITHUB_BRANCH", default=DEFAULT_BRANCH)
    )
    aws_region = _resolve(
        raw.aws_region, InputResolution(env_key="AWS_REGION", default=DEFAULT_REGION)
    )
    role_arn = _resolve(
        raw.pipeline_role_arn, InputResolution(env_key="PIPELINE_ROLE_ARN", default="")
    )
    description = _resolve(
        raw.description,
        InputResolution(env_key="REPO_DESCRIPTION", default=DEFAULT_DESCRIPTION),
    )
    private = _resolve(raw.private, InputResolution(env_key="REPO_PRIVATE", default="true"))

    if not token or not token.strip():
        msg = "GitHub token must not be empty"
        raise PipelineValidationError(msg)
    repo_owner, repo_name = _split_repository(owner, str(repository).strip())

    return PipelineConfig(
        credentials=Credentials(token.strip()),
        target=RepositoryTarget(
            owner=repo_owner,
            name=repo_name,
            branch=(branch or "").strip() or DEFAULT_BRANCH,
        ),
        aws_region=(aws_region or "").strip() or DEFAULT_REGION,
        pipeline_role_arn=(role_arn or "").strip(),
        description=description or DEFAULT_DESCRIPTION,
        private=parse_bool(private, default=True),
    )
