"""Synchronize the Terraform pipeline into a GitHub repository.

The synchronizer ensures the repository exists, settles on a state backend,
commits the generated files in a single commit, and publishes the repository
secrets. The commit and the secrets are independent remote operations; each is
idempotent, so a failed run is recovered by running it again.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from tf_pipeline._backend import (
    BACKEND_FILE,
    discover_backend,
    render_backend_tf,
    resolve_backend,
)
from tf_pipeline._commit_builder import commit_files, update_file
from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_config import PipelineConfig
from tf_pipeline._pipeline_errors import (
    GitHubAPIError,
    PipelineSyncError,
    SecretPublicationError,
)
from tf_pipeline._pipeline_models import (
    BackendLocation,
    CommitResult,
    FileChange,
    RepositoryInfo,
    build_file_set,
)
from tf_pipeline._secrets import pipeline_secrets, publish_secrets
from tf_pipeline._templates import (
    CI_WORKFLOW_PATH,
    DESTROY_WORKFLOW_PATH,
    render_ci_workflow,
    render_destroy_workflow,
)

COMMIT_MESSAGE = "Add/Update Terraform CI/CD pipeline"
DESTROY_COMMIT_MESSAGE = "Add/Update Terraform destroy workflow"


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Outcome of a synchronizer run."""

    repository: RepositoryInfo
    created_repository: bool
    backend: BackendLocation
    backend_discovered: bool
    commit: CommitResult
    secrets: tuple[str, ...]


def ensure_repository(
    client: GitHubClient,
    config: PipelineConfig,
    echo: Callable[[str], object] = print,
) -> tuple[RepositoryInfo, bool]:
    """Return the target repository, creating it when absent."""
    target = config.target
    info = client.get_repository(target.owner, target.name)
    if info is not None:
        echo(f"Repository {target.full_name} already exists")
        return info, False

    echo(f"Creating repository {target.full_name}...")
    info = client.create_repository(
        target.owner,
        target.name,
        description=config.description,
        private=config.private,
    )
    echo(f"Repository {target.full_name} created")
    return info, True


def build_pipeline_files(
    config: PipelineConfig,
    backend: BackendLocation,
    *,
    include_destroy: bool,
    include_backend: bool = True,
) -> dict[str, FileChange]:
    """Return the files committed to the target branch.

    ``include_backend`` is false when the branch already declares the bucket in
    use; its ``backend.tf`` may carry settings this tool never writes.
    """
    branch = config.target.branch
    changes = [FileChange(CI_WORKFLOW_PATH, render_ci_workflow(branch).encode("utf-8"))]
    if include_backend:
        changes.insert(
            0, FileChange(BACKEND_FILE, render_backend_tf(backend, branch).encode("utf-8"))
        )
    if include_destroy:
        changes.append(
            FileChange(DESTROY_WORKFLOW_PATH, render_destroy_workflow().encode("utf-8"))
        )
    return build_file_set(changes)


def synchronize_pipeline(
    client: GitHubClient,
    config: PipelineConfig,
    echo: Callable[[str], object] = print,
) -> SyncResult:
    """Run every synchronizer step in order.

    Parameters
    ----------
    client
        Authenticated GitHub client.
    config
        Resolved pipeline configuration.
    echo
        Progress output.

    Returns
    -------
    SyncResult
        What was committed and published.

    Raises
    ------
    PipelineSyncError
        Raised with the failing step named; remote state already applied by
        earlier steps is left in place.
    """
    target = config.target

    try:
        repository, created = ensure_repository(client, config, echo)
    except GitHubAPIError as exc:
        raise PipelineSyncError("ensure repository", str(exc)) from exc

    try:
        backend, discovered = resolve_backend(
            client, target.owner, target.name, config.aws_region, branch=target.branch
        )
        committed = discover_backend(
            client, target.owner, target.name, config.aws_region, ref=target.branch
        )
    except GitHubAPIError as exc:
        raise PipelineSyncError("resolve backend", str(exc)) from exc
    source = "Reusing" if discovered else "Allocated"
    echo(f"{source} state bucket {backend.bucket} ({backend.region})")

    on_default_branch = target.branch == repository.default_branch
    files = build_pipeline_files(
        config,
        backend,
        include_destroy=on_default_branch,
        include_backend=committed is None or committed.bucket != backend.bucket,
    )
    try:
        commit = commit_files(client, target, files, COMMIT_MESSAGE)
    except GitHubAPIError as exc:
        raise PipelineSyncError("commit pipeline files", str(exc)) from exc
    echo(f"Committed {len(commit.paths)} files to {target.branch} ({commit.sha[:7]})")

    if not on_default_branch:
        try:
            update_file(
                client,
                target.owner,
                target.name,
                DESTROY_WORKFLOW_PATH,
                render_destroy_workflow().encode("utf-8"),
                branch=repository.default_branch,
                message=DESTROY_COMMIT_MESSAGE,
            )
        except GitHubAPIError as exc:
            raise PipelineSyncError("update destroy workflow", str(exc)) from exc
        echo(f"Destroy workflow updated on {repository.default_branch}")

    secrets = pipeline_secrets(config.aws_region, backend, config.pipeline_role_arn)
    try:
        published = publish_secrets(client, target.owner, target.name, secrets)
    except SecretPublicationError as exc:
        raise PipelineSyncError("publish secrets", str(exc)) from exc
    echo(f"Published secrets: {', '.join(published) or 'none'}")

    return SyncResult(
        repository=repository,
        created_repository=created,
        backend=backend,
        backend_discovered=discovered,
        commit=commit,
        secrets=tuple(published),
    )
