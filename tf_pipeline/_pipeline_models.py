"""Data models for the Terraform pipeline bootstrapper.

These models give the synchronizer, the commit builder, and the destroy
orchestrator a small typed contract. Remote payloads are converted into these
types once, inside the GitHub client, so the rest of the code never inspects
raw JSON.

Examples
--------
>>> target = RepositoryTarget(owner="acme", name="infra", branch="")
>>> target.branch
'main'
>>> BackendLocation(bucket="tf-state-acme-infra-42", region="eu-west-1").state_key("dev")
'terraform/dev/terraform.tfstate'
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from tf_pipeline._pipeline_errors import PipelineValidationError

DEFAULT_BRANCH = "main"
DEFAULT_KEY_PREFIX = "terraform"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Bearer token used for every GitHub call."""

    token: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class RepositoryTarget:
    """Repository and branch receiving the generated files.

    Attributes
    ----------
    owner
        User or organisation login that owns the repository.
    name
        Repository name.
    branch
        Target branch; an empty value is normalised to ``main``.
    """

    owner: str
    name: str
    branch: str = DEFAULT_BRANCH

    def __post_init__(self) -> None:
        if not self.branch:
            object.__setattr__(self, "branch", DEFAULT_BRANCH)

    @property
    def full_name(self) -> str:
        """Return ``owner/name``."""
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True, slots=True)
class FileChange:
    """Desired final content of one repository file."""

    path: str
    content: bytes


FileSet = Mapping[str, FileChange]


def build_file_set(changes: Iterable[FileChange]) -> dict[str, FileChange]:
    """Index file changes by path, rejecting duplicates.

    Examples
    --------
    >>> sorted(build_file_set([FileChange("a.tf", b"")]))
    ['a.tf']
    """
    file_set: dict[str, FileChange] = {}
    for change in changes:
        path = change.path.strip("/")
        if not path:
            msg = "File change path must not be empty"
            raise PipelineValidationError(msg)
        if path in file_set:
            msg = f"Duplicate file change for {path!r}"
            raise PipelineValidationError(msg)
        file_set[path] = FileChange(path=path, content=change.content)
    return file_set


@dataclass(frozen=True, slots=True)
class BackendLocation:
    """Coordinates of the Terraform S3 state backend.

    Attributes
    ----------
    bucket
        S3 bucket holding state files.
    region
        AWS region of the bucket.
    key_prefix
        Leading path segment for branch-scoped state keys.
    """

    bucket: str
    region: str
    key_prefix: str = DEFAULT_KEY_PREFIX

    def state_key(self, branch: str) -> str:
        """Return the state object key for ``branch``."""
        return f"{self.key_prefix}/{branch}/terraform.tfstate"


@dataclass(frozen=True, slots=True)
class SecretEntry:
    """A repository secret awaiting encryption."""

    name: str
    value: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class RecipientKey:
    """Repository public key used to seal secret values."""

    key_id: str
    key: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class RepositoryInfo:
    """Repository metadata returned by GitHub."""

    owner: str
    name: str
    default_branch: str
    private: bool
    html_url: str = ""

    @property
    def full_name(self) -> str:
        """Return ``owner/name``."""
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True, slots=True)
class RepositoryFile:
    """File content read through the contents API."""

    path: str
    sha: str
    content: bytes


@dataclass(frozen=True, slots=True)
class GitCommit:
    """Commit object with the tree it points at."""

    sha: str
    tree_sha: str


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """One entry of a git tree."""

    path: str
    mode: str
    type: str
    sha: str


@dataclass(frozen=True, slots=True)
class CommitResult:
    """Outcome of an atomic multi-file commit."""

    sha: str
    branch: str
    paths: tuple[str, ...]
    created_branch: bool


@dataclass(frozen=True, slots=True)
class WorkflowRun:
    """Summary of a GitHub Actions workflow run."""

    name: str
    status: str
    conclusion: str | None
    created_at: str
    head_branch: str
    html_url: str


@dataclass(frozen=True, slots=True)
class EnvironmentChoice:
    """A destroyable environment offered to the operator."""

    value: str
    branch: str
    label: str


class DestroyStage(enum.Enum):
    """Confirmation stages of a destroy request."""

    SELECTING = "selecting"
    WARNED_ONCE = "warned_once"
    TYPED_CONFIRMED = "typed_confirmed"
    FINAL_CONFIRMED = "final_confirmed"
    DISPATCHED = "dispatched"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class DestroyRequest:
    """Destroy request progressing through the confirmation stages."""

    environment: str
    target_branch: str
    stage: DestroyStage = DestroyStage.SELECTING


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Details of a dispatched destroy workflow."""

    workflow: str
    ref: str
    inputs: Mapping[str, str]
