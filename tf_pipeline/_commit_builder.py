"""Commit a set of generated files to a branch as exactly one commit.

The builder talks to the git data API directly: it uploads blobs, assembles a
tree, creates a commit, and only then moves the branch reference. Because the
reference update is the last step, a failure anywhere earlier leaves the
branch untouched; the orphaned objects are garbage-collected by GitHub.

Examples
--------
>>> from tf_pipeline._pipeline_models import FileChange, RepositoryTarget
>>> files = build_file_set([FileChange("backend.tf", b"terraform {}\\n")])
>>> commit_files(client, RepositoryTarget("acme", "infra"), files, "Add backend")
"""

from __future__ import annotations

import hashlib
import logging

from tf_pipeline._github_client import REGULAR_FILE_MODE, GitHubClient
from tf_pipeline._pipeline_errors import PipelineValidationError
from tf_pipeline._pipeline_models import (
    CommitResult,
    FileSet,
    RepositoryTarget,
    TreeEntry,
    build_file_set,
)

__all__ = ["build_file_set", "commit_files", "git_blob_sha", "update_file"]

logger = logging.getLogger(__name__)


def git_blob_sha(content: bytes) -> str:
    """Return the git object id ``content`` would have as a blob.

    Examples
    --------
    >>> git_blob_sha(b"")
    'e69de29bb2d1d6434b8b29ae775ad8c2e48c5391'
    """
    header = f"blob {len(content)}\0".encode("ascii")
    return hashlib.sha1(header + content, usedforsecurity=False).hexdigest()


def _blob_entries(
    client: GitHubClient,
    target: RepositoryTarget,
    file_set: FileSet,
    existing: dict[str, str] | None = None,
) -> list[TreeEntry]:
    """Upload one blob per file, reusing blobs already present in the tree."""
    known = existing or {}
    entries: list[TreeEntry] = []
    for path in sorted(file_set):
        content = file_set[path].content
        sha = git_blob_sha(content)
        if known.get(path) != sha:
            sha = client.create_blob(target.owner, target.name, content)
        entries.append(
            TreeEntry(path=path, mode=REGULAR_FILE_MODE, type="blob", sha=sha)
        )
    return entries


def _initial_commit(
    client: GitHubClient,
    target: RepositoryTarget,
    file_set: FileSet,
    message: str,
) -> str:
    entries = _blob_entries(client, target, file_set)
    tree_sha = client.create_tree(target.owner, target.name, entries)
    commit_sha = client.create_commit(
        target.owner, target.name, message=message, tree=tree_sha, parents=[]
    )
    client.create_ref(target.owner, target.name, target.branch, commit_sha)
    return commit_sha


def _incremental_commit(
    client: GitHubClient,
    target: RepositoryTarget,
    file_set: FileSet,
    message: str,
    head_sha: str,
) -> str:
    head = client.get_commit(target.owner, target.name, head_sha)
    current_tree = client.get_tree(target.owner, target.name, head.tree_sha)
    existing = {entry.path: entry.sha for entry in current_tree if entry.type == "blob"}
    for path in file_set:
        if path in existing:
            continue
        if any(entry.path == path and entry.type == "tree" for entry in current_tree):
            msg = f"Cannot replace directory {path!r} with a file"
            raise PipelineValidationError(msg)

    entries = _blob_entries(client, target, file_set, existing)
    tree_sha = client.create_tree(
        target.owner, target.name, entries, base_tree=head.tree_sha
    )
    commit_sha = client.create_commit(
        target.owner, target.name, message=message, tree=tree_sha, parents=[head.sha]
    )
    client.update_ref(target.owner, target.name, target.branch, commit_sha)
    return commit_sha


def commit_files(
    client: GitHubClient,
    target: RepositoryTarget,
    file_set: FileSet,
    message: str,
) -> CommitResult:
    """Write every file in ``file_set`` to ``target.branch`` in one commit.

    Parameters
    ----------
    client
        Authenticated GitHub client.
    target
        Repository and branch to update.
    file_set
        Mapping of path to desired content; all entries land together.
    message
        Commit message.

    Returns
    -------
    CommitResult
        The new commit sha and whether the branch was created.

    Raises
    ------
    PipelineValidationError
        Raised when ``file_set`` is empty or a path collides with a directory.
    GitHubConflictError
        Raised when the branch moved between reading its head and updating
        it. The branch is left as the concurrent writer set it.
    GitHubAPIError
        Raised for any other remote failure; the branch is unchanged.
    """
    if not file_set:
        msg = "Refusing to create a commit without file changes"
        raise PipelineValidationError(msg)
    normalised = build_file_set(file_set.values())

    head_sha = client.get_ref(target.owner, target.name, target.branch)
    if head_sha is None:
        logger.debug("Branch %s absent in %s; creating it", target.branch, target.full_name)
        sha = _initial_commit(client, target, normalised, message)
    else:
        sha = _incremental_commit(client, target, normalised, message, head_sha)

    return CommitResult(
        sha=sha,
        branch=target.branch,
        paths=tuple(sorted(normalised)),
        created_branch=head_sha is None,
    )


def update_file(
    client: GitHubClient,
    owner: str,
    repo: str,
    path: str,
    content: bytes,
    *,
    branch: str,
    message: str,
) -> str:
    """Create or overwrite one file on ``branch`` and return the commit sha."""
    existing = client.get_file(owner, repo, path, ref=branch)
    return client.put_file(
        owner,
        repo,
        path,
        content,
        message=message,
        branch=branch,
        sha=existing.sha if existing is not None else None,
    )
