"""Unit tests for the single-commit file writer."""

from __future__ import annotations

import httpx
import pytest

from tf_pipeline._commit_builder import commit_files, git_blob_sha, update_file
from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_errors import (
    GitHubAPIError,
    GitHubConflictError,
    PipelineValidationError,
)
from tf_pipeline._pipeline_models import FileChange, RepositoryTarget, build_file_set
from tf_pipeline.tests._fake_github import FakeGitHub


def test_git_blob_sha_matches_git() -> None:
    assert (
        git_blob_sha(b"hello\n") == "ce013625030ba8dba906f756967f9e9ca394464a"
    ), "Blob id should match `git hash-object`"


def test_initial_commit_contains_exactly_the_file_set(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    files = build_file_set(
        [FileChange("backend.tf", b"b"), FileChange(".github/workflows/ci.yml", b"c")]
    )

    result = commit_files(client, RepositoryTarget("acme", "infra"), files, "Add pipeline")

    assert result.created_branch, "Branch should be reported as created"
    assert repo.refs["main"] == result.sha, "Branch should point at the new commit"
    assert repo.files("main") == {
        "backend.tf": b"b",
        ".github/workflows/ci.yml": b"c",
    }, "Initial tree should hold exactly the committed files"
    assert repo.commits[result.sha]["parents"] == [], "Initial commit has no parent"
    assert result.paths == (".github/workflows/ci.yml", "backend.tf")


def test_sequential_commits_accumulate_and_later_content_wins(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    target = RepositoryTarget("acme", "infra", "dev")

    first = commit_files(
        client,
        target,
        build_file_set([FileChange("a.tf", b"one"), FileChange("b.tf", b"two")]),
        "first",
    )
    second = commit_files(
        client,
        target,
        build_file_set([FileChange("b.tf", b"TWO"), FileChange("c/d.tf", b"three")]),
        "second",
    )

    assert not second.created_branch, "Second commit should update the branch"
    assert repo.history("dev") == [second.sha, first.sha], "Exactly two commits expected"
    assert repo.files("dev") == {
        "a.tf": b"one",
        "b.tf": b"TWO",
        "c/d.tf": b"three",
    }, "Tree should be the union with the second commit winning"


def test_commit_preserves_unrelated_files(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    repo.commit_files("main", {"README.md": b"# infra", "modules/vpc/main.tf": b"vpc"})

    commit_files(
        client,
        RepositoryTarget("acme", "infra"),
        build_file_set([FileChange("backend.tf", b"b")]),
        "Add backend",
    )

    assert repo.files("main") == {
        "README.md": b"# infra",
        "modules/vpc/main.tf": b"vpc",
        "backend.tf": b"b",
    }, "Existing files must survive an incremental commit"


def test_unchanged_files_reuse_existing_blobs(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    repo.commit_files("main", {"backend.tf": b"same"})

    commit_files(
        client,
        RepositoryTarget("acme", "infra"),
        build_file_set([FileChange("backend.tf", b"same"), FileChange("new.tf", b"n")]),
        "Update",
    )

    assert len(fake_github.calls("POST", r"/git/blobs$")) == 1, (
        "Only the changed file should be uploaded"
    )


def test_empty_file_set_is_rejected(client: GitHubClient) -> None:
    with pytest.raises(PipelineValidationError, match="without file changes"):
        commit_files(client, RepositoryTarget("acme", "infra"), {}, "noop")


def test_file_over_directory_is_rejected(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    head = repo.commit_files("main", {"modules/vpc.tf": b"vpc"})

    with pytest.raises(PipelineValidationError, match="directory 'modules'"):
        commit_files(
            client,
            RepositoryTarget("acme", "infra"),
            build_file_set([FileChange("modules", b"oops")]),
            "bad",
        )
    assert repo.refs["main"] == head, "Branch must not move on validation failure"


def test_concurrent_update_surfaces_conflict(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    repo.commit_files("main", {"README.md": b"r"})
    moved: list[str] = []

    def _race(request: httpx.Request) -> None:
        if request.method == "PATCH" and not moved:
            moved.append(repo.commit_files("main", {"other.tf": b"theirs"}, "concurrent"))

    fake_github.before_request = _race

    with pytest.raises(GitHubConflictError) as excinfo:
        commit_files(
            client,
            RepositoryTarget("acme", "infra"),
            build_file_set([FileChange("backend.tf", b"ours")]),
            "ours",
        )

    assert excinfo.value.status_code == 422
    assert repo.refs["main"] == moved[0], "Concurrent writer's commit must be kept"
    assert "backend.tf" not in repo.files("main"), "Our change must not be applied"


def test_failed_tree_creation_leaves_branch_untouched(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    head = repo.commit_files("main", {"README.md": b"r"})
    fake_github.fail("POST", r"/git/trees$", 500, "boom")

    with pytest.raises(GitHubAPIError, match="create tree failed"):
        commit_files(
            client,
            RepositoryTarget("acme", "infra"),
            build_file_set([FileChange("backend.tf", b"b")]),
            "Add backend",
        )
    assert repo.refs["main"] == head, "Branch must not move when a step fails"


def test_update_file_creates_then_overwrites(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    repo.commit_files("main", {"README.md": b"r"})

    update_file(client, "acme", "infra", "wf.yml", b"v1", branch="main", message="add")
    update_file(client, "acme", "infra", "wf.yml", b"v2", branch="main", message="update")

    assert repo.files("main")["wf.yml"] == b"v2", "Second write should overwrite"
    assert len(repo.history("main")) == 3, "Each write is its own commit"


def test_build_file_set_rejects_duplicates() -> None:
    with pytest.raises(PipelineValidationError, match="Duplicate"):
        build_file_set([FileChange("/a.tf", b"1"), FileChange("a.tf", b"2")])
