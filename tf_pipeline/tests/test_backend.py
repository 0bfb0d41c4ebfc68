"""Unit tests for state backend discovery and bucket naming."""

from __future__ import annotations

import re

import pytest

from tf_pipeline._backend import (
    discover_backend,
    generate_bucket_name,
    parse_backend,
    render_backend_tf,
    resolve_backend,
    sanitize_fragment,
)
from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_models import BackendLocation
from tf_pipeline.tests._fake_github import FakeGitHub

EXISTING_BACKEND = b"""terraform {
  backend "s3" {
    bucket = "existing-bucket"
    key    = "terraform/main/terraform.tfstate"
    region = "eu-west-1"
  }
}
"""


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("My_Org.", "my-org"),
        ("Example--Repo", "example-repo"),
        ("--edge--", "edge"),
        ("Ünïcode!", "ncode"),
    ],
)
def test_sanitize_fragment(value: str, expected: str) -> None:
    assert sanitize_fragment(value, 20) == expected


def test_sanitize_fragment_trims_after_truncation() -> None:
    assert sanitize_fragment("abcd-efgh", 5) == "abcd", "Trailing hyphen should be trimmed"


def test_generate_bucket_name_shape() -> None:
    name = generate_bucket_name("My_Org.", "Example--Repo")
    assert re.fullmatch(r"tf-state-my-org-example-repo-\d{1,5}", name), name


def test_generate_bucket_name_respects_s3_limit() -> None:
    name = generate_bucket_name("o" * 60, "r" * 60, suffix=99_999)
    assert len(name) <= 63, "Bucket names must fit the S3 limit"
    assert "--" not in name


def test_generate_bucket_name_skips_empty_fragments() -> None:
    assert generate_bucket_name("!!!", "infra", suffix=7) == "tf-state-infra-7"


def test_parse_backend_accepts_either_quote_style() -> None:
    location = parse_backend("bucket = 'b1'\n  region='ap-south-1'\n")
    assert location == BackendLocation(bucket="b1", region="ap-south-1")


def test_parse_backend_defaults_region_and_requires_bucket() -> None:
    assert parse_backend('bucket = "b"', "us-west-2") == BackendLocation("b", "us-west-2")
    assert parse_backend('region = "eu-west-1"') is None, "No bucket means no backend"


def test_parse_backend_first_assignment_wins() -> None:
    location = parse_backend('bucket = "first"\nbucket = "second"\n')
    assert location is not None
    assert location.bucket == "first"


def test_discovery_is_preferred_over_generation(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    repo.commit_files("main", {"backend.tf": EXISTING_BACKEND})

    location, discovered = resolve_backend(client, "acme", "infra", "us-east-1")

    assert discovered, "An existing backend.tf should be reused"
    assert location == BackendLocation(bucket="existing-bucket", region="eu-west-1")


def test_generation_when_backend_is_absent(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    repo.commit_files("main", {"README.md": b"# infra"})

    location, discovered = resolve_backend(client, "acme", "infra", "us-west-2", suffix=42)

    assert not discovered
    assert location == BackendLocation(bucket="tf-state-acme-infra-42", region="us-west-2")


def test_discover_backend_reads_default_branch_unless_ref_given(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    repo.commit_files("main", {"README.md": b"# infra"})
    repo.commit_files("dev", {"backend.tf": EXISTING_BACKEND})

    assert discover_backend(client, "acme", "infra") is None, (
        "Default-branch discovery must not see feature-branch backends"
    )
    found = discover_backend(client, "acme", "infra", ref="dev")
    assert found is not None and found.bucket == "existing-bucket"


def test_branch_backend_is_used_when_default_branch_has_none(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    repo.commit_files("main", {"README.md": b"# infra"})
    repo.commit_files("dev", {"backend.tf": EXISTING_BACKEND})

    location, discovered = resolve_backend(client, "acme", "infra", branch="dev")

    assert discovered, "A bucket committed by an earlier run must be reused"
    assert location.bucket == "existing-bucket"


def test_default_branch_backend_wins_over_branch_backend(
    fake_github: FakeGitHub, client: GitHubClient
) -> None:
    repo = fake_github.add_repo("acme", "infra")
    repo.commit_files("main", {"backend.tf": EXISTING_BACKEND})
    repo.commit_files("dev", {"backend.tf": b'bucket = "dev-only"\n'})

    location, _ = resolve_backend(client, "acme", "infra", branch="dev")

    assert location.bucket == "existing-bucket"


def test_render_backend_round_trips_through_parser() -> None:
    location = BackendLocation(bucket="tf-state-acme-infra-1", region="eu-central-1")
    rendered = render_backend_tf(location, "dev")

    assert 'key     = "terraform/dev/terraform.tfstate"' in rendered
    assert parse_backend(rendered) == location
