from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_models import Credentials
from tf_pipeline.tests._fake_github import FakeGitHub


def pytest_configure() -> None:
    if str(PROJECT_ROOT) not in sys.path:
        sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's GitHub and AWS settings out of input resolution."""
    for key in (
        "GITHUB_TOKEN",
        "GITHUB_OWNER",
        "GITHUB_REPOSITORY",
        "GITHUB_BRANCH",
        "GITHUB_ACTIONS",
        "AWS_REGION",
        "PIPELINE_ROLE_ARN",
        "REPO_DESCRIPTION",
        "REPO_PRIVATE",
        "TF_PIPELINE_CONFIG",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Return an empty in-memory GitHub owned by ``acme``."""
    return FakeGitHub(login="acme")


@pytest.fixture
def sleeps() -> list[float]:
    """Collect the delays requested by code under test."""
    return []


@pytest.fixture
def client(fake_github: FakeGitHub, sleeps: list[float]) -> Iterator[GitHubClient]:
    """Return a client wired to ``fake_github`` that never really sleeps."""
    with GitHubClient(
        Credentials("test-token"),
        transport=fake_github.transport(),
        sleep=sleeps.append,
    ) as github:
        yield github
