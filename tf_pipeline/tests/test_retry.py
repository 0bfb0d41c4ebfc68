"""Unit tests for the rate-limit retry decorator."""

from __future__ import annotations

import pytest

from tf_pipeline._pipeline_errors import GitHubAPIError, GitHubRateLimitError
from tf_pipeline._retry import MAX_RETRY_DELAY_SECONDS, retry_on_rate_limit


def test_succeeds_after_transient_rate_limit() -> None:
    pauses: list[float] = []
    attempts: list[int] = []

    @retry_on_rate_limit(retries=3, delay=0.5, sleep=pauses.append)
    def flaky() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise GitHubRateLimitError("get tree", 429, "slow down")
        return "ok"

    assert flaky() == "ok"
    assert pauses == [0.5, 1.0], "Delay should double between attempts"


def test_retry_after_is_capped() -> None:
    pauses: list[float] = []

    @retry_on_rate_limit(retries=2, sleep=pauses.append)
    def limited() -> None:
        raise GitHubRateLimitError("get tree", 403, "rate limit", retry_after=3600)

    with pytest.raises(GitHubRateLimitError):
        limited()
    assert pauses == [MAX_RETRY_DELAY_SECONDS]


def test_non_rate_limit_errors_propagate_immediately() -> None:
    pauses: list[float] = []

    @retry_on_rate_limit(sleep=pauses.append)
    def broken() -> None:
        raise GitHubAPIError("create blob", 500, "boom")

    with pytest.raises(GitHubAPIError, match="create blob failed"):
        broken()
    assert pauses == []
