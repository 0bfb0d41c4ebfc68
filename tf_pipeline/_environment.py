"""Infer an environment name from Terraform variable files on a branch.

This is a best-effort textual scan, not an HCL parser: multi-line and
interpolated values are not resolved.
"""

from __future__ import annotations

import logging

from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_errors import GitHubAPIError

logger = logging.getLogger(__name__)

COMMENT_PREFIXES = ("#", "//")


def candidate_files(branch: str) -> list[str]:
    """Return the variable files checked on ``branch``, in order.

    Examples
    --------
    >>> candidate_files("staging")
    ['terraform.tfvars', 'variables.tfvars', 'staging.tfvars', 'env.tfvars']
    """
    return [
        "terraform.tfvars",
        "variables.tfvars",
        f"{branch}.tfvars",
        "env.tfvars",
    ]


def find_environment(text: str) -> str:
    """Return the first non-empty environment assignment in ``text``.

    Examples
    --------
    >>> find_environment('region = "eu-west-1"\\nenvironment = "prod"')
    'prod'
    >>> find_environment('# environment = "old"\\ntarget_env = \\'qa\\'')
    'qa'
    >>> find_environment("name = 'x'")
    ''
    """
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if key != "environment" and "env" not in key:
            continue
        value = value.strip().strip("\"'")
        if value:
            return value
    return ""


def detect_environment(client: GitHubClient, owner: str, repo: str, branch: str) -> str:
    """Return the environment declared on ``branch``, or ``""`` if none.

    Missing files and lookup failures count as "no declaration"; the caller
    falls back to the branch name.
    """
    for filename in candidate_files(branch):
        try:
            blob = client.get_file(owner, repo, filename, ref=branch)
        except GitHubAPIError as exc:
            logger.debug("Skipping %s on %s: %s", filename, branch, exc)
            continue
        if blob is None:
            continue
        environment = find_environment(blob.content.decode("utf-8", errors="replace"))
        if environment:
            return environment
    return ""
