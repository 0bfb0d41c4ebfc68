"""Discover or allocate the Terraform S3 state backend.

The committed ``backend.tf`` at the repository root is the only durable record
of the state bucket, so discovery always wins: a bucket name is generated only
when no backend declaration exists yet. Re-running the synchronizer therefore
never allocates a second bucket.

Examples
--------
>>> sanitize_fragment("My_Org.", OWNER_FRAGMENT_LENGTH)
'my-org'
>>> generate_bucket_name("My_Org.", "Example--Repo", suffix=42)
'tf-state-my-org-example-repo-42'
>>> parse_backend('bucket = "b"\\nregion = "eu-west-1"', "us-east-1").region
'eu-west-1'
"""

from __future__ import annotations

import logging
import re
import secrets

from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_models import BackendLocation

BACKEND_FILE = "backend.tf"
BUCKET_PREFIX = "tf-state"
OWNER_FRAGMENT_LENGTH = 20
REPO_FRAGMENT_LENGTH = 20
BUCKET_SUFFIX_RANGE = 100_000
DEFAULT_REGION = "us-east-1"

_DISALLOWED = re.compile(r"[^a-z0-9-]")
_REPEATED_HYPHENS = re.compile(r"-{2,}")
_ASSIGNMENT = re.compile(
    r"""^\s*(?P<key>bucket|region)\s*=\s*(?P<quote>["'])(?P<value>[^"']*)(?P=quote)"""
)

logger = logging.getLogger(__name__)


def sanitize_fragment(value: str, max_length: int) -> str:
    """Reduce ``value`` to a bucket-safe fragment of at most ``max_length``.

    The value is lowercased, ``_`` and ``.`` become hyphens, anything outside
    ``[a-z0-9-]`` is dropped, runs of hyphens collapse, and the result is
    truncated before leading and trailing hyphens are trimmed.

    Examples
    --------
    >>> sanitize_fragment("Example--Repo", 20)
    'example-repo'
    >>> sanitize_fragment("a" * 30, 5)
    'aaaaa'
    """
    fragment = value.lower().replace("_", "-").replace(".", "-")
    fragment = _DISALLOWED.sub("", fragment)
    fragment = _REPEATED_HYPHENS.sub("-", fragment)
    return fragment[:max_length].strip("-")


def generate_bucket_name(owner: str, repo: str, suffix: int | None = None) -> str:
    """Compose a state bucket name from owner, repo, and a numeric suffix.

    The name is ``tf-state-<owner>-<repo>-<suffix>``; fragments that sanitise
    to nothing are left out. Lengths are bounded so the result never exceeds
    the 63-character S3 limit.
    """
    if suffix is None:
        suffix = secrets.randbelow(BUCKET_SUFFIX_RANGE)
    parts = [
        BUCKET_PREFIX,
        sanitize_fragment(owner, OWNER_FRAGMENT_LENGTH),
        sanitize_fragment(repo, REPO_FRAGMENT_LENGTH),
        str(suffix % BUCKET_SUFFIX_RANGE),
    ]
    return "-".join(part for part in parts if part)


def parse_backend(text: str, default_region: str = DEFAULT_REGION) -> BackendLocation | None:
    """Extract bucket and region from a ``backend.tf`` body.

    Only simple ``key = "value"`` lines are recognised; the first assignment
    of each key wins. Returns ``None`` when no bucket is declared.
    """
    found: dict[str, str] = {}
    for line in text.splitlines():
        match = _ASSIGNMENT.match(line)
        if match is None:
            continue
        found.setdefault(match.group("key"), match.group("value").strip())

    bucket = found.get("bucket")
    if not bucket:
        return None
    return BackendLocation(bucket=bucket, region=found.get("region") or default_region)


def discover_backend(
    client: GitHubClient,
    owner: str,
    repo: str,
    default_region: str = DEFAULT_REGION,
    *,
    ref: str | None = None,
) -> BackendLocation | None:
    """Read the backend declaration committed on ``ref``.

    Without ``ref`` the default branch is read; every branch shares the bucket
    recorded there.
    """
    blob = client.get_file(owner, repo, BACKEND_FILE, ref=ref)
    if blob is None:
        return None
    try:
        text = blob.content.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Ignoring undecodable %s in %s/%s", BACKEND_FILE, owner, repo)
        return None
    return parse_backend(text, default_region)


def resolve_backend(
    client: GitHubClient,
    owner: str,
    repo: str,
    default_region: str = DEFAULT_REGION,
    suffix: int | None = None,
    *,
    branch: str | None = None,
) -> tuple[BackendLocation, bool]:
    """Return the backend to use and whether it was discovered.

    The default branch is consulted first. When it records no backend, the
    ``backend.tf`` an earlier run committed to ``branch`` is used, so a re-run
    never allocates a second bucket. A name is generated only when neither
    declares one.

    Examples
    --------
    >>> location, discovered = resolve_backend(client, "acme", "infra", branch="dev")
    """
    discovered = discover_backend(client, owner, repo, default_region)
    if discovered is None and branch:
        discovered = discover_backend(client, owner, repo, default_region, ref=branch)
    if discovered is not None:
        return discovered, True
    bucket = generate_bucket_name(owner, repo, suffix)
    return BackendLocation(bucket=bucket, region=default_region), False


def render_backend_tf(location: BackendLocation, branch: str) -> str:
    """Render the ``backend.tf`` declaration for ``branch``."""
    return (
        "terraform {\n"
        '  backend "s3" {\n'
        f'    bucket  = "{location.bucket}"\n'
        f'    key     = "{location.state_key(branch)}"\n'
        f'    region  = "{location.region}"\n'
        "    encrypt = true\n"
        "  }\n"
        "}\n"
    )
