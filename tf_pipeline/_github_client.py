"""Minimal GitHub REST client for the pipeline bootstrapper.

The client wraps :class:`httpx.Client` with bearer authentication, converts
response payloads into the typed models in ``_pipeline_models`` and maps HTTP
failures onto the ``_pipeline_errors`` hierarchy. Every method names the
remote operation it performs so failures can be reported precisely.

Not-found is treated as a signal rather than an error for lookups that the
callers use for control flow (``get_repository``, ``get_ref``, ``get_file``);
those return ``None``.

Examples
--------
>>> from tf_pipeline._pipeline_models import Credentials
>>> with GitHubClient(Credentials("token")) as client:
...     client.get_repository("acme", "infra")
"""

from __future__ import annotations

import base64
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any
from urllib.parse import quote

import httpx

from tf_pipeline._pipeline_errors import (
    GitHubAPIError,
    GitHubConflictError,
    GitHubNotFoundError,
    GitHubRateLimitError,
)
from tf_pipeline._pipeline_models import (
    Credentials,
    GitCommit,
    RecipientKey,
    RepositoryFile,
    RepositoryInfo,
    TreeEntry,
    WorkflowRun,
)
from tf_pipeline._retry import retry_on_rate_limit

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
DEFAULT_TIMEOUT_SECONDS = 30.0
PAGE_SIZE = 100
REGULAR_FILE_MODE = "100644"


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return response.reason_phrase


def _is_rate_limited(response: httpx.Response, message: str) -> bool:
    if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
        return True
    if response.status_code != httpx.codes.FORBIDDEN:
        return False
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    return "rate limit" in message.lower()


def _retry_after(response: httpx.Response) -> float | None:
    """Return the server-requested wait in seconds, if any."""
    header = response.headers.get("retry-after")
    if header is not None:
        try:
            return max(float(header), 0.0)
        except ValueError:
            return None
    reset = response.headers.get("x-ratelimit-reset")
    if reset is not None:
        try:
            return max(float(reset) - time.time(), 0.0)
        except ValueError:
            return None
    return None


def _require(payload: Mapping[str, Any], key: str, operation: str) -> Any:
    """Return ``payload[key]`` or raise when GitHub omitted it."""
    value = payload.get(key)
    if value is None:
        msg = f"response is missing {key!r}"
        raise GitHubAPIError(operation, None, msg)
    return value


def _decode_json(response: httpx.Response, operation: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise GitHubAPIError(operation, response.status_code, "invalid JSON") from exc


def _as_mapping(payload: Any, operation: str) -> Mapping[str, Any]:
    if not isinstance(payload, dict):
        msg = "expected a JSON object"
        raise GitHubAPIError(operation, None, msg)
    return payload


def _repository_info(payload: Mapping[str, Any], operation: str) -> RepositoryInfo:
    owner = _as_mapping(_require(payload, "owner", operation), operation)
    return RepositoryInfo(
        owner=str(_require(owner, "login", operation)),
        name=str(_require(payload, "name", operation)),
        default_branch=str(payload.get("default_branch") or "main"),
        private=bool(payload.get("private", False)),
        html_url=str(payload.get("html_url") or ""),
    )


class GitHubClient:
    """Synchronous GitHub REST API client.

    Parameters
    ----------
    credentials
        Bearer token wrapper.
    base_url
        API root; overridden for GitHub Enterprise or tests.
    timeout
        Per-request timeout in seconds.
    transport
        Optional ``httpx`` transport (``httpx.MockTransport`` in tests).
    retries
        Attempts made when GitHub reports a rate limit.
    sleep
        Sleep function used between rate-limit retries.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        base_url: str = GITHUB_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
        retries: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http = httpx.Client(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {credentials.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
            timeout=timeout,
            transport=transport,
        )
        self._send = retry_on_rate_limit(retries=retries, sleep=sleep)(self._send_once)

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._http.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    # -- transport -------------------------------------------------------

    def _send_once(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = self._http.request(method, url, json=json, params=params)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(operation, None, str(exc)) from exc

        if response.is_success:
            return response

        message = _error_message(response)
        status = response.status_code
        if _is_rate_limited(response, message):
            raise GitHubRateLimitError(
                operation, status, message, retry_after=_retry_after(response)
            )
        if status == httpx.codes.NOT_FOUND:
            raise GitHubNotFoundError(operation, status, message)
        raise GitHubAPIError(operation, status, message)

    def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        return self._send(operation, method, url, json=json, params=params)

    def _json(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> Mapping[str, Any]:
        response = self._request(operation, method, url, json=json, params=params)
        return _as_mapping(_decode_json(response, operation), operation)

    def _paginate(
        self,
        operation: str,
        url: str,
        params: Mapping[str, Any] | None = None,
    ) -> Iterator[Mapping[str, Any]]:
        """Yield objects from a list endpoint, following ``Link: next``."""
        next_url: str | None = url
        next_params: Mapping[str, Any] | None = {"per_page": PAGE_SIZE, **(params or {})}
        while next_url is not None:
            response = self._request(operation, "GET", next_url, params=next_params)
            payload = _decode_json(response, operation)
            if not isinstance(payload, list):
                msg = "expected a JSON array"
                raise GitHubAPIError(operation, response.status_code, msg)
            for item in payload:
                yield _as_mapping(item, operation)
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string.
            next_params = None

    @staticmethod
    def _repo_path(owner: str, repo: str) -> str:
        return f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"

    # -- users, organisations, repositories -------------------------------

    def get_authenticated_user(self) -> str:
        """Return the login of the token owner."""
        payload = self._json("get authenticated user", "GET", "/user")
        return str(_require(payload, "login", "get authenticated user"))

    def get_repository(self, owner: str, repo: str) -> RepositoryInfo | None:
        """Return repository metadata, or ``None`` when it does not exist."""
        operation = f"get repository {owner}/{repo}"
        try:
            payload = self._json(operation, "GET", self._repo_path(owner, repo))
        except GitHubNotFoundError:
            return None
        return _repository_info(payload, operation)

    def create_repository(
        self,
        owner: str,
        repo: str,
        *,
        description: str,
        private: bool,
        auto_init: bool = True,
    ) -> RepositoryInfo:
        """Create ``owner/repo`` under the user or an organisation."""
        operation = f"create repository {owner}/{repo}"
        body = {
            "name": repo,
            "description": description,
            "private": private,
            "auto_init": auto_init,
        }
        if owner.lower() == self.get_authenticated_user().lower():
            url = "/user/repos"
        else:
            url = f"/orgs/{quote(owner, safe='')}/repos"
        payload = self._json(operation, "POST", url, json=body)
        return _repository_info(payload, operation)

    def list_user_repositories(self) -> list[RepositoryInfo]:
        """List repositories the token owner can access."""
        operation = "list user repositories"
        params = {
            "visibility": "all",
            "affiliation": "owner,collaborator,organization_member",
            "sort": "updated",
        }
        return [
            _repository_info(item, operation)
            for item in self._paginate(operation, "/user/repos", params)
        ]

    def list_organizations(self) -> list[str]:
        """List organisation logins of the token owner."""
        operation = "list organizations"
        return [
            str(_require(item, "login", operation))
            for item in self._paginate(operation, "/user/orgs")
        ]

    def list_org_repositories(self, org: str) -> list[RepositoryInfo]:
        """List repositories of organisation ``org``."""
        operation = f"list repositories of {org}"
        url = f"/orgs/{quote(org, safe='')}/repos"
        return [
            _repository_info(item, operation)
            for item in self._paginate(operation, url, {"type": "all"})
        ]

    def list_branches(self, owner: str, repo: str) -> list[str]:
        """List branch names of ``owner/repo``."""
        operation = f"list branches of {owner}/{repo}"
        url = f"{self._repo_path(owner, repo)}/branches"
        return [
            str(_require(item, "name", operation))
            for item in self._paginate(operation, url)
        ]

    # -- git data ----------------------------------------------------------

    def get_ref(self, owner: str, repo: str, branch: str) -> str | None:
        """Return the commit sha of ``branch`` or ``None`` if it is absent."""
        operation = f"get reference heads/{branch}"
        url = f"{self._repo_path(owner, repo)}/git/ref/heads/{quote(branch, safe='/')}"
        try:
            payload = self._json(operation, "GET", url)
        except GitHubNotFoundError:
            return None
        except GitHubAPIError as exc:
            # Empty repositories answer 409 for every git-data read.
            if exc.status_code == httpx.codes.CONFLICT:
                return None
            raise
        target = _as_mapping(_require(payload, "object", operation), operation)
        return str(_require(target, "sha", operation))

    def get_commit(self, owner: str, repo: str, sha: str) -> GitCommit:
        """Return the commit ``sha`` together with its tree sha."""
        operation = f"get commit {sha}"
        url = f"{self._repo_path(owner, repo)}/git/commits/{sha}"
        payload = self._json(operation, "GET", url)
        tree = _as_mapping(_require(payload, "tree", operation), operation)
        return GitCommit(
            sha=str(_require(payload, "sha", operation)),
            tree_sha=str(_require(tree, "sha", operation)),
        )

    def get_tree(
        self, owner: str, repo: str, sha: str, *, recursive: bool = True
    ) -> list[TreeEntry]:
        """Return the entries of tree ``sha``."""
        operation = f"get tree {sha}"
        url = f"{self._repo_path(owner, repo)}/git/trees/{sha}"
        params = {"recursive": "1"} if recursive else None
        payload = self._json(operation, "GET", url, params=params)
        if payload.get("truncated"):
            msg = "tree listing was truncated by GitHub"
            raise GitHubAPIError(operation, None, msg)
        entries = _require(payload, "tree", operation)
        return [
            TreeEntry(
                path=str(_require(entry, "path", operation)),
                mode=str(_require(entry, "mode", operation)),
                type=str(_require(entry, "type", operation)),
                sha=str(_require(entry, "sha", operation)),
            )
            for entry in (_as_mapping(item, operation) for item in entries)
        ]

    def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        """Upload ``content`` as a blob and return its sha."""
        operation = "create blob"
        url = f"{self._repo_path(owner, repo)}/git/blobs"
        body = {
            "content": base64.b64encode(content).decode("ascii"),
            "encoding": "base64",
        }
        payload = self._json(operation, "POST", url, json=body)
        return str(_require(payload, "sha", operation))

    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: Sequence[TreeEntry],
        *,
        base_tree: str | None = None,
    ) -> str:
        """Create a tree from ``entries`` layered over ``base_tree``."""
        operation = "create tree"
        url = f"{self._repo_path(owner, repo)}/git/trees"
        body: dict[str, Any] = {
            "tree": [
                {
                    "path": entry.path,
                    "mode": entry.mode,
                    "type": entry.type,
                    "sha": entry.sha,
                }
                for entry in entries
            ]
        }
        if base_tree is not None:
            body["base_tree"] = base_tree
        payload = self._json(operation, "POST", url, json=body)
        return str(_require(payload, "sha", operation))

    def create_commit(
        self,
        owner: str,
        repo: str,
        *,
        message: str,
        tree: str,
        parents: Sequence[str],
    ) -> str:
        """Create a commit object and return its sha."""
        operation = "create commit"
        url = f"{self._repo_path(owner, repo)}/git/commits"
        body = {"message": message, "tree": tree, "parents": list(parents)}
        payload = self._json(operation, "POST", url, json=body)
        return str(_require(payload, "sha", operation))

    def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        """Create ``refs/heads/<branch>`` pointing at ``sha``."""
        operation = f"create reference heads/{branch}"
        url = f"{self._repo_path(owner, repo)}/git/refs"
        try:
            self._request(
                operation, "POST", url, json={"ref": f"refs/heads/{branch}", "sha": sha}
            )
        except GitHubAPIError as exc:
            if exc.status_code == httpx.codes.UNPROCESSABLE_ENTITY:
                raise GitHubConflictError(operation, exc.status_code, exc.message) from exc
            raise

    def update_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        """Move ``branch`` to ``sha`` without forcing.

        Raises
        ------
        GitHubConflictError
            Raised when the branch moved since it was read.
        """
        operation = f"update reference heads/{branch}"
        url = f"{self._repo_path(owner, repo)}/git/refs/heads/{quote(branch, safe='/')}"
        try:
            self._request(operation, "PATCH", url, json={"sha": sha, "force": False})
        except GitHubAPIError as exc:
            if exc.status_code in (httpx.codes.CONFLICT, httpx.codes.UNPROCESSABLE_ENTITY):
                raise GitHubConflictError(operation, exc.status_code, exc.message) from exc
            raise

    # -- contents ----------------------------------------------------------

    def get_file(
        self, owner: str, repo: str, path: str, *, ref: str | None = None
    ) -> RepositoryFile | None:
        """Read a file through the contents API; ``None`` when absent.

        Without ``ref`` GitHub reads the repository's default branch.
        """
        operation = f"get contents {path}"
        url = f"{self._repo_path(owner, repo)}/contents/{quote(path)}"
        params = {"ref": ref} if ref else None
        try:
            response = self._request(operation, "GET", url, params=params)
        except GitHubNotFoundError:
            return None
        payload = _decode_json(response, operation)
        if not isinstance(payload, dict) or payload.get("type") != "file":
            return None
        raw = str(payload.get("content") or "")
        try:
            content = base64.b64decode(raw)
        except ValueError as exc:
            raise GitHubAPIError(operation, response.status_code, "invalid base64") from exc
        return RepositoryFile(
            path=str(_require(payload, "path", operation)),
            sha=str(_require(payload, "sha", operation)),
            content=content,
        )

    def path_exists(
        self, owner: str, repo: str, path: str, *, ref: str | None = None
    ) -> bool:
        """Return whether ``path`` (file or directory) exists at ``ref``."""
        operation = f"get contents {path}"
        url = f"{self._repo_path(owner, repo)}/contents/{quote(path)}"
        params = {"ref": ref} if ref else None
        try:
            self._request(operation, "GET", url, params=params)
        except GitHubNotFoundError:
            return False
        return True

    def put_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes,
        *,
        message: str,
        branch: str | None = None,
        sha: str | None = None,
    ) -> str:
        """Create or update one file; returns the resulting commit sha."""
        operation = f"{'update' if sha else 'create'} file {path}"
        url = f"{self._repo_path(owner, repo)}/contents/{quote(path)}"
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
        }
        if branch:
            body["branch"] = branch
        if sha:
            body["sha"] = sha
        payload = self._json(operation, "PUT", url, json=body)
        commit = _as_mapping(_require(payload, "commit", operation), operation)
        return str(_require(commit, "sha", operation))

    # -- actions -----------------------------------------------------------

    def get_secrets_public_key(self, owner: str, repo: str) -> RecipientKey:
        """Fetch the repository's current secret-encryption key."""
        operation = "get secrets public key"
        url = f"{self._repo_path(owner, repo)}/actions/secrets/public-key"
        payload = self._json(operation, "GET", url)
        key_b64 = str(_require(payload, "key", operation))
        try:
            key = base64.b64decode(key_b64)
        except ValueError as exc:
            raise GitHubAPIError(operation, None, "invalid public key encoding") from exc
        return RecipientKey(key_id=str(_require(payload, "key_id", operation)), key=key)

    def put_secret(
        self, owner: str, repo: str, name: str, encrypted_value: str, key_id: str
    ) -> None:
        """Create or update repository secret ``name``."""
        operation = f"put secret {name}"
        url = f"{self._repo_path(owner, repo)}/actions/secrets/{quote(name, safe='')}"
        self._request(
            operation,
            "PUT",
            url,
            json={"encrypted_value": encrypted_value, "key_id": key_id},
        )

    def list_workflow_runs(
        self, owner: str, repo: str, *, per_page: int = 5
    ) -> list[WorkflowRun]:
        """Return the most recent workflow runs of ``owner/repo``."""
        operation = f"list workflow runs of {owner}/{repo}"
        url = f"{self._repo_path(owner, repo)}/actions/runs"
        payload = self._json(operation, "GET", url, params={"per_page": per_page})
        runs = _require(payload, "workflow_runs", operation)
        return [
            WorkflowRun(
                name=str(run.get("name") or "N/A"),
                status=str(run.get("status") or ""),
                conclusion=run.get("conclusion"),
                created_at=str(run.get("created_at") or ""),
                head_branch=str(run.get("head_branch") or "N/A"),
                html_url=str(run.get("html_url") or "N/A"),
            )
            for run in (_as_mapping(item, operation) for item in runs)
        ]

    def dispatch_workflow(
        self,
        owner: str,
        repo: str,
        workflow: str,
        *,
        ref: str,
        inputs: Mapping[str, str],
    ) -> None:
        """Trigger a ``workflow_dispatch`` event for ``workflow`` on ``ref``."""
        operation = f"dispatch workflow {workflow}"
        url = (
            f"{self._repo_path(owner, repo)}/actions/workflows/"
            f"{quote(workflow, safe='')}/dispatches"
        )
        self._request(operation, "POST", url, json={"ref": ref, "inputs": dict(inputs)})
