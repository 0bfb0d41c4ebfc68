"""Guarded destroy of an environment's infrastructure.

Destroying is irreversible, so the orchestrator walks the operator through a
strictly linear set of confirmations before anything remote is touched::

    SELECTING -> WARNED_ONCE -> TYPED_CONFIRMED -> FINAL_CONFIRMED -> DISPATCHED

Declining at any step ends in ``CANCELLED`` with no remote mutation. Only after
the final confirmation is the destroy workflow refreshed on the default branch
and a ``workflow_dispatch`` event sent. The remote workflow re-checks the
``confirm_destroy`` token itself.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Protocol

from tf_pipeline._backend import DEFAULT_REGION, discover_backend
from tf_pipeline._commit_builder import update_file
from tf_pipeline._environment import detect_environment
from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_errors import (
    DestroyError,
    GitHubAPIError,
    PipelineValidationError,
)
from tf_pipeline._pipeline_models import (
    DestroyRequest,
    DestroyStage,
    DispatchResult,
    EnvironmentChoice,
)
from tf_pipeline._templates import (
    DESTROY_WORKFLOW_FILE,
    DESTROY_WORKFLOW_PATH,
    render_destroy_workflow,
)

logger = logging.getLogger(__name__)

WORKFLOWS_DIR = ".github/workflows"
CONFIRM_DESTROY_TOKEN = "DESTROY"
WORKFLOW_INDEX_DELAY_SECONDS = 5.0


class Prompter(Protocol):
    """Operator interaction used by :class:`DestroyOrchestrator`.

    Every method returns ``None`` or ``False`` when the operator declines.
    """

    def select(
        self, title: str, description: str, options: Sequence[EnvironmentChoice]
    ) -> EnvironmentChoice | None: ...

    def confirm(
        self, title: str, description: str, *, affirmative: str, negative: str
    ) -> bool: ...

    def text(
        self, title: str, description: str, *, error: str | None
    ) -> str | None: ...


def expected_confirmation(owner: str, repo: str, environment: str) -> str:
    """Return the literal the operator must type.

    Examples
    --------
    >>> expected_confirmation("acme", "infra", "prod")
    'acme/infra-prod'
    """
    return f"{owner}/{repo}-{environment}"


def validate_confirmation(expected: str) -> Callable[[str], str | None]:
    """Return an exact-match validator producing an error message or ``None``.

    Examples
    --------
    >>> check = validate_confirmation("acme/infra-prod")
    >>> check("acme/infra-prod") is None
    True
    >>> check("ACME/infra-prod")
    'must match exactly: acme/infra-prod'
    """

    def _validate(value: str) -> str | None:
        if value != expected:
            return f"must match exactly: {expected}"
        return None

    return _validate


def list_destroy_candidates(
    client: GitHubClient, owner: str, repo: str
) -> list[EnvironmentChoice]:
    """Return one choice per branch that carries a workflows directory."""
    choices: list[EnvironmentChoice] = []
    for branch in client.list_branches(owner, repo):
        if not client.path_exists(owner, repo, WORKFLOWS_DIR, ref=branch):
            continue
        environment = detect_environment(client, owner, repo, branch)
        if environment:
            label = f"Environment: {environment} (branch: {branch})"
            choices.append(EnvironmentChoice(value=environment, branch=branch, label=label))
        else:
            choices.append(
                EnvironmentChoice(value=branch, branch=branch, label=f"Branch: {branch}")
            )
    return choices


def dispatch_destroy(
    client: GitHubClient,
    owner: str,
    repo: str,
    request: DestroyRequest,
    *,
    default_region: str = DEFAULT_REGION,
    sleep: Callable[[float], None] = time.sleep,
    index_delay: float = WORKFLOW_INDEX_DELAY_SECONDS,
    echo: Callable[[str], object] = print,
) -> DispatchResult:
    """Refresh the destroy workflow and dispatch it for ``request``.

    The workflow file is always written to the default branch, which is where
    GitHub resolves ``workflow_dispatch`` definitions, and the dispatch also
    targets the default branch. The branch to destroy travels as the
    ``environment`` input.

    Raises
    ------
    PipelineValidationError
        Raised when ``request`` has not passed the final confirmation.
    DestroyError
        Raised when any remote step fails; nothing is retried.
    """
    if request.stage is not DestroyStage.FINAL_CONFIRMED:
        msg = f"Destroy request is {request.stage.value}, not final_confirmed"
        raise PipelineValidationError(msg)

    try:
        info = client.get_repository(owner, repo)
    except GitHubAPIError as exc:
        raise DestroyError(f"failed to get repository info: {exc}") from exc
    if info is None:
        raise DestroyError(f"repository {owner}/{repo} not found")
    default_branch = info.default_branch

    echo("Updating destroy workflow with latest template...")
    try:
        update_file(
            client,
            owner,
            repo,
            DESTROY_WORKFLOW_PATH,
            render_destroy_workflow().encode("utf-8"),
            branch=default_branch,
            message="Update Terraform destroy workflow",
        )
    except GitHubAPIError as exc:
        raise DestroyError(f"failed to update destroy workflow: {exc}") from exc

    echo("Waiting for GitHub to process workflow update...")
    sleep(index_delay)

    try:
        backend = discover_backend(client, owner, repo, default_region)
    except GitHubAPIError as exc:
        raise DestroyError(f"failed to read backend configuration: {exc}") from exc
    if backend is None:
        raise DestroyError(f"no backend.tf with a bucket found in {owner}/{repo}")
    echo(f"Read from backend.tf - Region: {backend.region}, Bucket: {backend.bucket}")

    inputs = {
        "environment": request.target_branch,
        "aws_region": backend.region,
        "tf_state_bucket": backend.bucket,
        "confirm_destroy": CONFIRM_DESTROY_TOKEN,
    }
    try:
        client.dispatch_workflow(
            owner, repo, DESTROY_WORKFLOW_FILE, ref=default_branch, inputs=inputs
        )
    except GitHubAPIError as exc:
        raise DestroyError(f"failed to trigger destroy workflow: {exc}") from exc

    return DispatchResult(workflow=DESTROY_WORKFLOW_FILE, ref=default_branch, inputs=inputs)


class DestroyOrchestrator:
    """Drive the destroy confirmations and the final dispatch.

    Parameters
    ----------
    client
        Authenticated GitHub client.
    owner, repo
        Repository whose environment is destroyed.
    prompter
        Operator interaction implementation.
    default_region
        Region used when ``backend.tf`` omits one.
    sleep, index_delay
        Delay applied between refreshing the workflow and dispatching it.
    echo
        Progress output.
    """

    def __init__(
        self,
        client: GitHubClient,
        owner: str,
        repo: str,
        prompter: Prompter,
        *,
        default_region: str = DEFAULT_REGION,
        sleep: Callable[[float], None] = time.sleep,
        index_delay: float = WORKFLOW_INDEX_DELAY_SECONDS,
        echo: Callable[[str], object] = print,
    ) -> None:
        self.client = client
        self.owner = owner
        self.repo = repo
        self.prompter = prompter
        self.default_region = default_region
        self.sleep = sleep
        self.index_delay = index_delay
        self.echo = echo
        self.dispatch: DispatchResult | None = None

    def _select(self) -> DestroyRequest | None:
        choices = list_destroy_candidates(self.client, self.owner, self.repo)
        if not choices:
            msg = f"no branches with workflows found in {self.owner}/{self.repo}"
            raise DestroyError(msg)
        choice = self.prompter.select(
            "Select Environment to Destroy",
            f"Choose from {len(choices)} available environments/branches",
            choices,
        )
        if choice is None:
            return None
        return DestroyRequest(environment=choice.value, target_branch=choice.branch)

    def _warn(self, request: DestroyRequest) -> bool:
        return self.prompter.confirm(
            f"DANGER: Destroy {request.environment} Resources?",
            (
                f"This will run 'terraform destroy' on {request.environment} "
                f"(branch: {request.target_branch}) for {self.owner}/{self.repo}.\n"
                "This action CANNOT be undone!"
            ),
            affirmative="Yes, I understand the risks",
            negative="Cancel",
        )

    def _type_confirmation(self, request: DestroyRequest) -> bool:
        expected = expected_confirmation(self.owner, self.repo, request.environment)
        validate = validate_confirmation(expected)
        error: str | None = None
        while True:
            answer = self.prompter.text(
                "Type to confirm destruction",
                f"Type '{expected}' to confirm {request.environment} destruction:",
                error=error,
            )
            if answer is None:
                return False
            error = validate(answer)
            if error is None:
                return True

    def _final_confirm(self, request: DestroyRequest) -> bool:
        return self.prompter.confirm(
            "FINAL WARNING",
            (
                f"This will PERMANENTLY DESTROY all {request.environment} resources.\n"
                "Are you absolutely sure?"
            ),
            affirmative=f"YES, DESTROY {request.environment.upper()}",
            negative="Cancel",
        )

    def run(self) -> DestroyRequest:
        """Walk every confirmation stage and dispatch on full consent.

        Returns
        -------
        DestroyRequest
            The request in its terminal stage, ``DISPATCHED`` or ``CANCELLED``.
        """
        request = self._select()
        if request is None:
            return DestroyRequest("", "", DestroyStage.CANCELLED)

        steps = (
            (self._warn, DestroyStage.WARNED_ONCE),
            (self._type_confirmation, DestroyStage.TYPED_CONFIRMED),
            (self._final_confirm, DestroyStage.FINAL_CONFIRMED),
        )
        for step, next_stage in steps:
            if not step(request):
                logger.info("Destroy of %s cancelled at %s", request.environment, request.stage.value)
                return replace(request, stage=DestroyStage.CANCELLED)
            request = replace(request, stage=next_stage)

        self.dispatch = dispatch_destroy(
            self.client,
            self.owner,
            self.repo,
            request,
            default_region=self.default_region,
            sleep=self.sleep,
            index_delay=self.index_delay,
            echo=self.echo,
        )
        return replace(request, stage=DestroyStage.DISPATCHED)
