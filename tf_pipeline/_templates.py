"""Load the GitHub Actions workflow templates shipped with the package."""

from __future__ import annotations

from pathlib import Path

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
BRANCH_PLACEHOLDER = "SELECTED_BRANCH"

CI_WORKFLOW_PATH = ".github/workflows/terraform.yml"
DESTROY_WORKFLOW_PATH = ".github/workflows/destroy.yml"
DESTROY_WORKFLOW_FILE = "destroy.yml"


def load_template(name: str) -> str:
    """Return the text of template ``name``."""
    return (TEMPLATE_DIR / name).read_text(encoding="utf-8")


def render_ci_workflow(branch: str) -> str:
    """Return the CI workflow with the target branch substituted.

    Examples
    --------
    >>> "SELECTED_BRANCH" in render_ci_workflow("dev")
    False
    """
    return load_template("terraform.yml").replace(BRANCH_PLACEHOLDER, branch)


def render_destroy_workflow() -> str:
    """Return the destroy workflow; it has no placeholders."""
    return load_template(DESTROY_WORKFLOW_FILE)
