"""
ci_matrix.py - reads the OS job matrix out of a GitHub Actions workflow.

Used to keep .github/workflows/ci.yml and dependency_manager.PACKAGE_SETS in
sync: every OS the matrix runs on must be one install_deps.py recognizes.
"""

from pathlib import Path

import yaml

ROOT = Path(__file__).resolve().parent
CI_WORKFLOW = ROOT / ".github" / "workflows" / "ci.yml"


def _load(workflow_path) -> dict:
    data = yaml.safe_load(Path(workflow_path).read_text(encoding="utf-8"))
    return data or {}


def matrix_os_ids(workflow_path=CI_WORKFLOW) -> list[str]:
    """Return the OS identifiers of every job matrix, in order, de-duplicated."""
    seen = []
    for job in (_load(workflow_path).get("jobs") or {}).values():
        matrix = (job.get("strategy") or {}).get("matrix") or {}
        for os_id in matrix.get("os") or []:
            if os_id not in seen:
                seen.append(os_id)
    return seen


def install_steps(workflow_path=CI_WORKFLOW) -> list[str]:
    """Return the run: commands that invoke install_deps.py."""
    runs = []
    for job in (_load(workflow_path).get("jobs") or {}).values():
        for step in job.get("steps") or []:
            run = step.get("run") or ""
            if "install_deps.py" in run:
                runs.append(run.strip())
    return runs
