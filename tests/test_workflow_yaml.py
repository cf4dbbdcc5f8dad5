"""
Tests that all GitHub Actions workflow files are syntactically valid YAML,
have the expected top-level structure, and that the CI job matrix only runs
on OS identifiers install_deps.py recognizes.  Catching a bad workflow file
locally (via pytest) is much faster than waiting for a CI run to fail.
"""

import pathlib
import re
import sys

import pytest
import yaml

ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import ci_matrix  # noqa: E402
import dependency_manager  # noqa: E402

WORKFLOWS_DIR = ROOT / ".github" / "workflows"


def workflow_files():
    return sorted(WORKFLOWS_DIR.glob("*.yml"))


@pytest.mark.parametrize("wf_path", workflow_files(), ids=lambda p: p.name)
def test_workflow_yaml_valid(wf_path):
    """Every workflow file must parse as valid YAML without errors."""
    text = wf_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        pytest.fail(f"{wf_path.name}: YAML parse error: {exc}")
    assert data is not None, f"{wf_path.name}: parsed to None (empty file?)"


@pytest.mark.parametrize("wf_path", workflow_files(), ids=lambda p: p.name)
def test_workflow_has_name(wf_path):
    """Every workflow file should have a top-level 'name' key."""
    data = yaml.safe_load(wf_path.read_text(encoding="utf-8"))
    # 'on' parses as True in YAML 1.1; check for name separately
    assert "name" in data, f"{wf_path.name}: missing 'name' key"


@pytest.mark.parametrize("wf_path", workflow_files(), ids=lambda p: p.name)
def test_workflow_has_jobs(wf_path):
    """Every workflow file must have at least one job defined."""
    data = yaml.safe_load(wf_path.read_text(encoding="utf-8"))
    assert "jobs" in data, f"{wf_path.name}: missing 'jobs' key"
    assert data["jobs"], f"{wf_path.name}: 'jobs' is empty"


_RUN_BLOCK = re.compile(r"^(\s*(?:-\s+)?)run:\s*[|>][-+]?\s*$")
_YAML_KEY = re.compile(r"^\s*(?:-\s+)?[\w\-]+\s*:|^\s*-\s")


def _escaped_run_lines(text: str) -> list[tuple[int, str]]:
    """Return (lineno, line) for lines that fall out of a run: | block scalar.

    Inside a block scalar every content line must be indented deeper than the
    run: key.  A non-blank line at or left of that column ends the scalar; if
    it is not a new YAML key or list item, it was meant as script content
    (typically an unindented heredoc body) and breaks the workflow.
    """
    escaped = []
    key_column = None
    for lineno, line in enumerate(text.splitlines(), start=1):
        m = _RUN_BLOCK.match(line)
        if m:
            key_column = len(m.group(1))
            continue
        if key_column is None or not line.strip():
            continue
        indent = len(line) - len(line.lstrip())
        if indent <= key_column:
            if not _YAML_KEY.match(line):
                escaped.append((lineno, line))
            key_column = None
    return escaped


@pytest.mark.parametrize("wf_path", workflow_files(), ids=lambda p: p.name)
def test_workflow_run_blocks_indented(wf_path):
    """No script line may escape a run: | block in a checked-in workflow."""
    escaped = _escaped_run_lines(wf_path.read_text(encoding="utf-8"))
    if escaped:
        detail = "; ".join(f"line {ln}: {text!r}" for ln, text in escaped[:5])
        pytest.fail(f"{wf_path.name}: content outside its run: | block: {detail}")


_GOOD_RUN_BLOCKS = """\
name: x
on: push
jobs:
  build:
    runs-on: ubuntu-latest
    steps:
      - name: Install deps
        run: |
          sudo "$(command -v python)" install_deps.py ubuntu-latest
          cat > note.txt <<EOF
          installed
          EOF

      - run: |-
          python -m pytest
  lint:
    runs-on: ubuntu-latest
"""

_BAD_RUN_BLOCK = """\
name: x
on: push
jobs:
  build:
    runs-on: ubuntu-latest
    steps:
      - run: |
          cat > note.txt <<EOF
installed
EOF
"""


def test_run_blocks_well_indented():
    assert _escaped_run_lines(_GOOD_RUN_BLOCKS) == []


def test_run_block_unindented_heredoc_detected():
    assert _escaped_run_lines(_BAD_RUN_BLOCK) == [(9, "installed")]


# ---------------------------------------------------------------------------
# CI job matrix vs recognized OS identifiers
# ---------------------------------------------------------------------------


def test_ci_matrix_os_ids_are_recognized():
    """Every OS the CI matrix runs on must be known to install_deps.py."""
    os_ids = ci_matrix.matrix_os_ids()
    assert os_ids, "ci.yml has no strategy.matrix.os list"
    unknown = [o for o in os_ids if o not in dependency_manager.PACKAGE_SETS]
    assert not unknown, f"ci.yml matrix uses unrecognized OS id(s): {unknown}"


def test_ci_matrix_covers_every_recognized_os():
    assert set(ci_matrix.matrix_os_ids()) == set(dependency_manager.PACKAGE_SETS)


def test_ci_install_step_passes_matrix_os():
    """The install step must hand the matrix OS to install_deps.py."""
    steps = ci_matrix.install_steps()
    assert len(steps) == 1, f"expected one install_deps.py step, found {steps}"
    assert "${{ matrix.os }}" in steps[0]
    assert "sudo" in steps[0], "apt-get needs root on the Ubuntu runner"


def test_matrix_os_ids_deduplicates(tmp_path):
    wf = tmp_path / "wf.yml"
    wf.write_text(
        "name: x\n"
        "jobs:\n"
        "  a:\n"
        "    strategy:\n"
        "      matrix:\n"
        "        os: [ubuntu-latest, macos-latest]\n"
        "  b:\n"
        "    strategy:\n"
        "      matrix:\n"
        "        os: [macos-latest, ubuntu-latest]\n"
        "  lint:\n"
        "    runs-on: ubuntu-latest\n",
        encoding="utf-8",
    )
    assert ci_matrix.matrix_os_ids(wf) == ["ubuntu-latest", "macos-latest"]


def test_matrix_os_ids_without_matrix(tmp_path):
    wf = tmp_path / "wf.yml"
    wf.write_text(
        "name: x\njobs:\n  build:\n    runs-on: ubuntu-latest\n", encoding="utf-8"
    )
    assert ci_matrix.matrix_os_ids(wf) == []
    assert ci_matrix.install_steps(wf) == []


def test_matrix_os_ids_invalid_yaml(tmp_path):
    wf = tmp_path / "wf.yml"
    wf.write_text("jobs: [\n", encoding="utf-8")
    with pytest.raises(yaml.YAMLError):
        ci_matrix.matrix_os_ids(wf)
