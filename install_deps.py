"""
install_deps.py - installs the native build dependencies for one CI agent.

Run once per job-matrix entry, with the matrix OS as the only argument:

    sudo python install_deps.py ubuntu-latest    # apt-get install ...
    python install_deps.py macos-latest          # Nothing to do

Exit status: 0 on success, 1 for an unknown OS / bad usage / bad config,
otherwise whatever the package manager returned.
"""

import importlib.metadata
import re
import sys
from datetime import datetime
from pathlib import Path

from dependency_manager import DependencyManager, UnrecognizedOSError
from install_config import ConfigError, load_config
from system_check import SystemChecker

ROOT = Path(__file__).resolve().parent

USAGE = (
    "Usage: python install_deps.py <os-identifier> [--dry-run] [--check] "
    "[--config PATH]\n"
    "       python install_deps.py --list\n"
    "       python install_deps.py --version"
)

_FLAGS = {"--dry-run", "--check", "--list", "--version"}


def _current_version() -> str:
    """Return the installed distribution version.

    Falls back to pyproject.toml next to this file (running from a checkout
    without installing), then "0.0.0".
    """
    try:
        return importlib.metadata.version("install-deps")
    except importlib.metadata.PackageNotFoundError:
        pass

    try:
        toml = (ROOT / "pyproject.toml").read_text(encoding="utf-8")
        m = re.search(r'^version\s*=\s*["\']([^"\']+)', toml, re.M)
        if m:
            return m.group(1)
    except OSError:
        pass
    return "0.0.0"


def make_logger(log_file=None):
    """Return log(message): prints, and appends a timestamped copy to log_file."""

    def log(message):
        print(message)
        if log_file is None:
            return
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(f"[{timestamp}] {message}\n")
        except OSError:
            pass  # the log file never fails an install

    return log


def parse_args(argv: list) -> dict | None:
    """Split argv into options; return None when the usage is wrong."""
    opts = {"os_id": None, "config": None}
    opts.update({flag.lstrip("-").replace("-", "_"): False for flag in _FLAGS})
    positional = []

    args = iter(argv)
    for arg in args:
        if arg == "--config":
            opts["config"] = next(args, None)
            if opts["config"] is None:
                return None
        elif arg.startswith("--config="):
            opts["config"] = arg.split("=", 1)[1]
        elif arg in _FLAGS:
            opts[arg.lstrip("-").replace("-", "_")] = True
        elif arg.startswith("--"):
            return None
        else:
            positional.append(arg)

    if opts["list"] or opts["version"]:
        return opts if not positional else None
    if len(positional) != 1:
        return None
    opts["os_id"] = positional[0]
    return opts


def main(argv=None) -> int:
    """Command line interface; returns the process exit status."""
    if argv is None:
        argv = sys.argv[1:]

    opts = parse_args(argv)
    if opts is None:
        print(USAGE)
        return 1

    if opts["version"]:
        print(f"install-deps {_current_version()}")
        return 0

    warnings = []
    try:
        config = load_config(opts["config"], warn=warnings.append)
    except ConfigError as e:
        for warning in warnings:
            print(warning)
        print(f"[ERROR] {e}")
        return 1

    log = make_logger(config["log_file"])
    for warning in warnings:
        log(warning)
    manager = DependencyManager(
        packages=config["packages"],
        install_command=config["install_command"],
        dry_run=opts["dry_run"],
        log=log,
    )

    if opts["list"]:
        for os_id in manager.recognized:
            names = manager.packages_for(os_id)
            print(f"{os_id}: {' '.join(names) if names else '(none)'}")
        return 0

    os_id = opts["os_id"]
    try:
        code = manager.install(os_id)
    except UnrecognizedOSError as e:
        log(str(e))
        return 1

    if code != 0 or not opts["check"] or opts["dry_run"]:
        return code

    checker = SystemChecker()
    checker.check_all(manager.packages_for(os_id))
    checker.report(log)
    if not checker.ok:
        for error in checker.errors:
            log(f"[ERROR] {error}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
