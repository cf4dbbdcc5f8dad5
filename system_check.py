"""
system_check.py - verifies the host can install (or already has) the native
packages for a build agent.

Called by install_deps.py --check after the install, and usable on its own:

    python system_check.py ubuntu-latest
"""

import os
import shutil
import subprocess
import sys

from dependency_manager import PACKAGE_SETS


# ---------------------------------------------------------------------------
# Tool discovery
# ---------------------------------------------------------------------------


def _find_package_manager() -> str | None:
    """Find apt-get via PATH, falling back to apt."""
    return shutil.which("apt-get") or shutil.which("apt")


def _find_dpkg_query() -> str | None:
    return shutil.which("dpkg-query")


def _is_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


# ---------------------------------------------------------------------------
# Internal runner
# ---------------------------------------------------------------------------


def _run(cmd: list) -> tuple:
    """Run a command and return (returncode, combined stdout+stderr)."""
    try:
        r = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=30,
        )
        return r.returncode, (r.stdout + r.stderr).strip()
    except (OSError, subprocess.SubprocessError) as e:
        return -1, str(e)


class SystemChecker:
    """Verifies the package manager, privilege level and installed packages.

    Usage::

        checker = SystemChecker()
        result = checker.check_all(["libasound2-dev"])
        # {component: {"ok": bool, "version": str|None}}
        # checker.checks, checker.errors, checker.warnings populated as side-effects
    """

    def __init__(self) -> None:
        self.checks: list = []  # [{"item": str, "status": str, "description": str}]
        self.errors: list = []  # critical failures
        self.warnings: list = []  # non-critical issues

    # ------------------------------------------------------------------ public

    def check_all(self, packages=()) -> dict:
        """Run all checks for the given package names."""
        self.checks = []
        self.errors = []
        self.warnings = []

        result = {}
        result["python"] = self._check_python()
        result["package_manager"] = self._check_package_manager()
        result["privilege"] = self._check_privilege()
        result["packages"] = self._check_packages(list(packages))
        return result

    @property
    def ok(self) -> bool:
        return not self.errors

    def report(self, log=print) -> None:
        for check in self.checks:
            line = f"{check['item']}: {check['status']}"
            if check["description"]:
                line += f" ({check['description']})"
            log(line)

    # ----------------------------------------------------------------- private

    def _record(
        self,
        item: str,
        ok: bool,
        status: str,
        description: str = "",
        warning_only: bool = False,
    ) -> dict:
        """Append to self.checks and self.errors/warnings; return component dict."""
        self.checks.append({"item": item, "status": status, "description": description})
        if not ok:
            msg = f"{' '.join(item.split()[1:])}: {description or status}"
            if warning_only:
                self.warnings.append(msg)
            else:
                self.errors.append(msg)
        version = status if ok else None
        return {"ok": ok, "version": version}

    def _skip(self, item: str, reason: str) -> dict:
        self.checks.append(
            {"item": f"[SKIP] {item}", "status": f"SKIPPED - {reason}", "description": ""}
        )
        self.warnings.append(f"{item} not checked ({reason})")
        return {"ok": False, "version": None}

    def _check_python(self) -> dict:
        ver = (
            f"{sys.version_info.major}.{sys.version_info.minor}"
            f".{sys.version_info.micro}"
        )
        return self._record("[OK] Python", ok=True, status=f"Python {ver}")

    def _check_package_manager(self) -> dict:
        apt = _find_package_manager()
        if apt:
            _, out = _run([apt, "--version"])
            version = out.splitlines()[0] if out else "unknown"
            return self._record("[OK] Package manager", ok=True, status=version)
        if not sys.platform.startswith("linux"):
            return self._skip("Package manager", f"not needed on {sys.platform}")
        return self._record(
            "[ERROR] Package manager",
            ok=False,
            status="NOT FOUND",
            description="apt-get is not on PATH",
        )

    def _check_privilege(self) -> dict:
        if _is_root():
            return self._record("[OK] Privilege", ok=True, status="root")
        if shutil.which("sudo"):
            return self._record(
                "[WARNING] Privilege",
                ok=False,
                status="not root",
                description="re-run with sudo to install packages",
                warning_only=True,
            )
        return self._record(
            "[WARNING] Privilege",
            ok=False,
            status="not root",
            description="no sudo available; installs will fail",
            warning_only=True,
        )

    def _check_packages(self, packages: list) -> dict:
        if not packages:
            return self._record("[OK] Packages", ok=True, status="No packages required")

        dpkg_query = _find_dpkg_query()
        if not dpkg_query:
            return self._skip("Packages", "dpkg-query not available")

        missing = []
        for name in packages:
            code, out = _run([dpkg_query, "-W", "-f=${Status}", name])
            if code != 0 or "install ok installed" not in out:
                missing.append(name)

        if not missing:
            return self._record(
                "[OK] Packages",
                ok=True,
                status=f"All {len(packages)} required packages installed",
            )
        return self._record(
            "[ERROR] Packages",
            ok=False,
            status="Missing packages",
            description=f"Missing: {', '.join(missing)}",
        )


def main():
    """Command line interface: python system_check.py <os-identifier>"""
    if len(sys.argv) != 2:
        print("Usage: python system_check.py <os-identifier>")
        sys.exit(1)

    os_id = sys.argv[1]
    if os_id not in PACKAGE_SETS:
        print(f"Unknown OS: {os_id}")
        sys.exit(1)

    checker = SystemChecker()
    checker.check_all(PACKAGE_SETS[os_id])
    checker.report()
    sys.exit(0 if checker.ok else 1)


if __name__ == "__main__":
    main()
