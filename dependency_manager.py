"""
dependency_manager.py - installs the native packages a CI build agent needs.

Called by install_deps.py with the OS identifier of the current matrix entry:

    manager = DependencyManager()
    code = manager.install("ubuntu-latest")   # -> package manager exit status

Recognized identifiers are fixed (see PACKAGE_SETS).  Anything else raises
UnrecognizedOSError.
"""

import subprocess

# OS identifier -> packages to install, in install order
PACKAGE_SETS = {
    "ubuntu-latest": ("libasound2-dev", "libfontconfig-dev"),
    "macos-latest": (),
}

DEFAULT_INSTALL_COMMAND = ("apt-get", "install", "-y")

# Shell convention for "command not found"
EXIT_COMMAND_NOT_FOUND = 127


class UnrecognizedOSError(ValueError):
    """Raised for an OS identifier outside PACKAGE_SETS."""

    def __init__(self, os_id: str) -> None:
        super().__init__(f"Unknown OS: {os_id}")
        self.os_id = os_id


class DependencyManager:
    """Installs the Package Set for one OS identifier.

    Args:
        packages:        mapping OS identifier -> package names.  Only
                         identifiers in PACKAGE_SETS are honoured.
        install_command: argv prefix for the package manager; the package
                         names are appended in order.
        runner:          callable with the subprocess.run signature (tests
                         inject a fake here).
        dry_run:         print the command instead of running it.
        log:             callable(str) used for every status line.
    """

    def __init__(
        self,
        packages: dict | None = None,
        install_command=None,
        runner=None,
        dry_run: bool = False,
        log=print,
    ) -> None:
        self.packages = {k: tuple(v) for k, v in PACKAGE_SETS.items()}
        if packages:
            for os_id, names in packages.items():
                if os_id in self.packages:
                    self.packages[os_id] = tuple(names)
        self.install_command = list(install_command or DEFAULT_INSTALL_COMMAND)
        self.runner = runner or subprocess.run
        self.dry_run = dry_run
        self.log = log

    # ------------------------------------------------------------------ public

    @property
    def recognized(self) -> list[str]:
        return list(self.packages)

    def packages_for(self, os_id: str) -> tuple:
        """Return the Package Set for os_id (exact, case-sensitive match)."""
        if os_id not in self.packages:
            raise UnrecognizedOSError(os_id)
        return self.packages[os_id]

    def install(self, os_id: str) -> int:
        """Install the Package Set for os_id and return the exit status."""
        if os_id == "ubuntu-latest":
            return self.install_ubuntu()
        if os_id == "macos-latest":
            return self.install_macos()
        raise UnrecognizedOSError(os_id)

    def install_ubuntu(self) -> int:
        """Install the Ubuntu packages with a single package manager call."""
        return self._install_packages(self.packages["ubuntu-latest"])

    def install_macos(self) -> int:
        """macOS agents already ship the audio and font frameworks."""
        return self._install_packages(self.packages["macos-latest"])

    # ----------------------------------------------------------------- private

    def _install_packages(self, names: tuple) -> int:
        if not names:
            self.log("Nothing to do")
            return 0

        cmd = self.install_command + list(names)
        if self.dry_run:
            self.log(f"[DRY-RUN] {' '.join(cmd)}")
            return 0

        self.log(f"[INSTALL] {' '.join(cmd)}")
        try:
            result = self.runner(cmd)
        except FileNotFoundError:
            self.log(f"[ERROR] Package manager not found: {cmd[0]}")
            return EXIT_COMMAND_NOT_FOUND

        if result.returncode == 0:
            self.log(f"[OK] Installed {len(names)} package(s)")
        else:
            self.log(f"[ERROR] {cmd[0]} exited with status {result.returncode}")
        return result.returncode
