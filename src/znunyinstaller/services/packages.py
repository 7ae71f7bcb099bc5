"""Package manager wrapper with explicit "ensure installed" semantics."""

from typing import Callable, Iterable, List

from znunyinstaller.errors import CollaboratorExitError, PackageInstallError


class PackageService:
    """Installs Debian packages through apt, only when something is missing."""

    APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console
        self.index_refreshed = False

    def missing_packages(self, packages: Iterable[str], run_cmd: Callable) -> List[str]:
        requested = list(dict.fromkeys(packages))
        result = run_cmd(
            ["dpkg-query", "-W", "-f=${Package} ${Status}\n", *requested],
            check=False,
            capture_output=True,
        )

        installed = set()
        for line in (result.stdout or "").splitlines():
            parts = line.split()
            if len(parts) >= 2 and line.rstrip().endswith("install ok installed"):
                installed.add(parts[0].split(":")[0])

        return [package for package in requested if package not in installed]

    def refresh_index(self, run_cmd: Callable):
        if self.index_refreshed:
            return
        self.logger.info("Refreshing package index...")
        try:
            run_cmd(["apt-get", "update", "-qq"], check=True, capture_output=True)
        except CollaboratorExitError as exc:
            raise PackageInstallError(f"Failed to refresh package index: {exc}") from exc
        self.index_refreshed = True

    def ensure_installed(
        self,
        packages: Iterable[str],
        run_cmd: Callable,
        best_effort: bool = False,
    ) -> bool:
        missing = self.missing_packages(packages, run_cmd)
        if not missing:
            self.logger.info("All requested packages are already installed.")
            return True

        self.console.print(f"[blue]Installing {len(missing)} package(s)...[/blue]")
        self.logger.info("Installing packages: %s", " ".join(missing))

        try:
            self.refresh_index(run_cmd)
            result = run_cmd(
                ["apt-get", "install", "-y", *missing],
                check=False,
                capture_output=True,
                env=self.APT_ENV,
            )
        except (PackageInstallError, CollaboratorExitError) as exc:
            if best_effort:
                self.logger.warning("Some optional packages failed to install: %s", exc)
                return False
            raise PackageInstallError(str(exc)) from exc

        if result.returncode == 0:
            return True

        message = f"apt-get install failed ({result.returncode}) for: {' '.join(missing)}"
        stderr = (result.stderr or "").strip()
        if stderr:
            message = f"{message}\n{stderr}"

        if best_effort:
            self.logger.warning(
                "Some optional packages failed to install, but installation will continue. %s",
                message,
            )
            return False
        raise PackageInstallError(message)
