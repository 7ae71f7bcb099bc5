"""Post-install health probes."""

import os
from typing import Callable, Dict

from znunyinstaller.constants import APACHE_SERVICE, DAEMON_SERVICE, POSTGRES_SERVICE


class VerificationService:
    """Observes service state after provisioning; never raises."""

    ACCEPTED_STATUS = (200, 302)
    PROBE_URL = "http://localhost/otrs/index.pl"

    def __init__(self, logger, console, requests_module):
        self.logger = logger
        self.console = console
        self.requests = requests_module

    def service_active(self, name: str, run_cmd: Callable) -> bool:
        try:
            result = run_cmd(
                ["systemctl", "is-active", "--quiet", name],
                check=False,
                capture_output=True,
            )
        except Exception as exc:
            self.logger.warning("Could not query %s: %s", name, exc)
            return False
        return result.returncode == 0

    @staticmethod
    def pid_alive(pid_file: str) -> bool:
        try:
            with open(pid_file, "r", encoding="utf-8") as file_obj:
                pid = int(file_obj.read().split()[0])
            os.kill(pid, 0)
        except (OSError, ValueError, IndexError):
            return False
        return True

    def daemon_running(self, settings, run_cmd: Callable) -> bool:
        if self.service_active(DAEMON_SERVICE, run_cmd):
            return True
        return self.pid_alive(settings.daemon_pid_file)

    def web_reachable(self) -> bool:
        try:
            response = self.requests.get(self.PROBE_URL, allow_redirects=False, timeout=10)
        except self.requests.RequestException as exc:
            self.logger.debug("HTTP probe failed: %s", exc)
            return False
        return response.status_code in self.ACCEPTED_STATUS

    def verify(self, settings, run_cmd: Callable) -> bool:
        self.logger.info("Verifying all services are running...")
        results: Dict[str, bool] = {
            "PostgreSQL": self.service_active(POSTGRES_SERVICE, run_cmd),
            "Apache": self.service_active(APACHE_SERVICE, run_cmd),
        }

        daemon_ok = self.daemon_running(settings, run_cmd)
        if settings.is_automated:
            results["Znuny daemon"] = daemon_ok
        elif not daemon_ok:
            self.logger.warning("Znuny daemon is not running (this is normal for initial setup)")

        results["Web interface"] = self.web_reachable()

        for name, ok in results.items():
            if ok:
                self.logger.info("%s is running", name)
            else:
                self.logger.error("%s is not running or not reachable", name)

        all_ok = all(results.values())
        if not all_ok:
            self.logger.warning("Some services may need manual attention")
        return all_ok
