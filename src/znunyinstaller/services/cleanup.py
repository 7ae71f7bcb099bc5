"""Uninstall and failed-install rollback."""

import os
from typing import Callable, List, Tuple

from znunyinstaller.constants import APACHE_SERVICE
from znunyinstaller.models import CleanupReport

ROLLBACK_KEEP = "keep"
ROLLBACK_APP = "app"
ROLLBACK_ALL = "all"
ROLLBACK_CHOICES = (ROLLBACK_KEEP, ROLLBACK_APP, ROLLBACK_ALL)

DROP_DATABASE_STEP = "drop_database"

CleanupStep = Tuple[str, Callable[[], None]]


class CleanupExecutor:
    """Runs every step regardless of earlier failures and reports the outcome."""

    def __init__(self, logger):
        self.logger = logger

    def run(self, steps: List[CleanupStep]) -> CleanupReport:
        report = CleanupReport()
        for name, callback in steps:
            self.logger.info("Cleanup: %s", name)
            try:
                callback()
            except Exception as exc:
                self.logger.warning("Cleanup step '%s' failed: %s", name, exc)
                report.record(name, error=str(exc))
            else:
                report.record(name)
        return report


class UninstallService:
    """Mirrors the install path in reverse, tolerating missing resources."""

    def __init__(
        self,
        logger,
        console,
        filesystem_service,
        database_service,
        identity_service,
        webserver_service,
        systemd_service,
        cron_service,
    ):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.database_service = database_service
        self.identity_service = identity_service
        self.webserver_service = webserver_service
        self.systemd_service = systemd_service
        self.cron_service = cron_service
        self.executor = CleanupExecutor(logger)

    def _stop_daemon_tool(self, settings, run_cmd: Callable):
        tool = settings.daemon_tool
        if not (os.path.isfile(tool) and os.access(tool, os.X_OK)):
            self.logger.debug("Daemon tool %s not present", tool)
            return
        run_cmd(
            ["su", "-", settings.service_user, "-c", f"{tool} stop"],
            check=False,
            capture_output=True,
        )

    def _remove_files(self, settings):
        if os.path.islink(settings.stable_link):
            os.remove(settings.stable_link)
        else:
            self.filesystem_service.cleanup_dir(settings.stable_link)
        self.filesystem_service.cleanup_dir(settings.release_dir)
        if os.path.exists(settings.archive_path):
            os.remove(settings.archive_path)

    def build_steps(self, settings, run_cmd: Callable, include_database: bool = True) -> List[CleanupStep]:
        steps: List[CleanupStep] = [
            ("stop_daemon_service", lambda: self.systemd_service.stop_daemon(run_cmd)),
            ("stop_daemon_tool", lambda: self._stop_daemon_tool(settings, run_cmd)),
            ("remove_crontab", lambda: self.cron_service.remove_crontab(settings, run_cmd)),
            (
                "stop_webserver",
                lambda: run_cmd(["systemctl", "stop", APACHE_SERVICE], check=False, capture_output=True),
            ),
            ("remove_site_config", lambda: self.webserver_service.remove_site_config(settings, run_cmd)),
            ("remove_daemon_unit", lambda: self.systemd_service.remove_unit(settings, run_cmd)),
        ]
        if include_database:
            steps.append(
                (
                    DROP_DATABASE_STEP,
                    lambda: self.database_service.drop_database(
                        settings.db_name, settings.db_user, run_cmd
                    ),
                )
            )
        steps += [
            ("remove_files", lambda: self._remove_files(settings)),
            (
                "remove_service_identity",
                lambda: self.identity_service.remove_service_identity(settings.service_user, run_cmd),
            ),
            (
                "start_webserver",
                lambda: run_cmd(["systemctl", "start", APACHE_SERVICE], check=False, capture_output=True),
            ),
        ]
        return steps

    def _report(self, report: CleanupReport):
        for step in report.failed:
            self.logger.warning("Step %s did not complete: %s", step.name, step.error)

    def uninstall(self, settings, run_cmd: Callable) -> CleanupReport:
        self.console.print("[bold red]Uninstalling Znuny...[/bold red]")
        self.logger.info("Starting Znuny uninstallation...")
        report = self.executor.run(self.build_steps(settings, run_cmd))
        self._report(report)
        self.logger.info("Znuny uninstallation completed")
        self.console.print("[green]Znuny has been uninstalled.[/green]")
        self.console.print(
            "Note: PostgreSQL and system packages were not removed. "
            "Use `apt-get remove --purge postgresql` to remove them."
        )
        return report

    def rollback(self, settings, run_cmd: Callable, choice: str = ROLLBACK_KEEP) -> CleanupReport:
        if choice not in ROLLBACK_CHOICES:
            raise ValueError(f"Unknown rollback choice: {choice}")

        if choice == ROLLBACK_KEEP:
            self.logger.info("Keeping partial installation")
            return CleanupReport()

        if choice == ROLLBACK_APP:
            self.logger.info("Removing Znuny files (keeping PostgreSQL database)...")
        else:
            self.logger.info("Removing Znuny and its PostgreSQL database...")

        steps = self.build_steps(settings, run_cmd, include_database=choice == ROLLBACK_ALL)
        report = self.executor.run(steps)
        self._report(report)
        return report
