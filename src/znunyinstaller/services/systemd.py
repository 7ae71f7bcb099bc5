"""systemd unit management for the Znuny daemon."""

import os
from typing import Callable

from znunyinstaller.constants import APACHE_SERVICE, DAEMON_SERVICE, POSTGRES_SERVICE
from znunyinstaller.errors import CollaboratorExitError, ServiceConfigError
from znunyinstaller.models import ServiceUnit


class SystemdService:
    """Writes, enables and removes the znuny.service unit."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    @staticmethod
    def build_unit(settings) -> ServiceUnit:
        daemon = settings.daemon_tool
        return ServiceUnit(
            name=DAEMON_SERVICE,
            description="Znuny Daemon",
            exec_start=f"{daemon} start",
            exec_stop=f"{daemon} stop",
            exec_reload=f"{daemon} reload",
            working_directory=settings.stable_link,
            user=settings.service_user,
            group=settings.web_group,
            pid_file=settings.daemon_pid_file,
            after=(f"{POSTGRES_SERVICE}.service", f"{APACHE_SERVICE}.service"),
            requires=(f"{POSTGRES_SERVICE}.service", f"{APACHE_SERVICE}.service"),
        )

    def write_unit(self, unit: ServiceUnit, unit_path: str) -> bool:
        content = unit.render()
        if os.path.isfile(unit_path):
            with open(unit_path, "r", encoding="utf-8") as file_obj:
                if file_obj.read() == content:
                    self.logger.info("Unit %s is up to date", unit_path)
                    return False

        try:
            os.makedirs(os.path.dirname(unit_path) or ".", exist_ok=True)
            with open(unit_path, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
        except OSError as exc:
            raise ServiceConfigError(f"Could not write unit file {unit_path}: {exc}") from exc
        return True

    def wire_daemon_unit(self, settings, run_cmd: Callable, start_now: bool):
        self.logger.info("Creating Znuny systemd service...")
        unit = self.build_unit(settings)
        self.write_unit(unit, settings.systemd_unit_file)

        try:
            run_cmd(["systemctl", "daemon-reload"], check=True, capture_output=True)
            run_cmd(["systemctl", "enable", unit.file_name], check=True, capture_output=True)
        except CollaboratorExitError as exc:
            raise ServiceConfigError(f"Failed to enable {unit.file_name}: {exc}") from exc

        if not start_now:
            self.logger.info("Znuny daemon will start after web installation is complete")
            return

        self.logger.info("Starting Znuny daemon...")
        result = run_cmd(["systemctl", "start", unit.file_name], check=False, capture_output=True)
        if result.returncode == 0:
            self.logger.info("Znuny service configured and started")
            return

        self.logger.warning("Znuny daemon start reported issues, trying direct start")
        fallback = run_cmd(
            ["su", "-", settings.service_user, "-c", f"{settings.daemon_tool} start"],
            check=False,
            capture_output=True,
        )
        if fallback.returncode != 0:
            self.logger.warning("Direct daemon start failed as well; check %s", settings.daemon_tool)

    def stop_daemon(self, run_cmd: Callable):
        run_cmd(["systemctl", "stop", DAEMON_SERVICE], check=False, capture_output=True)
        run_cmd(["systemctl", "disable", DAEMON_SERVICE], check=False, capture_output=True)

    def remove_unit(self, settings, run_cmd: Callable):
        if os.path.exists(settings.systemd_unit_file):
            os.remove(settings.systemd_unit_file)
        run_cmd(["systemctl", "daemon-reload"], check=True, capture_output=True)
