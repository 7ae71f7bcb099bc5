"""Shared domain models for ZnunyInstaller."""

import os
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .constants import (
    AUTOMATED_PASSWORD_LENGTH,
    DB_IDENTIFIER_PATTERN,
    DEFAULT_ZNUNY_VERSION,
    DOWNLOAD_URL_TEMPLATE,
    INSTALLER_AUTOMATED,
    INTERACTIVE_PASSWORD_LENGTH,
)
from .errors import InstallerError


@dataclass(frozen=True)
class InstallSettings:
    """Fixed names and locations for one installation run."""

    znuny_version: str = DEFAULT_ZNUNY_VERSION
    installer_mode: str = INSTALLER_AUTOMATED
    install_dir: str = "/opt"
    link_name: str = "otrs"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "znuny"
    db_user: str = "znuny"
    service_user: str = "znuny"
    web_group: str = "www-data"
    log_dir: str = "/var/log"
    credentials_file: str = "/root/znuny-credentials.txt"
    systemd_unit_file: str = "/etc/systemd/system/znuny.service"
    apache_root: str = "/etc/apache2"
    postgres_config_root: str = "/etc/postgresql"
    os_release_root: str = "/etc"
    organization: str = "Znuny"
    system_id: int = 10
    archive_sha256: Optional[str] = None
    module_report_file: str = "/tmp/znuny_modules_check.txt"

    def __post_init__(self):
        for label, value in (("db_name", self.db_name), ("db_user", self.db_user)):
            if not re.match(DB_IDENTIFIER_PATTERN, str(value)):
                raise InstallerError(
                    f"Invalid {label} '{value}'. Use lowercase letters, digits and underscores."
                )
        if isinstance(self.system_id, bool) or not isinstance(self.system_id, int) or self.system_id <= 0:
            raise InstallerError(f"Invalid system_id '{self.system_id}'. Use a positive integer.")
        organization = str(self.organization)
        if not organization.strip() or "'" in organization or "\n" in organization:
            raise InstallerError("organization must be non-empty and free of quotes and line breaks.")

    @property
    def is_automated(self) -> bool:
        return self.installer_mode == INSTALLER_AUTOMATED

    @property
    def password_length(self) -> int:
        if self.is_automated:
            return AUTOMATED_PASSWORD_LENGTH
        return INTERACTIVE_PASSWORD_LENGTH

    @property
    def stable_link(self) -> str:
        return os.path.join(self.install_dir, self.link_name)

    @property
    def release_name(self) -> str:
        return f"znuny-{self.znuny_version}"

    @property
    def release_dir(self) -> str:
        return os.path.join(self.install_dir, self.release_name)

    @property
    def archive_path(self) -> str:
        return os.path.join(self.install_dir, f"{self.release_name}.tar.gz")

    @property
    def download_url(self) -> str:
        return DOWNLOAD_URL_TEMPLATE.format(version=self.znuny_version)

    @property
    def config_file(self) -> str:
        return os.path.join(self.stable_link, "Kernel", "Config.pm")

    @property
    def daemon_tool(self) -> str:
        return os.path.join(self.stable_link, "bin", "otrs.Daemon.pl")

    @property
    def daemon_pid_file(self) -> str:
        return os.path.join(self.stable_link, "var", "run", "otrs.Daemon.pl.pid")

    @property
    def console_tool(self) -> str:
        return os.path.join(self.stable_link, "bin", "otrs.Console.pl")


@dataclass
class RunContext:
    """Secrets and detected facts shared by every stage of one run."""

    run_id: str
    db_password: Optional[str] = None
    admin_password: Optional[str] = None
    os_type: Optional[str] = None
    os_version: Optional[str] = None
    perl_version: Optional[str] = None
    pg_version: Optional[str] = None
    pg_config_dir: Optional[str] = None
    hostname: Optional[str] = None
    local_ip: Optional[str] = None
    completed_stages: List[str] = field(default_factory=list)

    @property
    def furthest_stage(self) -> Optional[str]:
        if not self.completed_stages:
            return None
        return self.completed_stages[-1]

    def mark_completed(self, stage: str):
        if stage not in self.completed_stages:
            self.completed_stages.append(stage)


@dataclass(frozen=True)
class ServiceUnit:
    """Declarative description of a systemd service."""

    name: str
    description: str
    exec_start: str
    exec_stop: str
    exec_reload: str
    working_directory: str
    user: str
    group: str
    pid_file: Optional[str] = None
    service_type: str = "forking"
    restart: str = "on-failure"
    restart_sec: int = 10
    after: Tuple[str, ...] = ()
    requires: Tuple[str, ...] = ()
    wanted_by: str = "multi-user.target"

    @property
    def file_name(self) -> str:
        return f"{self.name}.service"

    def render(self) -> str:
        lines = ["[Unit]", f"Description={self.description}"]
        if self.after:
            lines.append("After=" + " ".join(self.after))
        if self.requires:
            lines.append("Requires=" + " ".join(self.requires))
        lines += [
            "",
            "[Service]",
            f"Type={self.service_type}",
            f"User={self.user}",
            f"Group={self.group}",
            f"WorkingDirectory={self.working_directory}",
            f"ExecStart={self.exec_start}",
            f"ExecStop={self.exec_stop}",
            f"ExecReload={self.exec_reload}",
        ]
        if self.pid_file:
            lines.append(f"PIDFile={self.pid_file}")
        lines += [
            f"Restart={self.restart}",
            f"RestartSec={self.restart_sec}",
            "",
            "[Install]",
            f"WantedBy={self.wanted_by}",
        ]
        return "\n".join(lines) + "\n"


@dataclass
class CleanupStepResult:
    name: str
    status: str
    error: Optional[str] = None


@dataclass
class CleanupReport:
    """Outcome of every step attempted by a cleanup run."""

    steps: List[CleanupStepResult] = field(default_factory=list)

    def record(self, name: str, error: Optional[str] = None):
        status = "failed" if error else "ok"
        self.steps.append(CleanupStepResult(name=name, status=status, error=error))

    @property
    def failed(self) -> List[CleanupStepResult]:
        return [step for step in self.steps if step.status == "failed"]

    @property
    def ok(self) -> bool:
        return not self.failed
