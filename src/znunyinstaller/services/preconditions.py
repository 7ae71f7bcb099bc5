"""Environment gate run before any host mutation."""

import os
import re
import shutil
import socket
from typing import Callable, Optional

from packaging import version

from znunyinstaller.constants import MIN_FREE_DISK_GB, MIN_PERL_VERSION
from znunyinstaller.errors import (
    CommandNotFoundError,
    InsufficientResources,
    PreconditionError,
    UnsupportedPlatform,
    VersionTooLow,
)
from znunyinstaller.errors_catalog import actionable_error

_GIB = 1024**3


class PreconditionService:
    """Checks privilege, platform, runtime and disk before installing."""

    def __init__(self, logger, console, package_service):
        self.logger = logger
        self.console = console
        self.package_service = package_service

    def check_root(self):
        if os.geteuid() != 0:
            raise PreconditionError(actionable_error("not_root"))

    def detect_os(self, settings, context):
        debian_version = os.path.join(settings.os_release_root, "debian_version")
        lsb_release = os.path.join(settings.os_release_root, "lsb-release")

        if not os.path.isfile(debian_version):
            raise UnsupportedPlatform(actionable_error("unsupported_platform", path=debian_version))

        if os.path.isfile(lsb_release):
            context.os_type = "ubuntu"
            context.os_version = self._read_lsb_release(lsb_release) or "unknown"
        else:
            context.os_type = "debian"
            with open(debian_version, "r", encoding="utf-8") as file_obj:
                context.os_version = file_obj.read().strip() or "unknown"

        self.logger.info("Detected OS: %s %s", context.os_type, context.os_version)

    @staticmethod
    def _read_lsb_release(path: str) -> Optional[str]:
        with open(path, "r", encoding="utf-8") as file_obj:
            for line in file_obj:
                key, _, value = line.strip().partition("=")
                if key == "DISTRIB_RELEASE":
                    return value.strip().strip('"')
        return None

    def check_perl(self, context, run_cmd: Callable):
        try:
            result = run_cmd(
                ["perl", "-e", 'printf "%vd", $^V'],
                check=False,
                capture_output=True,
            )
        except CommandNotFoundError as exc:
            raise VersionTooLow(actionable_error("perl_missing")) from exc

        current = (result.stdout or "").strip() if result.returncode == 0 else ""
        if not current:
            raise VersionTooLow(actionable_error("perl_missing"))

        if self._parse_version(current) < version.parse(MIN_PERL_VERSION):
            raise VersionTooLow(
                actionable_error("perl_too_old", minimum=MIN_PERL_VERSION, current=current)
            )

        context.perl_version = current
        self.logger.info("Perl version: %s", current)

    @staticmethod
    def _parse_version(value: str) -> version.Version:
        match = re.match(r"v?(\d+(?:\.\d+)*)", value.strip())
        if not match:
            return version.parse("0")
        return version.parse(match.group(1))

    def ensure_disk_helper(self, run_cmd: Callable):
        """Keeps the `bc` sizing helper on the host for operators.

        `check_disk_space` does not shell out to it; it measures with `shutil.disk_usage`.
        """
        if shutil.which("bc"):
            return
        self.logger.info("Installing bc helper...")
        self.package_service.ensure_installed(["bc"], run_cmd)

    def check_disk_space(self, settings):
        free_bytes = shutil.disk_usage(settings.install_dir).free
        available_gb = free_bytes / _GIB
        if free_bytes < MIN_FREE_DISK_GB * _GIB:
            raise InsufficientResources(
                actionable_error(
                    "insufficient_disk",
                    path=settings.install_dir,
                    available_gb=available_gb,
                    required_gb=MIN_FREE_DISK_GB,
                )
            )
        self.logger.info("Disk space: %.1fGB available", available_gb)

    def detect_host(self, context, run_cmd: Callable):
        context.hostname = self.detect_hostname()
        context.local_ip = self.detect_local_ip(run_cmd)
        self.logger.info("Host: %s (%s)", context.hostname, context.local_ip)

    @staticmethod
    def detect_hostname() -> str:
        hostname = socket.getfqdn()
        if not hostname or hostname == "localhost":
            hostname = socket.gethostname()
        return hostname or "localhost"

    def detect_local_ip(self, run_cmd: Callable) -> str:
        try:
            result = run_cmd(["ip", "route", "get", "1.1.1.1"], check=False, capture_output=True)
        except CommandNotFoundError:
            result = None

        if result is not None and result.returncode == 0:
            match = re.search(r"\bsrc\s+(\S+)", result.stdout or "")
            if match:
                return match.group(1)

        self.logger.debug("Routing table probe unavailable, falling back to hostname lookup.")
        try:
            return socket.gethostbyname(socket.gethostname())
        except OSError:
            return "127.0.0.1"

    def check_preconditions(self, settings, context, run_cmd: Callable):
        self.logger.info("Checking prerequisites...")
        self.check_root()
        self.detect_os(settings, context)
        self.check_perl(context, run_cmd)
        self.ensure_disk_helper(run_cmd)
        self.check_disk_space(settings)
        self.detect_host(context, run_cmd)
        self.console.print("[green]Prerequisites satisfied.[/green]")
