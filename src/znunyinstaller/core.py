import logging
import os
import signal
import sys
import time
import uuid
from typing import List, Optional

import requests
from rich.console import Console
from rich.prompt import Confirm, Prompt

from .constants import (
    MODE_INSTALL,
    MODE_UNINSTALL,
    OPTIONAL_PERL_PACKAGES,
    PERL_PACKAGES,
    POSTGRES_PACKAGES,
    POSTGRES_SERVICE,
    PREFLIGHT_PAUSE_SECONDS,
    RUN_MODES,
    SYSTEM_PACKAGES,
)
from .errors import ExtractError, InstallationAborted, InstallerError, WriteError
from .errors_catalog import actionable_error
from .models import InstallSettings, RunContext
from .services.archive import ArchiveService
from .services.cleanup import ROLLBACK_ALL, ROLLBACK_APP, ROLLBACK_KEEP, UninstallService
from .services.command_runner import CommandRunner
from .services.config_renderer import ConfigRenderer
from .services.credentials import CredentialService
from .services.cron import CronService
from .services.database import DatabaseService
from .services.db_init import DatabaseInitService
from .services.download import DownloadService
from .services.filesystem import FileSystemService
from .services.identity import IdentityService
from .services.log_sink import PLAIN, LogSink, build_log_path
from .services.module_check import ModuleCheckService
from .services.packages import PackageService
from .services.passwords import generate_password
from .services.preconditions import PreconditionService
from .services.systemd import SystemdService
from .services.verification import VerificationService
from .services.webserver import WebServerService

console = Console()
logger = logging.getLogger("znunyinstaller")

ROLLBACK_OPTIONS = {"1": ROLLBACK_KEEP, "2": ROLLBACK_APP, "3": ROLLBACK_ALL}


class ZnunyInstaller:
    """Runs the linear Znuny provisioning workflow and its uninstall mirror."""

    def __init__(
        self,
        settings: Optional[InstallSettings] = None,
        verbose: bool = False,
        interactive: Optional[bool] = None,
    ):
        self.settings = settings or InstallSettings()
        self.verbose = verbose
        self.interactive = sys.stdin.isatty() if interactive is None else interactive
        self.preflight_pause_seconds = PREFLIGHT_PAUSE_SECONDS
        self.current_step_name: Optional[str] = None

        self.log_path = build_log_path(self.settings.log_dir)
        self.log_sink = LogSink(logger=logger, log_path=self.log_path, verbose=verbose)

        self.command_runner = CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.package_service = PackageService(logger=logger, console=console)
        self.precondition_service = PreconditionService(
            logger=logger,
            console=console,
            package_service=self.package_service,
        )
        self.database_service = DatabaseService(logger=logger, console=console)
        self.download_service = DownloadService(
            logger=logger,
            console=console,
            requests_module=requests,
        )
        self.archive_service = ArchiveService(logger=logger, filesystem_service=self.filesystem_service)
        self.identity_service = IdentityService(logger=logger)
        self.config_renderer = ConfigRenderer(logger=logger, filesystem_service=self.filesystem_service)
        self.webserver_service = WebServerService(logger=logger, console=console)
        self.systemd_service = SystemdService(logger=logger, console=console)
        self.db_init_service = DatabaseInitService(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
            database_service=self.database_service,
        )
        self.cron_service = CronService(logger=logger, filesystem_service=self.filesystem_service)
        self.module_check_service = ModuleCheckService(logger=logger)
        self.credential_service = CredentialService(logger=logger, console=console)
        self.verification_service = VerificationService(
            logger=logger,
            console=console,
            requests_module=requests,
        )
        self.uninstall_service = UninstallService(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
            database_service=self.database_service,
            identity_service=self.identity_service,
            webserver_service=self.webserver_service,
            systemd_service=self.systemd_service,
            cron_service=self.cron_service,
        )

        self.run_context = self._build_run_context()

    def _build_run_context(self) -> RunContext:
        return RunContext(run_id=uuid.uuid4().hex[:10])

    def _run_cmd(self, cmd: List[str], check: bool = True, capture_output: bool = False, **kwargs):
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def _run_step(self, name: str, callback, *args, **kwargs):
        logger.debug("Entering stage: %s", name)
        self.current_step_name = name
        result = callback(*args, **kwargs)
        self.run_context.mark_completed(name)
        self.current_step_name = None
        return result

    def _handle_sigterm(self, signum, frame):
        raise InstallationAborted(f"Received signal {signum}, aborting.")

    def check_preconditions(self):
        self.precondition_service.check_preconditions(self.settings, self.run_context, self._run_cmd)

    def confirm_start(self):
        console.print(f"[yellow]This will install Znuny {self.settings.znuny_version} with:[/yellow]")
        console.print("  - PostgreSQL database server")
        console.print("  - Apache web server with mod_perl2")
        console.print("  - Required Perl modules and system dependencies")

        if not self.settings.is_automated and self.interactive:
            if not Confirm.ask("Continue with installation?", default=True, console=console):
                raise InstallationAborted("Installation cancelled by user.")
            return

        console.print(
            f"[yellow]Starting installation in {self.preflight_pause_seconds} seconds...[/yellow]"
        )
        time.sleep(self.preflight_pause_seconds)

    def install_system_dependencies(self):
        logger.info("Installing system dependencies...")
        self.package_service.ensure_installed(SYSTEM_PACKAGES, self._run_cmd)

    def install_postgresql(self):
        logger.info("Installing PostgreSQL...")
        self.package_service.ensure_installed(POSTGRES_PACKAGES, self._run_cmd)
        self._run_cmd(["systemctl", "start", POSTGRES_SERVICE], check=True, capture_output=True)
        self._run_cmd(["systemctl", "enable", POSTGRES_SERVICE], check=True, capture_output=True)

    def provision_database(self):
        self.run_context.db_password = generate_password(self.settings.password_length)
        logger.info("Generated database credentials")
        self.database_service.provision_database(self.settings, self.run_context, self._run_cmd)

    def install_perl_modules(self):
        logger.info("Installing Perl modules...")
        self.package_service.ensure_installed(PERL_PACKAGES, self._run_cmd)
        self.package_service.ensure_installed(OPTIONAL_PERL_PACKAGES, self._run_cmd, best_effort=True)

    def fetch_znuny(self):
        settings = self.settings
        self.download_service.fetch(
            url=settings.download_url,
            dest_path=settings.archive_path,
            description=f"Downloading Znuny {settings.znuny_version}...",
            expected_sha256=settings.archive_sha256,
        )
        self.archive_service.install_release(
            settings.archive_path,
            settings.release_dir,
            settings.stable_link,
        )

    def create_service_identity(self):
        self.identity_service.ensure_service_identity(
            self.settings.service_user,
            self.settings.stable_link,
            self.settings.web_group,
            self._run_cmd,
        )

    def render_config(self):
        self.run_context.admin_password = generate_password(self.settings.password_length)
        self.config_renderer.write_config(self.settings, self.run_context, self._run_cmd)

    def normalize_permissions(self):
        self.filesystem_service.normalize_permissions(
            self.settings.release_dir,
            self.settings.service_user,
            self.settings.web_group,
            self._run_cmd,
            config_file=self.settings.config_file,
        )

    def wire_webserver(self):
        self.webserver_service.wire_webserver(self.settings, self._run_cmd)

    def verify_console_tool(self):
        if not os.path.isfile(self.settings.console_tool):
            raise ExtractError(
                actionable_error(
                    "console_missing",
                    path=self.settings.console_tool,
                    archive=self.settings.archive_path,
                )
            )

    def initialize_database(self):
        self.db_init_service.initialize_database(self.settings, self.run_context, self._run_cmd)

    def activate_cron(self):
        self.cron_service.activate_cron(self.settings, self._run_cmd)

    def wire_daemon_unit(self):
        self.systemd_service.wire_daemon_unit(
            self.settings,
            self._run_cmd,
            start_now=self.settings.is_automated,
        )

    def check_modules(self):
        if not self.module_check_service.check_modules(self.settings, self._run_cmd):
            logger.warning("Some Perl modules are missing, but installation will continue")

    def save_credentials(self):
        self.credential_service.save_credentials(self.settings, self.run_context)

    def verify_services(self) -> bool:
        return self.verification_service.verify(self.settings, self._run_cmd)

    def display_summary(self):
        self.credential_service.display_summary(self.settings, self.run_context, self.log_path)

    def install(self):
        self._run_step("check_preconditions", self.check_preconditions)
        self._run_step("confirm_start", self.confirm_start)
        self._run_step("install_system_dependencies", self.install_system_dependencies)
        self._run_step("install_postgresql", self.install_postgresql)
        self._run_step("provision_database", self.provision_database)
        self._run_step("install_perl_modules", self.install_perl_modules)
        self._run_step("fetch_znuny", self.fetch_znuny)
        self._run_step("create_service_identity", self.create_service_identity)
        self._run_step("render_config", self.render_config)
        self._run_step("normalize_permissions", self.normalize_permissions)
        self._run_step("wire_webserver", self.wire_webserver)
        self._run_step("verify_console_tool", self.verify_console_tool)
        self._run_step("initialize_database", self.initialize_database)
        self._run_step("activate_cron", self.activate_cron)
        self._run_step("wire_daemon_unit", self.wire_daemon_unit)
        self._run_step("check_modules", self.check_modules)
        self._run_step("save_credentials", self.save_credentials)
        if not self._run_step("verify_services", self.verify_services):
            logger.warning("Service verification reported problems. Review the log for details.")
        self._run_step("summary", self.display_summary)
        logger.info("Installation completed successfully")

    def uninstall(self):
        self.precondition_service.check_root()
        self.uninstall_service.uninstall(self.settings, self._run_cmd)

    def offer_rollback(self):
        choice = ROLLBACK_KEEP
        if self.interactive:
            console.print("[yellow]Installation failed. Would you like to:[/yellow]")
            console.print("  1) Keep partial installation")
            console.print("  2) Remove Znuny files (keep PostgreSQL)")
            console.print("  3) Remove everything (Znuny + PostgreSQL)")
            try:
                answer = Prompt.ask(
                    "Select option",
                    choices=list(ROLLBACK_OPTIONS),
                    default="1",
                    console=console,
                )
                choice = ROLLBACK_OPTIONS[answer]
            except (EOFError, KeyboardInterrupt):
                choice = ROLLBACK_KEEP
        else:
            console.print(
                "[yellow]Installation failed in non-interactive mode. "
                "Keeping partial installation.[/yellow]"
            )

        try:
            self.uninstall_service.rollback(self.settings, self._run_cmd, choice)
        except Exception as exc:
            logger.warning("Rollback did not complete: %s", exc)

    def _report_failure(self, mode: str):
        if self.current_step_name:
            logger.error(
                "Failed during stage '%s' (last completed: %s)",
                self.current_step_name,
                self.run_context.furthest_stage or "<none>",
            )
        console.print(f"[bold red]Check log file for details:[/bold red] {self.log_path}")
        if mode == MODE_INSTALL:
            self.offer_rollback()

    def run(self, mode: str = MODE_INSTALL) -> int:
        if mode not in RUN_MODES:
            raise InstallerError(f"Invalid mode '{mode}'. Use one of: {', '.join(RUN_MODES)}")

        try:
            self.log_sink.open()
        except WriteError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            return 1

        handler_installed = False
        previous_handler = None
        try:
            previous_handler = signal.signal(signal.SIGTERM, self._handle_sigterm)
            handler_installed = True
        except ValueError:
            logger.debug("Not in the main thread; SIGTERM handler not installed.")

        try:
            logger.log(PLAIN, "Run %s started in %s mode", self.run_context.run_id, mode)
            logger.info("Log file: %s", self.log_path)
            logger.info(
                "Target Znuny version: %s (%s installer)",
                self.settings.znuny_version,
                self.settings.installer_mode,
            )

            if mode == MODE_UNINSTALL:
                self.uninstall()
            else:
                self.install()
            return 0

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.error("Operation cancelled by user")
            self._report_failure(mode)
            return 1
        except InstallerError as exc:
            logger.error("%s: %s", type(exc).__name__, exc)
            self._report_failure(mode)
            return 1
        except Exception as exc:
            logger.exception("Unexpected error: %s: %s", type(exc).__name__, exc)
            self._report_failure(mode)
            return 1
        finally:
            if handler_installed:
                signal.signal(signal.SIGTERM, previous_handler or signal.SIG_DFL)
            self.log_sink.close()
