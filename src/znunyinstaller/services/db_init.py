"""Znuny schema initialization for both installer variants."""

import os
import shlex
from typing import Callable, List

from znunyinstaller.constants import ADMIN_GROUPS, ADMIN_LOGIN, RUNTIME_VAR_DIRS, VAR_DIR_MODE
from znunyinstaller.errors import CollaboratorExitError, DbInitError


class DatabaseInitService:
    """Creates the schema and admin account, or defers them to the web installer."""

    def __init__(self, logger, console, filesystem_service, database_service):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.database_service = database_service

    def prepare_runtime_dirs(self, settings, run_cmd: Callable):
        self.logger.info("Creating required directories...")
        var_dir = os.path.join(settings.stable_link, "var")
        try:
            for name in RUNTIME_VAR_DIRS:
                os.makedirs(os.path.join(var_dir, name), exist_ok=True)
            self.filesystem_service.chown(
                var_dir, settings.service_user, settings.web_group, run_cmd, recursive=True
            )
        except (OSError, CollaboratorExitError) as exc:
            raise DbInitError(f"Could not prepare {var_dir}: {exc}") from exc
        self.filesystem_service.set_tree_permissions(
            var_dir, dir_mode=VAR_DIR_MODE, file_mode=VAR_DIR_MODE
        )

    @staticmethod
    def console_command(settings, args: List[str]) -> List[str]:
        command = " ".join(["bin/otrs.Console.pl", *(shlex.quote(arg) for arg in args)])
        return [
            "su",
            "-",
            settings.service_user,
            "-c",
            f"cd {shlex.quote(settings.stable_link)} && {command}",
        ]

    def _console(self, settings, args: List[str], run_cmd: Callable):
        return run_cmd(self.console_command(settings, args), check=False, capture_output=True)

    def _required(self, settings, args: List[str], run_cmd: Callable, failure: str):
        result = self._console(settings, args, run_cmd)
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            message = f"{failure} (exit {result.returncode})."
            if detail:
                message = f"{message}\n{detail}"
            raise DbInitError(message)

    def initialize_automated(self, settings, context, run_cmd: Callable):
        self.logger.info("Creating database schema...")
        self._required(
            settings,
            ["Maint::Database::Init", "--type", "postgresql"],
            run_cmd,
            "Failed to initialize database",
        )

        self.logger.info("Deploying database content...")
        self._required(settings, ["Maint::Database::Deploy"], run_cmd, "Failed to deploy database content")

        self.logger.info("Creating admin user...")
        add_user = [
            "Admin::User::Add",
            "--user-name",
            ADMIN_LOGIN,
            "--first-name",
            "Admin",
            "--last-name",
            "User",
            "--email-address",
            ADMIN_LOGIN,
            f"--password={context.admin_password}",
        ]
        for group in ADMIN_GROUPS:
            add_user += ["--group", group]
        self._required(settings, add_user, run_cmd, "Failed to create admin user")

        self.logger.info("Setting initial system configuration...")
        if self._console(settings, ["Maint::Config::Rebuild"], run_cmd).returncode != 0:
            self.logger.warning("Config rebuild reported issues")

        try:
            self._console(settings, ["Maint::Ticket::UnlockTicketByAge"], run_cmd)
        except CollaboratorExitError:
            pass

        self.logger.info("Database initialized and admin user created successfully")

    def initialize_interactive(self, settings, context, run_cmd: Callable):
        if not self.database_service.check_connectivity(settings, context, run_cmd):
            raise DbInitError(
                "Cannot connect to database. Please check credentials and PostgreSQL configuration"
            )
        self.logger.info("Database connection successful!")
        self.logger.info("Database schema will be initialized via web installer")

    def initialize_database(self, settings, context, run_cmd: Callable):
        self.console.print("[blue]Initializing Znuny database...[/blue]")
        self.prepare_runtime_dirs(settings, run_cmd)
        if settings.is_automated:
            self.initialize_automated(settings, context, run_cmd)
        else:
            self.initialize_interactive(settings, context, run_cmd)
