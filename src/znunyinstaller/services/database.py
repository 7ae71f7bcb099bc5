"""PostgreSQL role/database provisioning and client-auth configuration."""

import os
import re
import shutil
import tempfile
from datetime import datetime
from typing import Callable, List, Optional

from znunyinstaller.constants import DB_IDENTIFIER_PATTERN
from znunyinstaller.errors import (
    CollaboratorExitError,
    CommandNotFoundError,
    ConfigNotFound,
    DatabaseProvisionError,
)
from znunyinstaller.errors_catalog import actionable_error

_IDENTIFIER = re.compile(DB_IDENTIFIER_PATTERN)
_ALPHANUMERIC = re.compile(r"^[A-Za-z0-9]+$")


class DatabaseService:
    """Creates the Znuny role and database and trusts it in pg_hba.conf."""

    ADMIN_USER = "postgres"

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    @staticmethod
    def validate_identifiers(name: str, user: str, password: Optional[str] = None):
        for label, value in (("database name", name), ("database user", user)):
            if not _IDENTIFIER.match(value or ""):
                raise DatabaseProvisionError(
                    f"Invalid {label} '{value}'. Use lowercase letters, digits and underscores."
                )
        if password is not None and not _ALPHANUMERIC.match(password):
            raise DatabaseProvisionError("Database password must be alphanumeric.")

    @staticmethod
    def build_provision_sql(name: str, user: str, password: str) -> str:
        return "\n".join(
            [
                f"DROP DATABASE IF EXISTS {name};",
                f"DROP USER IF EXISTS {user};",
                f"CREATE USER {user} WITH PASSWORD '{password}';",
                f"CREATE DATABASE {name} OWNER {user};",
                f"GRANT ALL PRIVILEGES ON DATABASE {name} TO {user};",
                f"\\c {name}",
                f"ALTER SCHEMA public OWNER TO {user};",
                f"GRANT ALL ON SCHEMA public TO {user};",
                "",
            ]
        )

    def _admin_psql(self, sql: str, run_cmd: Callable):
        return run_cmd(
            ["su", "-", self.ADMIN_USER, "-c", "psql -v ON_ERROR_STOP=1"],
            check=False,
            capture_output=True,
            input_text=sql,
        )

    def create_role_and_database(self, name: str, user: str, password: str, run_cmd: Callable):
        self.logger.info("Creating database user: %s", user)
        self.logger.info("Creating database: %s", name)

        try:
            result = self._admin_psql(self.build_provision_sql(name, user, password), run_cmd)
        except CollaboratorExitError as exc:
            raise DatabaseProvisionError(f"Could not open administrative session: {exc}") from exc

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            message = f"Failed to create database and user (psql exit {result.returncode})."
            if stderr:
                message = f"{message}\n{stderr}"
            raise DatabaseProvisionError(message)

        self.logger.info("Database and user created successfully")

    def detect_pg_version(self, settings, run_cmd: Callable) -> str:
        try:
            result = run_cmd(["pg_config", "--version"], check=False, capture_output=True)
        except CommandNotFoundError:
            result = None

        if result is not None and result.returncode == 0:
            match = re.search(r"(\d+)", result.stdout or "")
            if match:
                return match.group(1)

        versions: List[int] = []
        if os.path.isdir(settings.postgres_config_root):
            versions = sorted(
                int(entry)
                for entry in os.listdir(settings.postgres_config_root)
                if entry.isdigit()
            )
        if not versions:
            raise ConfigNotFound(
                actionable_error("pg_version_unknown", root=settings.postgres_config_root)
            )
        return str(versions[-1])

    @staticmethod
    def has_auth_rule(lines: List[str], name: str, user: str) -> bool:
        pattern = re.compile(rf"^local\s+{re.escape(name)}\s+{re.escape(user)}(\s|$)")
        return any(pattern.match(line) for line in lines)

    @staticmethod
    def insert_auth_rule(lines: List[str], name: str, user: str) -> List[str]:
        rule = f"local   {name}       {user}                                md5\n"
        catch_all = re.compile(r"^local\s+all\s+all(\s|$)")
        for index, line in enumerate(lines):
            if catch_all.match(line):
                return lines[:index] + [rule] + lines[index:]
        if lines and not lines[-1].endswith("\n"):
            lines = lines[:-1] + [lines[-1] + "\n"]
        return lines + [rule]

    def configure_client_auth(self, settings, context, run_cmd: Callable):
        pg_version = self.detect_pg_version(settings, run_cmd)
        config_dir = os.path.join(settings.postgres_config_root, pg_version, "main")
        if not os.path.isdir(config_dir):
            raise ConfigNotFound(actionable_error("pg_config_dir_missing", path=config_dir))

        context.pg_version = pg_version
        context.pg_config_dir = config_dir
        hba_path = os.path.join(config_dir, "pg_hba.conf")

        try:
            backup_path = f"{hba_path}.backup.{datetime.now().strftime('%Y%m%d_%H%M%S')}"
            shutil.copy2(hba_path, backup_path)
            self.logger.info("Backed up pg_hba.conf to %s", backup_path)

            with open(hba_path, "r", encoding="utf-8") as file_obj:
                lines = file_obj.readlines()

            if self.has_auth_rule(lines, settings.db_name, settings.db_user):
                self.logger.info("Authentication rule for %s already present.", settings.db_user)
            else:
                updated = self.insert_auth_rule(lines, settings.db_name, settings.db_user)
                self._write_atomic(hba_path, "".join(updated))
                self.logger.info("Added md5 authentication rule for %s", settings.db_user)
        except OSError as exc:
            raise DatabaseProvisionError(f"Failed to update pg_hba.conf: {exc}") from exc

        try:
            run_cmd(["systemctl", "reload", "postgresql"], check=True, capture_output=True)
        except CollaboratorExitError as exc:
            raise DatabaseProvisionError(f"Failed to reload PostgreSQL: {exc}") from exc

    @staticmethod
    def _write_atomic(path: str, content: str):
        directory = os.path.dirname(path) or "."
        fd, temp_path = tempfile.mkstemp(prefix=".pg_hba-", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                file_obj.write(content)
            shutil.copymode(path, temp_path)
            os.replace(temp_path, path)
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)

    def provision_database(self, settings, context, run_cmd: Callable):
        self.console.print("[blue]Setting up PostgreSQL database...[/blue]")
        self.validate_identifiers(settings.db_name, settings.db_user, context.db_password)
        self.create_role_and_database(
            settings.db_name, settings.db_user, context.db_password, run_cmd
        )
        self.configure_client_auth(settings, context, run_cmd)
        self.console.print("[green]PostgreSQL database configured.[/green]")

    def check_connectivity(self, settings, context, run_cmd: Callable) -> bool:
        self.logger.info("Testing database connectivity...")
        try:
            result = run_cmd(
                [
                    "psql",
                    "-h",
                    settings.db_host,
                    "-U",
                    settings.db_user,
                    "-d",
                    settings.db_name,
                    "-c",
                    "SELECT 1;",
                ],
                check=False,
                capture_output=True,
                env={"PGPASSWORD": context.db_password or ""},
            )
        except CollaboratorExitError as exc:
            self.logger.warning("Connectivity check could not run: %s", exc)
            return False
        return result.returncode == 0

    def drop_database(self, name: str, user: str, run_cmd: Callable):
        self.validate_identifiers(name, user)
        run_cmd(
            ["su", "-", self.ADMIN_USER, "-c", f"dropdb --if-exists {name}"],
            check=True,
            capture_output=True,
        )
        run_cmd(
            ["su", "-", self.ADMIN_USER, "-c", f"dropuser --if-exists {user}"],
            check=True,
            capture_output=True,
        )
