"""Credentials file and end-of-run console summary."""

import os
from datetime import datetime
from typing import List

from znunyinstaller.constants import ADMIN_LOGIN, CREDENTIALS_FILE_MODE
from znunyinstaller.errors import WriteError

_RULE = "=" * 40


class CredentialService:
    """Persists the generated secrets once, with owner-only permissions."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    @staticmethod
    def access_url(host: str, page: str = "index.pl") -> str:
        return f"http://{host}/otrs/{page}"

    def build_report(self, settings, context, now=None) -> str:
        hostname = context.hostname or "localhost"
        local_ip = context.local_ip or "127.0.0.1"
        generated = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")

        lines: List[str] = [
            _RULE,
            f"Znuny {settings.znuny_version} Installation Credentials",
            _RULE,
            f"Generated: {generated}",
            f"Server: {hostname}",
            "",
            "PostgreSQL Database:",
            "--------------------",
            f"  Host:     {settings.db_host}",
            f"  Port:     {settings.db_port}",
            f"  Database: {settings.db_name}",
            f"  User:     {settings.db_user}",
            f"  Password: {context.db_password}",
            "",
            "Znuny Web Interface:",
            "--------------------",
            f"  URL (Hostname):  {self.access_url(hostname)}",
            f"  URL (IP):        {self.access_url(local_ip)}",
            f"  Admin User:      {ADMIN_LOGIN}",
            f"  Admin Password:  {context.admin_password}",
        ]
        if not settings.is_automated:
            lines.append(f"  Web Installer:   {self.access_url(local_ip, 'installer.pl')}")

        lines += [
            "",
            "System Information:",
            "-------------------",
            f"  Znuny Version: {settings.znuny_version}",
            f"  Install Path:  {settings.stable_link}",
            f"  System User:   {settings.service_user} (service account, no password)",
            f"  Web Group:     {settings.web_group}",
            f"  Config File:   {settings.config_file}",
            "",
            "Service Management:",
            "-------------------",
            "  Start Znuny:   systemctl start znuny",
            "  Stop Znuny:    systemctl stop znuny",
            "  Restart Znuny: systemctl restart znuny",
            "  Check Status:  systemctl status znuny",
        ]

        if not settings.is_automated:
            lines += [
                "",
                "Next Steps:",
                "-----------",
                f"1. Open {self.access_url(local_ip, 'installer.pl')}",
                "2. Complete the web-based configuration wizard with the database credentials above",
                "3. Start the daemon with `systemctl start znuny`",
                "4. Configure email settings, agents and queues",
            ]

        lines += [
            "",
            "Security Notes:",
            "---------------",
            "- Change the admin password after first login",
            "- Secure this credentials file or delete it after saving",
            "- Configure firewall rules as needed",
            "- Enable SSL/TLS for production use",
            _RULE,
            "",
        ]
        return "\n".join(lines)

    def save_credentials(self, settings, context):
        self.logger.info("Saving credentials...")
        path = settings.credentials_file
        content = self.build_report(settings, context)

        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CREDENTIALS_FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                file_obj.write(content)
            os.chmod(path, CREDENTIALS_FILE_MODE)
        except OSError as exc:
            raise WriteError(f"Could not write credentials file '{path}': {exc}") from exc

        self.logger.info("Credentials saved to %s", path)

    def display_summary(self, settings, context, log_path: str):
        hostname = context.hostname or "localhost"
        local_ip = context.local_ip or "127.0.0.1"

        self.console.print()
        self.console.print(f"[bold green]{_RULE}[/bold green]")
        self.console.print(
            f"[bold green]  Znuny {settings.znuny_version} Installation Complete![/bold green]"
        )
        self.console.print(f"[bold green]{_RULE}[/bold green]")
        self.console.print("[yellow]Web Interface:[/yellow]")
        self.console.print(f"  - Via hostname: {self.access_url(hostname)}")
        self.console.print(f"  - Via IP:       {self.access_url(local_ip)}")
        self.console.print(f"[yellow]Admin Login:[/yellow] {ADMIN_LOGIN}")

        if settings.is_automated:
            self.console.print(f"[yellow]Admin Password:[/yellow] {context.admin_password}")
        else:
            self.console.print(
                f"[yellow]Admin Password:[/yellow] \\[see {settings.credentials_file}]"
            )
            self.console.print(
                f"[yellow]Web Installer:[/yellow] {self.access_url(local_ip, 'installer.pl')}"
            )

        self.console.print("[blue]Database Credentials:[/blue]")
        self.console.print(f"  - Database: {settings.db_name}")
        self.console.print(f"  - Username: {settings.db_user}")
        self.console.print(f"  - Password: {context.db_password}")

        self.console.print("[blue]Important Files:[/blue]")
        self.console.print(f"  - Credentials: {settings.credentials_file}")
        self.console.print(f"  - Install Log: {log_path}")
        self.console.print(f"  - Config File: {settings.config_file}")

        self.console.print("[bold red]SECURITY REMINDER:[/bold red]")
        self.console.print(f"1. Save the credentials from {settings.credentials_file}")
        self.console.print("2. Change the admin password after first login")
        self.console.print("3. Delete or secure the credentials file when done")
