import stat
from datetime import datetime
from pathlib import Path

import pytest
from rich.console import Console

from znunyinstaller.errors import WriteError
from znunyinstaller.models import InstallSettings, RunContext
from znunyinstaller.services.credentials import CredentialService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


def build_context():
    return RunContext(
        run_id="abc",
        db_password="DbSecret123",
        admin_password="AdminSecret456",
        hostname="helpdesk.example.com",
        local_ip="10.0.0.5",
    )


def test_save_credentials_writes_owner_only_file(tmp_path):
    settings = InstallSettings(credentials_file=str(tmp_path / "root" / "znuny-credentials.txt"))

    CredentialService(DummyLogger(), Console(record=True)).save_credentials(settings, build_context())

    path = Path(settings.credentials_file)
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    content = path.read_text(encoding="utf-8")
    assert "Password: DbSecret123" in content
    assert "Admin Password:  AdminSecret456" in content
    assert "http://helpdesk.example.com/otrs/index.pl" in content
    assert "installer.pl" not in content


def test_save_credentials_tightens_existing_file(tmp_path):
    path = tmp_path / "znuny-credentials.txt"
    path.write_text("old", encoding="utf-8")
    path.chmod(0o644)
    settings = InstallSettings(credentials_file=str(path))

    CredentialService(DummyLogger(), Console(record=True)).save_credentials(settings, build_context())

    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert "old" not in path.read_text(encoding="utf-8")


def test_build_report_for_interactive_mode_lists_web_installer():
    settings = InstallSettings(installer_mode="interactive")

    report = CredentialService(DummyLogger(), Console(record=True)).build_report(
        settings, build_context(), now=datetime(2024, 1, 2, 3, 4, 5)
    )

    assert "Generated: 2024-01-02 03:04:05" in report
    assert "Web Installer:   http://10.0.0.5/otrs/installer.pl" in report
    assert "Next Steps:" in report


def test_save_credentials_raises_write_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    settings = InstallSettings(credentials_file=str(blocker / "znuny-credentials.txt"))

    with pytest.raises(WriteError, match="Could not write credentials file"):
        CredentialService(DummyLogger(), Console(record=True)).save_credentials(settings, build_context())


def test_display_summary_hides_admin_password_in_interactive_mode():
    console = Console(record=True, width=120)
    settings = InstallSettings(installer_mode="interactive")

    CredentialService(DummyLogger(), console).display_summary(settings, build_context(), "/var/log/x.log")

    output = console.export_text()
    assert "AdminSecret456" not in output
    assert "[see /root/znuny-credentials.txt]" in output
    assert "Install Log: /var/log/x.log" in output


def test_display_summary_shows_admin_password_in_automated_mode():
    console = Console(record=True, width=120)

    CredentialService(DummyLogger(), console).display_summary(InstallSettings(), build_context(), "/tmp/x.log")

    assert "Admin Password: AdminSecret456" in console.export_text()
