import subprocess

from znunyinstaller.models import InstallSettings
from znunyinstaller.services.systemd import SystemdService


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, message, *args, **_kwargs):
        self.warnings.append(message % args if args else message)


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeSystemctl:
    def __init__(self, start_returncode=0):
        self.start_returncode = start_returncode
        self.calls = []

    def __call__(self, cmd, check=True, capture_output=False, **_kwargs):
        self.calls.append(cmd)
        if cmd[:2] == ["systemctl", "start"]:
            return subprocess.CompletedProcess(cmd, self.start_returncode, "", "")
        return subprocess.CompletedProcess(cmd, 0, "", "")


def build_service(logger=None):
    return SystemdService(logger=logger or DummyLogger(), console=DummyConsole())


def test_build_unit_renders_forking_daemon():
    unit = SystemdService.build_unit(InstallSettings())
    rendered = unit.render()

    assert unit.file_name == "znuny.service"
    assert "Type=forking" in rendered
    assert "User=znuny" in rendered
    assert "Group=www-data" in rendered
    assert "WorkingDirectory=/opt/otrs" in rendered
    assert "ExecStart=/opt/otrs/bin/otrs.Daemon.pl start" in rendered
    assert "ExecStop=/opt/otrs/bin/otrs.Daemon.pl stop" in rendered
    assert "PIDFile=/opt/otrs/var/run/otrs.Daemon.pl.pid" in rendered
    assert "Restart=on-failure" in rendered
    assert "RestartSec=10" in rendered
    assert "After=postgresql.service apache2.service" in rendered
    assert "Requires=postgresql.service apache2.service" in rendered
    assert rendered.rstrip().endswith("WantedBy=multi-user.target")


def test_write_unit_only_rewrites_changed_content(tmp_path):
    service = build_service()
    unit = SystemdService.build_unit(InstallSettings())
    unit_path = tmp_path / "systemd" / "znuny.service"

    assert service.write_unit(unit, str(unit_path)) is True
    assert service.write_unit(unit, str(unit_path)) is False

    unit_path.write_text("[Unit]\nDescription=old\n", encoding="utf-8")
    assert service.write_unit(unit, str(unit_path)) is True
    assert unit_path.read_text(encoding="utf-8") == unit.render()


def test_wire_daemon_unit_starts_daemon_when_requested(tmp_path):
    settings = InstallSettings(systemd_unit_file=str(tmp_path / "znuny.service"))
    systemctl = FakeSystemctl()

    build_service().wire_daemon_unit(settings, systemctl, start_now=True)

    assert systemctl.calls == [
        ["systemctl", "daemon-reload"],
        ["systemctl", "enable", "znuny.service"],
        ["systemctl", "start", "znuny.service"],
    ]


def test_wire_daemon_unit_defers_start(tmp_path):
    settings = InstallSettings(systemd_unit_file=str(tmp_path / "znuny.service"))
    systemctl = FakeSystemctl()

    build_service().wire_daemon_unit(settings, systemctl, start_now=False)

    assert ["systemctl", "start", "znuny.service"] not in systemctl.calls
    assert ["systemctl", "enable", "znuny.service"] in systemctl.calls


def test_wire_daemon_unit_falls_back_to_direct_start(tmp_path):
    settings = InstallSettings(systemd_unit_file=str(tmp_path / "znuny.service"))
    systemctl = FakeSystemctl(start_returncode=1)
    logger = DummyLogger()

    build_service(logger).wire_daemon_unit(settings, systemctl, start_now=True)

    assert systemctl.calls[-1] == ["su", "-", "znuny", "-c", "/opt/otrs/bin/otrs.Daemon.pl start"]
    assert any("trying direct start" in message for message in logger.warnings)


def test_remove_unit_tolerates_missing_file(tmp_path):
    settings = InstallSettings(systemd_unit_file=str(tmp_path / "znuny.service"))
    systemctl = FakeSystemctl()

    build_service().remove_unit(settings, systemctl)

    assert systemctl.calls == [["systemctl", "daemon-reload"]]
