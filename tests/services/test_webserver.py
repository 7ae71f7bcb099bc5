import subprocess

import pytest

from znunyinstaller.errors import ServiceConfigError
from znunyinstaller.models import InstallSettings
from znunyinstaller.services.webserver import WebServerService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeApache:
    def __init__(self, configtest_returncode=0):
        self.configtest_returncode = configtest_returncode
        self.calls = []

    def __call__(self, cmd, check=True, capture_output=False, **_kwargs):
        self.calls.append(cmd)
        if cmd[0] == "apache2ctl":
            return subprocess.CompletedProcess(
                cmd, self.configtest_returncode, "", "Syntax error on line 3"
            )
        return subprocess.CompletedProcess(cmd, 0, "", "")


def build_settings(tmp_path):
    scripts = tmp_path / "opt" / "otrs" / "scripts"
    scripts.mkdir(parents=True)
    (scripts / "apache2-httpd.include.conf").write_text("# znuny\n", encoding="utf-8")
    (tmp_path / "apache2" / "mods-enabled").mkdir(parents=True)
    return InstallSettings(install_dir=str(tmp_path / "opt"), apache_root=str(tmp_path / "apache2"))


def build_service():
    return WebServerService(logger=DummyLogger(), console=DummyConsole())


def test_wire_webserver_enables_missing_modules_and_site(tmp_path):
    settings = build_settings(tmp_path)
    (tmp_path / "apache2" / "mods-enabled" / "perl.load").write_text("", encoding="utf-8")
    apache = FakeApache()

    build_service().wire_webserver(settings, apache)

    assert ["a2enmod", "perl"] not in apache.calls
    assert ["a2enmod", "rewrite"] in apache.calls
    assert ["a2enconf", "znuny"] in apache.calls
    conf = tmp_path / "apache2" / "conf-available" / "znuny.conf"
    assert conf.is_symlink()
    assert apache.calls.index(["apache2ctl", "configtest"]) < apache.calls.index(
        ["systemctl", "restart", "apache2"]
    )


def test_wire_webserver_skips_enabled_site(tmp_path):
    settings = build_settings(tmp_path)
    enabled = tmp_path / "apache2" / "conf-enabled"
    enabled.mkdir()
    (enabled / "znuny.conf").write_text("", encoding="utf-8")
    apache = FakeApache()

    build_service().wire_webserver(settings, apache)
    build_service().wire_webserver(settings, apache)

    assert ["a2enconf", "znuny"] not in apache.calls


def test_config_test_failure_stops_before_restart(tmp_path):
    settings = build_settings(tmp_path)
    apache = FakeApache(configtest_returncode=1)

    with pytest.raises(ServiceConfigError, match="Syntax error"):
        build_service().wire_webserver(settings, apache)

    assert ["systemctl", "restart", "apache2"] not in apache.calls


def test_link_site_config_requires_source(tmp_path):
    settings = InstallSettings(install_dir=str(tmp_path), apache_root=str(tmp_path / "apache2"))

    with pytest.raises(ServiceConfigError, match="Apache configuration file not found"):
        build_service().link_site_config(settings, FakeApache())


def test_remove_site_config_tolerates_missing_file(tmp_path):
    settings = InstallSettings(apache_root=str(tmp_path / "apache2"))
    apache = FakeApache()

    build_service().remove_site_config(settings, apache)

    assert apache.calls == [["a2disconf", "znuny"]]
