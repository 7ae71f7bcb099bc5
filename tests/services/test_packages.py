import subprocess

import pytest

from znunyinstaller.errors import PackageInstallError
from znunyinstaller.services.packages import PackageService


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


class FakeApt:
    def __init__(self, dpkg_output="", install_returncode=0):
        self.dpkg_output = dpkg_output
        self.install_returncode = install_returncode
        self.calls = []

    def __call__(self, cmd, check=True, capture_output=False, **kwargs):
        self.calls.append((cmd, kwargs))
        if cmd[0] == "dpkg-query":
            return subprocess.CompletedProcess(cmd, 0, self.dpkg_output, "")
        if cmd[:2] == ["apt-get", "install"]:
            return subprocess.CompletedProcess(cmd, self.install_returncode, "", "E: broken")
        return subprocess.CompletedProcess(cmd, 0, "", "")


def test_missing_packages_parses_dpkg_status():
    fake = FakeApt(
        dpkg_output=(
            "apache2 install ok installed\n"
            "curl deinstall ok config-files\n"
            "libdbi-perl:amd64 install ok installed\n"
        )
    )
    service = PackageService(logger=DummyLogger(), console=DummyConsole())

    missing = service.missing_packages(["apache2", "curl", "git", "libdbi-perl"], fake)

    assert missing == ["curl", "git"]


def test_ensure_installed_installs_only_missing_delta():
    fake = FakeApt(dpkg_output="apache2 install ok installed\n")
    service = PackageService(logger=DummyLogger(), console=DummyConsole())

    assert service.ensure_installed(["apache2", "curl", "git"], fake) is True

    commands = [cmd for cmd, _ in fake.calls]
    assert ["apt-get", "update", "-qq"] in commands
    install_cmd, install_kwargs = fake.calls[-1]
    assert install_cmd == ["apt-get", "install", "-y", "curl", "git"]
    assert install_kwargs["env"] == {"DEBIAN_FRONTEND": "noninteractive"}


def test_ensure_installed_is_noop_when_everything_present():
    fake = FakeApt(dpkg_output="apache2 install ok installed\ncurl install ok installed\n")
    service = PackageService(logger=DummyLogger(), console=DummyConsole())

    assert service.ensure_installed(["apache2", "curl"], fake) is True
    assert [cmd[0] for cmd, _ in fake.calls] == ["dpkg-query"]


def test_package_index_is_refreshed_once_per_run():
    fake = FakeApt()
    service = PackageService(logger=DummyLogger(), console=DummyConsole())

    service.ensure_installed(["curl"], fake)
    service.ensure_installed(["git"], fake)

    updates = [cmd for cmd, _ in fake.calls if cmd[:2] == ["apt-get", "update"]]
    assert len(updates) == 1


def test_ensure_installed_raises_on_failure():
    fake = FakeApt(install_returncode=100)
    service = PackageService(logger=DummyLogger(), console=DummyConsole())

    with pytest.raises(PackageInstallError, match="broken"):
        service.ensure_installed(["libdbi-perl"], fake)


def test_ensure_installed_best_effort_warns_instead():
    fake = FakeApt(install_returncode=100)
    logger = DummyLogger()
    service = PackageService(logger=logger, console=DummyConsole())

    assert service.ensure_installed(["libnet-ldap-perl"], fake, best_effort=True) is False
    assert any("optional packages" in message for message in logger.warnings)
