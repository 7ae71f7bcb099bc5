import pytest

from znunyinstaller.errors import InstallerError
from znunyinstaller.models import InstallSettings, RunContext


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"db_user": "Znuny"}, "Invalid db_user"),
        ({"db_name": ""}, "Invalid db_name"),
        ({"system_id": -1}, "Invalid system_id"),
        ({"organization": "O'Brien Ltd"}, "organization"),
    ],
)
def test_install_settings_reject_unsafe_values(overrides, message):
    with pytest.raises(InstallerError, match=message):
        InstallSettings(**overrides)


def test_install_settings_derive_paths():
    settings = InstallSettings(install_dir="/srv", znuny_version="6.5.14")

    assert settings.stable_link == "/srv/otrs"
    assert settings.release_dir == "/srv/znuny-6.5.14"
    assert settings.archive_path == "/srv/znuny-6.5.14.tar.gz"
    assert settings.config_file == "/srv/otrs/Kernel/Config.pm"


def test_run_context_tracks_furthest_stage():
    context = RunContext(run_id="abc")
    assert context.furthest_stage is None

    context.mark_completed("check_preconditions")
    context.mark_completed("confirm_start")
    context.mark_completed("check_preconditions")

    assert context.completed_stages == ["check_preconditions", "confirm_start"]
    assert context.furthest_stage == "confirm_start"
