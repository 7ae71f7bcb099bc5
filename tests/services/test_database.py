import subprocess
from pathlib import Path

import pytest

from znunyinstaller.errors import ConfigNotFound, DatabaseProvisionError
from znunyinstaller.models import InstallSettings, RunContext
from znunyinstaller.services.database import DatabaseService

HBA = (
    "# Database administrative login by Unix domain socket\n"
    "local   all             postgres                                peer\n"
    "local   all             all                                     peer\n"
    "host    all             all             127.0.0.1/32            scram-sha-256\n"
)


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakePostgres:
    def __init__(self, psql_returncode=0, pg_config_output="psql (PostgreSQL) 15.6\n"):
        self.psql_returncode = psql_returncode
        self.pg_config_output = pg_config_output
        self.calls = []

    def __call__(self, cmd, check=True, capture_output=False, **kwargs):
        self.calls.append((cmd, kwargs))
        if cmd[0] == "pg_config":
            return subprocess.CompletedProcess(cmd, 0, self.pg_config_output, "")
        if cmd[0] == "su" and cmd[-1].startswith("psql"):
            return subprocess.CompletedProcess(cmd, self.psql_returncode, "", "ERROR:  role exists")
        return subprocess.CompletedProcess(cmd, 0, "", "")


def build_service():
    return DatabaseService(logger=DummyLogger(), console=DummyConsole())


def build_cluster(tmp_path, version="15", content=HBA) -> Path:
    main = tmp_path / "postgresql" / version / "main"
    main.mkdir(parents=True)
    hba = main / "pg_hba.conf"
    hba.write_text(content, encoding="utf-8")
    return hba


def build_settings(tmp_path) -> InstallSettings:
    return InstallSettings(postgres_config_root=str(tmp_path / "postgresql"))


def test_build_provision_sql_drops_before_create():
    sql = DatabaseService.build_provision_sql("znuny", "znuny", "Secret123")

    lines = sql.splitlines()
    assert lines[0] == "DROP DATABASE IF EXISTS znuny;"
    assert lines[1] == "DROP USER IF EXISTS znuny;"
    assert "CREATE USER znuny WITH PASSWORD 'Secret123';" in lines
    assert "CREATE DATABASE znuny OWNER znuny;" in lines
    assert "\\c znuny" in lines
    assert lines.index("\\c znuny") < lines.index("ALTER SCHEMA public OWNER TO znuny;")


@pytest.mark.parametrize(
    "name,user,password",
    [
        ("znuny; DROP TABLE x", "znuny", "abc"),
        ("znuny", "Znuny", "abc"),
        ("znuny", "znuny", "abc'def"),
        ("", "znuny", "abc"),
    ],
)
def test_validate_identifiers_rejects_unsafe_values(name, user, password):
    with pytest.raises(DatabaseProvisionError):
        DatabaseService.validate_identifiers(name, user, password)


def test_create_role_and_database_sends_sql_on_stdin():
    fake = FakePostgres()

    build_service().create_role_and_database("znuny", "znuny", "Secret123", fake)

    cmd, kwargs = fake.calls[0]
    assert cmd == ["su", "-", "postgres", "-c", "psql -v ON_ERROR_STOP=1"]
    assert "CREATE DATABASE znuny OWNER znuny;" in kwargs["input_text"]


def test_create_role_and_database_raises_on_psql_failure():
    with pytest.raises(DatabaseProvisionError, match="role exists"):
        build_service().create_role_and_database(
            "znuny", "znuny", "Secret123", FakePostgres(psql_returncode=3)
        )


def test_insert_auth_rule_goes_before_catch_all():
    lines = HBA.splitlines(keepends=True)

    updated = DatabaseService.insert_auth_rule(lines, "znuny", "znuny")

    rule_index = next(i for i, line in enumerate(updated) if line.startswith("local   znuny"))
    assert updated[rule_index + 1].startswith("local   all             all")
    assert updated[rule_index].split() == ["local", "znuny", "znuny", "md5"]


def test_insert_auth_rule_appends_without_catch_all():
    lines = ["host all all 127.0.0.1/32 md5"]

    updated = DatabaseService.insert_auth_rule(lines, "znuny", "znuny")

    assert updated[0] == "host all all 127.0.0.1/32 md5\n"
    assert updated[-1].split() == ["local", "znuny", "znuny", "md5"]


def test_configure_client_auth_backs_up_and_inserts_once(tmp_path):
    hba = build_cluster(tmp_path)
    settings = build_settings(tmp_path)
    context = RunContext(run_id="abc")
    service = build_service()
    fake = FakePostgres()

    service.configure_client_auth(settings, context, fake)

    backups = list(hba.parent.glob("pg_hba.conf.backup.*"))
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == HBA

    service.configure_client_auth(settings, context, fake)

    content = hba.read_text(encoding="utf-8")
    assert content.count("local   znuny") == 1
    assert context.pg_version == "15"
    assert context.pg_config_dir == str(hba.parent)
    assert (["systemctl", "reload", "postgresql"], {}) in fake.calls


def test_detect_pg_version_falls_back_to_config_directories(tmp_path):
    build_cluster(tmp_path, version="13")
    build_cluster(tmp_path, version="16")

    version = build_service().detect_pg_version(
        build_settings(tmp_path), FakePostgres(pg_config_output="")
    )

    assert version == "16"


def test_detect_pg_version_raises_when_nothing_found(tmp_path):
    with pytest.raises(ConfigNotFound):
        build_service().detect_pg_version(build_settings(tmp_path), FakePostgres(pg_config_output=""))


def test_configure_client_auth_requires_main_directory(tmp_path):
    (tmp_path / "postgresql" / "15").mkdir(parents=True)

    with pytest.raises(ConfigNotFound, match="config directory not found"):
        build_service().configure_client_auth(
            build_settings(tmp_path), RunContext(run_id="abc"), FakePostgres()
        )


def test_check_connectivity_passes_password_through_environment():
    fake = FakePostgres()
    context = RunContext(run_id="abc", db_password="Secret123")

    assert build_service().check_connectivity(InstallSettings(), context, fake) is True

    cmd, kwargs = fake.calls[0]
    assert cmd[:3] == ["psql", "-h", "localhost"]
    assert "Secret123" not in " ".join(cmd)
    assert kwargs["env"] == {"PGPASSWORD": "Secret123"}


def test_drop_database_uses_if_exists():
    fake = FakePostgres()

    build_service().drop_database("znuny", "znuny", fake)

    commands = [cmd for cmd, _ in fake.calls]
    assert commands == [
        ["su", "-", "postgres", "-c", "dropdb --if-exists znuny"],
        ["su", "-", "postgres", "-c", "dropuser --if-exists znuny"],
    ]
