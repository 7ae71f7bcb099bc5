import logging
import os
from typing import Optional

import click

from .constants import DEFAULT_ZNUNY_VERSION, INSTALLER_AUTOMATED, INSTALLER_MODES, MODE_INSTALL, RUN_MODES
from .core import ZnunyInstaller
from .errors import InstallerError
from .models import InstallSettings
from .services.config_loader import ConfigLoader
from .services.log_sink import build_console_handlers


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _normalize_sha256(value: Optional[str], option_name: str) -> Optional[str]:
    if value is None:
        return None

    clean_value = str(value).strip().lower()
    if len(clean_value) != 64 or any(c not in "0123456789abcdef" for c in clean_value):
        raise InstallerError(
            f"{option_name} must be a valid SHA-256 hash (64 hexadecimal characters)."
        )
    return clean_value


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=build_console_handlers(),
)


@click.command()
@click.argument(
    "mode",
    required=False,
    default=MODE_INSTALL,
    type=click.Choice(RUN_MODES),
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .znunyinstaller.yml if present.",
)
@click.option(
    "--installer-mode",
    required=False,
    type=click.Choice(INSTALLER_MODES),
    help="automated: create the schema and admin user now. "
    "interactive: leave schema setup to the web installer.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
def main(mode, config, installer_mode, verbose):
    """Install or uninstall Znuny with PostgreSQL and Apache on Debian/Ubuntu."""
    logger = logging.getLogger("znunyinstaller")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ".znunyinstaller.yml")
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except InstallerError as exc:
        raise click.ClickException(str(exc)) from exc

    installer_mode = _resolve_option(
        installer_mode, config_values, "installer_mode", default=INSTALLER_AUTOMATED
    )
    if installer_mode not in INSTALLER_MODES:
        raise click.ClickException(
            f"Invalid installer_mode '{installer_mode}'. Use one of: {', '.join(INSTALLER_MODES)}"
        )
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))

    try:
        archive_sha256 = _normalize_sha256(config_values.get("archive_sha256"), "archive_sha256")
        settings = InstallSettings(
            znuny_version=str(config_values.get("znuny_version", DEFAULT_ZNUNY_VERSION)),
            installer_mode=installer_mode,
            db_name=config_values.get("db_name", "znuny"),
            db_user=config_values.get("db_user", "znuny"),
            db_host=config_values.get("db_host", "localhost"),
            organization=config_values.get("organization", "Znuny"),
            system_id=int(config_values.get("system_id", 10)),
            log_dir=config_values.get("log_dir", "/var/log"),
            credentials_file=config_values.get("credentials_file", "/root/znuny-credentials.txt"),
            archive_sha256=archive_sha256,
        )
    except (InstallerError, TypeError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    installer = ZnunyInstaller(settings=settings, verbose=verbose)
    raise SystemExit(installer.run(mode))


if __name__ == "__main__":
    main()
