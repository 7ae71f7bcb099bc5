"""Renders Kernel/Config.pm from a closed set of typed fields."""

import os
from dataclasses import asdict, dataclass, fields
from string import Template
from typing import Any, Callable, Dict, Mapping

from znunyinstaller.constants import CONFIG_FILE_MODE
from znunyinstaller.errors import CollaboratorExitError, RenderError

INSERTION_MARKER = "# $DIBI$"
DSN = "DBI:Pg:dbname=$Self->{Database};host=$Self->{DatabaseHost}"


class _ConfigTemplate(Template):
    delimiter = "@@"


CONFIG_TEMPLATE = _ConfigTemplate(
    """# --
# Copyright (C) 2001-2021 OTRS AG, https://otrs.com/
# Copyright (C) 2021 Znuny GmbH, https://znuny.org/
# --
# This software comes with ABSOLUTELY NO WARRANTY. For details, see
# the enclosed file COPYING for license information (GPL). If you
# did not receive this file, see https://www.gnu.org/licenses/gpl-3.0.txt.
# --

package Kernel::Config;

use strict;
use warnings;
use utf8;

sub Load {
    my $Self = shift;

    # ---------------------------------------------------- #
    # database settings                                    #
    # ---------------------------------------------------- #

    # The database host
    $Self->{DatabaseHost} = '@@{database_host}';

    # The database name
    $Self->{Database} = '@@{database_name}';

    # The database user
    $Self->{DatabaseUser} = '@@{database_user}';

    # The password of database user.
    $Self->{DatabasePw} = '@@{database_password}';

    # The database DSN
    $Self->{DatabaseDSN} = "@@{database_dsn}";

    # ---------------------------------------------------- #
    # fs root directory
    # ---------------------------------------------------- #
    $Self->{Home} = '@@{home}';

    # ---------------------------------------------------- #
    # insert your own config settings "here"               #
    # config settings taken from Kernel/Config/Defaults.pm #
    # ---------------------------------------------------- #

    $Self->{SecureMode} = @@{secure_mode};
    $Self->{SystemID} = @@{system_id};
    $Self->{FQDN} = '@@{fqdn}';
    $Self->{AdminEmail} = '@@{admin_email}';
    $Self->{Organization} = '@@{organization}';

    # ---------------------------------------------------- #

    # ---------------------------------------------------- #
    # data inserted by installer                           #
    # ---------------------------------------------------- #
    # $DIBI$

    # ---------------------------------------------------- #
    # ---------------------------------------------------- #
    #                                                      #
    # end of your own config options!!!                    #
    #                                                      #
    # ---------------------------------------------------- #
    # ---------------------------------------------------- #

    return 1;
}

# ---------------------------------------------------- #
# needed system stuff (don't edit this)                #
# ---------------------------------------------------- #

use Kernel::Config::Defaults; # import Translatable()
use parent qw(Kernel::Config::Defaults);

# -----------------------------------------------------#

1;
"""
)


@dataclass(frozen=True)
class ConfigFields:
    """Every value injected into Config.pm."""

    database_host: str
    database_name: str
    database_user: str
    database_password: str
    database_dsn: str
    home: str
    secure_mode: bool
    system_id: int
    fqdn: str
    admin_email: str
    organization: str

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ConfigFields":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise RenderError(f"Unknown config fields: {', '.join(unknown)}")
        missing = sorted(known - set(values))
        if missing:
            raise RenderError(f"Missing config fields: {', '.join(missing)}")
        return cls(**values)

    def validate(self):
        for name, value in asdict(self).items():
            if isinstance(value, bool):
                continue
            if isinstance(value, int):
                if value <= 0:
                    raise RenderError(f"Config field '{name}' must be a positive integer.")
                continue
            if not isinstance(value, str) or not value.strip():
                raise RenderError(f"Config field '{name}' must be a non-empty string.")
            if "'" in value or "\n" in value:
                raise RenderError(f"Config field '{name}' contains a forbidden character.")

    def substitutions(self) -> Dict[str, str]:
        values = {name: str(value) for name, value in asdict(self).items()}
        values["secure_mode"] = "1" if self.secure_mode else "0"
        return values


class ConfigRenderer:
    """Writes the Znuny runtime configuration for one run."""

    def __init__(self, logger, filesystem_service):
        self.logger = logger
        self.filesystem_service = filesystem_service

    @staticmethod
    def build_fields(settings, context) -> ConfigFields:
        hostname = context.hostname or "localhost"
        return ConfigFields.from_mapping(
            {
                "database_host": settings.db_host,
                "database_name": settings.db_name,
                "database_user": settings.db_user,
                "database_password": context.db_password or "",
                "database_dsn": DSN,
                "home": settings.stable_link,
                "secure_mode": settings.is_automated,
                "system_id": settings.system_id,
                "fqdn": hostname,
                "admin_email": f"admin@{hostname}",
                "organization": settings.organization,
            }
        )

    def render(self, config_fields: ConfigFields) -> str:
        config_fields.validate()
        try:
            content = CONFIG_TEMPLATE.substitute(config_fields.substitutions())
        except (KeyError, ValueError) as exc:
            raise RenderError(f"Config template substitution failed: {exc}") from exc

        if INSERTION_MARKER not in content:
            raise RenderError("Rendered configuration lost the installer insertion marker.")
        return content

    def write_config(self, settings, context, run_cmd: Callable):
        self.logger.info("Configuring Znuny...")
        config_file = settings.config_file
        if not os.path.isdir(os.path.dirname(config_file)):
            raise RenderError(f"Znuny Kernel directory not found: {os.path.dirname(config_file)}")

        content = self.render(self.build_fields(settings, context))
        try:
            with open(config_file, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
        except OSError as exc:
            raise RenderError(f"Could not write {config_file}: {exc}") from exc

        try:
            self.filesystem_service.chown(
                config_file, settings.service_user, settings.web_group, run_cmd
            )
        except CollaboratorExitError as exc:
            raise RenderError(f"Could not set ownership on {config_file}: {exc}") from exc
        self.filesystem_service.set_permissions(config_file, CONFIG_FILE_MODE)
        self.logger.info("Znuny configuration file created")
