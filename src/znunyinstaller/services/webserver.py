"""Apache module and site-config wiring."""

import os
from typing import Callable

from znunyinstaller.constants import APACHE_CONF_NAME, APACHE_MODULES, APACHE_SERVICE
from znunyinstaller.errors import CollaboratorExitError, ServiceConfigError
from znunyinstaller.errors_catalog import actionable_error


class WebServerService:
    """Enables mod_perl and the Znuny site fragment, then restarts Apache."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    @staticmethod
    def conf_available_path(settings) -> str:
        return os.path.join(settings.apache_root, "conf-available", f"{APACHE_CONF_NAME}.conf")

    @staticmethod
    def conf_enabled_path(settings) -> str:
        return os.path.join(settings.apache_root, "conf-enabled", f"{APACHE_CONF_NAME}.conf")

    def enable_modules(self, settings, run_cmd: Callable):
        mods_enabled = os.path.join(settings.apache_root, "mods-enabled")
        for module in APACHE_MODULES:
            if os.path.exists(os.path.join(mods_enabled, f"{module}.load")):
                self.logger.debug("Apache module %s already enabled", module)
                continue
            try:
                run_cmd(["a2enmod", module], check=True, capture_output=True)
            except CollaboratorExitError as exc:
                raise ServiceConfigError(f"Failed to enable Apache module {module}: {exc}") from exc

    def link_site_config(self, settings, run_cmd: Callable):
        source = os.path.join(settings.stable_link, "scripts", "apache2-httpd.include.conf")
        if not os.path.isfile(source):
            raise ServiceConfigError(f"Apache configuration file not found: {source}")

        target = self.conf_available_path(settings)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        if os.path.islink(target) or os.path.exists(target):
            os.remove(target)
        os.symlink(source, target)

        if os.path.exists(self.conf_enabled_path(settings)):
            self.logger.debug("Apache config %s already enabled", APACHE_CONF_NAME)
            return
        try:
            run_cmd(["a2enconf", APACHE_CONF_NAME], check=True, capture_output=True)
        except CollaboratorExitError as exc:
            raise ServiceConfigError(f"Failed to enable Znuny Apache configuration: {exc}") from exc

    def config_test(self, run_cmd: Callable):
        result = run_cmd(["apache2ctl", "configtest"], check=False, capture_output=True)
        if result.returncode != 0:
            detail = (result.stderr or "").strip()
            message = actionable_error("apache_configtest_failed")
            if detail:
                message = f"{message}\n{detail}"
            raise ServiceConfigError(message)

    def wire_webserver(self, settings, run_cmd: Callable):
        self.console.print("[blue]Configuring Apache...[/blue]")
        self.logger.info("Configuring Apache...")
        self.enable_modules(settings, run_cmd)
        self.link_site_config(settings, run_cmd)
        self.config_test(run_cmd)

        try:
            run_cmd(["systemctl", "restart", APACHE_SERVICE], check=True, capture_output=True)
            run_cmd(["systemctl", "enable", APACHE_SERVICE], check=True, capture_output=True)
        except CollaboratorExitError as exc:
            raise ServiceConfigError(f"Failed to restart Apache: {exc}") from exc
        self.logger.info("Apache configured successfully")

    def remove_site_config(self, settings, run_cmd: Callable):
        run_cmd(["a2disconf", APACHE_CONF_NAME], check=False, capture_output=True)
        target = self.conf_available_path(settings)
        if os.path.islink(target) or os.path.exists(target):
            os.remove(target)
