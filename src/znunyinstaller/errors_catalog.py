"""Actionable error catalog for ZnunyInstaller."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "not_root": {
        "what": "This installer must be run as root.",
        "next": "Re-run the command with `sudo` or from a root shell.",
    },
    "unsupported_platform": {
        "what": "Unsupported operating system: {path} not found.",
        "next": "Run the installer on Debian or Ubuntu.",
    },
    "perl_missing": {
        "what": "Perl is not installed.",
        "next": "Install it with `apt-get install perl` and retry.",
    },
    "perl_too_old": {
        "what": "Perl version must be {minimum} or higher. Current: {current}",
        "next": "Upgrade the distribution Perl package before installing Znuny.",
    },
    "insufficient_disk": {
        "what": "Insufficient disk space in {path}: {available_gb:.1f} GiB available.",
        "next": "Free at least {required_gb} GiB on the install volume and retry.",
    },
    "download_failed": {
        "what": "Failed to download {url} after {attempts} attempts.",
        "next": "Check network access to download.znuny.org or place the archive at {path}.",
    },
    "pg_version_unknown": {
        "what": "Could not determine the PostgreSQL version.",
        "next": "Verify that PostgreSQL is installed and {root} contains its configuration.",
    },
    "pg_config_dir_missing": {
        "what": "PostgreSQL config directory not found: {path}",
        "next": "Check the PostgreSQL cluster with `pg_lsclusters`.",
    },
    "apache_configtest_failed": {
        "what": "Apache configuration test failed.",
        "next": "Run `apache2ctl configtest` and fix the reported directives.",
    },
    "console_missing": {
        "what": "Znuny installation appears incomplete. Missing {path}",
        "next": "Remove {archive} and re-run to download a fresh archive.",
    },
}


def actionable_error(code: str, **kwargs) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
