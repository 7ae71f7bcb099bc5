"""Fixed names, paths and package sets used by ZnunyInstaller."""

MODE_INSTALL = "install"
MODE_UNINSTALL = "uninstall"
RUN_MODES = (MODE_INSTALL, MODE_UNINSTALL)

INSTALLER_AUTOMATED = "automated"
INSTALLER_INTERACTIVE = "interactive"
INSTALLER_MODES = (INSTALLER_AUTOMATED, INSTALLER_INTERACTIVE)

DEFAULT_ZNUNY_VERSION = "6.5.15"
DOWNLOAD_URL_TEMPLATE = "https://download.znuny.org/releases/znuny-{version}.tar.gz"

MIN_PERL_VERSION = "5.16.0"
DB_IDENTIFIER_PATTERN = r"^[a-z_][a-z0-9_]*$"
MIN_FREE_DISK_GB = 2
PREFLIGHT_PAUSE_SECONDS = 3

DOWNLOAD_ATTEMPTS = 3
DOWNLOAD_BACKOFF_SECONDS = 5.0
DOWNLOAD_TIMEOUT_SECONDS = 60

AUTOMATED_PASSWORD_LENGTH = 16
INTERACTIVE_PASSWORD_LENGTH = 25

LOG_FILE_MODE = 0o600
CREDENTIALS_FILE_MODE = 0o600
CONFIG_FILE_MODE = 0o660
TREE_MODE = 0o755
VAR_DIR_MODE = 0o770
VAR_FILE_MODE = 0o660

ADMIN_LOGIN = "root@localhost"
ADMIN_GROUPS = ("admin", "users")

SYSTEM_PACKAGES = (
    "apache2",
    "libapache2-mod-perl2",
    "build-essential",
    "libssl-dev",
    "libexpat1-dev",
    "libxml2-dev",
    "libxslt1-dev",
    "libyaml-dev",
    "libgd-dev",
    "libpq-dev",
    "curl",
    "wget",
    "git",
    "bc",
)

POSTGRES_PACKAGES = ("postgresql", "postgresql-contrib")

PERL_PACKAGES = (
    "libdbi-perl",
    "libdbd-pg-perl",
    "libcgi-pm-perl",
    "libwww-perl",
    "libxml-libxml-perl",
    "libxml-parser-perl",
    "libtemplate-perl",
    "libjson-xs-perl",
    "libtext-csv-perl",
    "libtimedate-perl",
    "libarchive-zip-perl",
    "libdata-uuid-perl",
    "libdatetime-perl",
    "libmoo-perl",
    "libnet-dns-perl",
    "libyaml-libyaml-perl",
    "libtext-csv-xs-perl",
    "libio-socket-ssl-perl",
    "libcrypt-eksblowfish-perl",
    "libapache-dbi-perl",
    "libmime-tools-perl",
)

OPTIONAL_PERL_PACKAGES = (
    "libmail-imapclient-perl",
    "libnet-ldap-perl",
    "libpdf-api2-perl",
    "libgd-text-perl",
    "libgd-graph-perl",
    "libexcel-writer-xlsx-perl",
    "libauthen-sasl-perl",
    "libauthen-ntlm-perl",
    "libcrypt-cbc-perl",
    "libcrypt-rijndael-perl",
)

APACHE_MODULES = ("perl", "headers", "deflate", "filter", "expires", "rewrite")
APACHE_SERVICE = "apache2"
APACHE_CONF_NAME = "znuny"
POSTGRES_SERVICE = "postgresql"
DAEMON_SERVICE = "znuny"

RUNTIME_VAR_DIRS = ("tmp", "log", "sessions", "article")
