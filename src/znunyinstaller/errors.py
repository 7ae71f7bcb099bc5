"""Domain errors for ZnunyInstaller."""


class InstallerError(RuntimeError):
    """Raised when the installation cannot continue safely."""


class PreconditionError(InstallerError):
    """The host is not suitable for the installation."""


class UnsupportedPlatform(PreconditionError):
    pass


class VersionTooLow(PreconditionError):
    pass


class InsufficientResources(PreconditionError):
    pass


class CollaboratorExitError(InstallerError):
    """An external tool returned a non-zero exit code."""


class CommandNotFoundError(CollaboratorExitError):
    pass


class TransientFetchError(InstallerError):
    """A single download attempt failed and may be retried."""


class DownloadError(InstallerError):
    pass


class ExtractError(InstallerError):
    pass


class PackageInstallError(InstallerError):
    pass


class DatabaseProvisionError(InstallerError):
    pass


class ConfigNotFound(DatabaseProvisionError):
    pass


class RenderError(InstallerError):
    pass


class ServiceConfigError(InstallerError):
    pass


class DbInitError(InstallerError):
    pass


class WriteError(InstallerError):
    pass


class InstallationAborted(InstallerError):
    """The run was terminated by a signal."""
