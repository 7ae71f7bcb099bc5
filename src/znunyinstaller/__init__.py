"""
ZnunyInstaller - Idempotent Znuny provisioning for Debian and Ubuntu
"""

__version__ = "0.1.0"

from .core import ZnunyInstaller
from .errors import InstallerError

__all__ = ["ZnunyInstaller", "InstallerError"]
