"""Signing service interface.

Keys never touch this client; signing is delegated to an external service.
"""

from swaphive.signing.base import SigningResult, SigningService
from swaphive.signing.dry_run import DryRunSigner

__all__ = ["SigningResult", "SigningService", "DryRunSigner"]
