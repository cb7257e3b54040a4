"""Exception hierarchy for ledger and FHE capability failures"""
from typing import Optional


class DaoCreditError(Exception):
    """Base exception for all daocredit errors"""
    pass


class LedgerError(DaoCreditError):
    """Base exception for rejected ledger operations"""

    def __init__(self, message: str, contribution_id: Optional[str] = None):
        super().__init__(message)
        self.contribution_id = contribution_id


class DuplicateIdError(LedgerError):
    """A contribution record already exists under this id"""
    pass


class NotFoundError(LedgerError):
    """No contribution record was ever created under this id"""
    pass


class AlreadyVerifiedError(LedgerError):
    """The contribution has already been verified"""
    pass


class CapabilityError(DaoCreditError):
    """Base exception for FHE capability failures"""
    pass


class InvalidProofError(CapabilityError):
    """A decryption proof or clear value payload was rejected"""
    pass


class MalformedCiphertextError(CapabilityError):
    """An encrypted input or its proof is not well formed"""
    pass


class CapabilityUnavailableError(CapabilityError):
    """The FHE capability cannot be reached"""
    pass


class RelayerResponseError(CapabilityError):
    """The FHE relayer answered with a body that cannot be used"""
    pass


class DecryptionNotPermittedError(CapabilityError):
    """Decryption was requested for a handle without a grant"""
    pass
