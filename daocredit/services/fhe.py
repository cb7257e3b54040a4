"""FHE capability interface and local coprocessor"""
import base64
import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence, Set

from cryptography.exceptions import InvalidSignature
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes, hmac

from daocredit.codec import encode_clear_values
from daocredit.db import Database
from daocredit.errors import (
    CapabilityUnavailableError,
    DecryptionNotPermittedError,
    MalformedCiphertextError,
)
from daocredit.models.contribution import (
    MAX_SCORE,
    CiphertextHandle,
    DecryptionResult,
    EncryptedInput,
    normalize_address,
)
from daocredit.models.db import DecryptGrant

logger = logging.getLogger(__name__)

class FHECapability(ABC):
    """
    Encryption, access control and decryption proofs for contribution scores.

    The ledger only ever holds ciphertext handles; every operation that
    needs the plaintext goes through an implementation of this interface.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the capability can currently be reached"""

    @abstractmethod
    def encrypt(self, context: str, caller: str, value: int) -> EncryptedInput:
        """Encrypt a score for use by `caller` against ledger `context`"""

    @abstractmethod
    def check_well_formed(self, encrypted: EncryptedInput, context: str, caller: str) -> bool:
        """Check an encrypted input and its proof against context and caller"""

    @abstractmethod
    def grant_decrypt_access(self, handle: CiphertextHandle) -> None:
        """Allow the handle to be publicly decrypted"""

    @abstractmethod
    def public_decrypt(self, handles: Sequence[CiphertextHandle]) -> DecryptionResult:
        """Decrypt granted handles and produce a proof over the clear values"""

    @abstractmethod
    def verify_clear_value(self, handles: Sequence[CiphertextHandle], clear_payload: bytes, proof: bytes) -> bool:
        """Check that clear values and proof belong to the given handles"""

def _length_prefixed(*parts: bytes) -> bytes:
    return b''.join(len(p).to_bytes(4, 'big') + p for p in parts)

class LocalFHECapability(FHECapability):
    """
    In-process coprocessor for development and tests.

    Ciphertexts are Fernet tokens, so the handle carries the ciphertext
    itself. Input and decryption proofs are HMAC-SHA256 tags under the same
    key. Decrypt grants are kept in memory, or in the `fhe_acl` table when a
    database is given so that they survive restarts.
    """

    def __init__(self, key: Optional[bytes] = None, database: Optional[Database] = None):
        if key is None:
            key = Fernet.generate_key()
        if isinstance(key, str):
            key = key.encode()
        self._fernet = Fernet(key)
        self._mac_key = base64.urlsafe_b64decode(key)
        self._database = database
        self._grants: Set[str] = set()
        self._lock = threading.Lock()
        self.available = True

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def is_available(self) -> bool:
        return self.available

    def _require_available(self) -> None:
        if not self.available:
            raise CapabilityUnavailableError("Local FHE capability is offline")

    def _mac(self, *parts: bytes) -> bytes:
        h = hmac.HMAC(self._mac_key, hashes.SHA256())
        h.update(_length_prefixed(*parts))
        return h.finalize()

    def _verify_mac(self, tag: bytes, *parts: bytes) -> bool:
        h = hmac.HMAC(self._mac_key, hashes.SHA256())
        h.update(_length_prefixed(*parts))
        try:
            h.verify(tag)
            return True
        except InvalidSignature:
            return False

    @staticmethod
    def _digest(handle: CiphertextHandle) -> str:
        h = hashes.Hash(hashes.SHA256())
        h.update(handle.raw())
        return h.finalize().hex()

    def _decrypt(self, handle: CiphertextHandle) -> int:
        try:
            plaintext = self._fernet.decrypt(handle.raw())
        except InvalidToken:
            raise MalformedCiphertextError(f"Unknown or corrupted ciphertext {handle!r}")
        return int.from_bytes(plaintext, 'big')

    def encrypt(self, context: str, caller: str, value: int) -> EncryptedInput:
        self._require_available()
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Score must be an integer, got {type(value).__name__}")
        if value < 0 or value > MAX_SCORE:
            raise ValueError(f"Score must be between 0 and {MAX_SCORE}")

        token = self._fernet.encrypt(value.to_bytes(4, 'big'))
        handle = CiphertextHandle(token)
        proof = self._mac(b'input', token, normalize_address(context).encode(), normalize_address(caller).encode())
        return EncryptedInput(handle=handle, proof=proof)

    def check_well_formed(self, encrypted: EncryptedInput, context: str, caller: str) -> bool:
        self._require_available()
        token = encrypted.handle.raw()
        if not self._verify_mac(encrypted.proof, b'input', token,
                                normalize_address(context).encode(), normalize_address(caller).encode()):
            logger.warning(f"Input proof rejected for {encrypted.handle!r}")
            return False
        try:
            self._fernet.decrypt(token)
        except InvalidToken:
            logger.warning(f"Ciphertext rejected for {encrypted.handle!r}")
            return False
        return True

    def grant_decrypt_access(self, handle: CiphertextHandle) -> None:
        self._require_available()
        self._decrypt(handle)
        digest = self._digest(handle)
        with self._lock:
            if self._database is not None:
                with self._database.session() as session:
                    session.merge(DecryptGrant(handle=digest))
            else:
                self._grants.add(digest)

    def _is_granted(self, digest: str) -> bool:
        if self._database is not None:
            with self._database.session() as session:
                return session.get(DecryptGrant, digest) is not None
        return digest in self._grants

    def public_decrypt(self, handles: Sequence[CiphertextHandle]) -> DecryptionResult:
        self._require_available()
        if not handles:
            raise ValueError("At least one handle is required")

        values: List[int] = []
        for handle in handles:
            if not self._is_granted(self._digest(handle)):
                raise DecryptionNotPermittedError(f"Handle {handle!r} is not publicly decryptable")
            values.append(self._decrypt(handle))

        payload = encode_clear_values(values)
        proof = self._mac(b'decrypt', self._handles_digest(handles), payload)
        return DecryptionResult(
            clear_values=dict(zip(handles, values)),
            clear_payload=payload,
            proof=proof
        )

    def _handles_digest(self, handles: Iterable[CiphertextHandle]) -> bytes:
        return b''.join(bytes.fromhex(self._digest(h)) for h in handles)

    def verify_clear_value(self, handles: Sequence[CiphertextHandle], clear_payload: bytes, proof: bytes) -> bool:
        self._require_available()
        return self._verify_mac(proof, b'decrypt', self._handles_digest(handles), clear_payload)
