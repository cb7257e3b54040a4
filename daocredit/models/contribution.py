"""Domain models for contributions and member aggregates"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

MAX_SCORE = 2 ** 32 - 1

def utcnow() -> datetime:
    """Naive UTC timestamp, as stored by the database"""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def normalize_address(address: str) -> str:
    """Canonical form of a member identity"""
    return address.strip().lower()

class ContributionCategory(Enum):
    """Public category of a contribution"""
    DEVELOPMENT = 1
    GOVERNANCE = 2
    COMMUNITY = 3

    @classmethod
    def from_label(cls, label: str) -> 'ContributionCategory':
        """Look up a category by its lower-case label"""
        try:
            return cls[label.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown contribution category: {label}")

    @property
    def label(self) -> str:
        return self.name.lower()

class CiphertextHandle:
    """
    Opaque reference to an encrypted value.

    Handles can be used as keys and compared for identity of the reference,
    but expose no ordering and no numeric view of the underlying value.
    Only the FHE capability interprets the raw bytes.
    """
    __slots__ = ('_raw',)

    def __init__(self, raw: bytes):
        if not isinstance(raw, (bytes, bytearray)) or not raw:
            raise ValueError("Ciphertext handle must be non-empty bytes")
        self._raw = bytes(raw)

    @classmethod
    def from_hex(cls, value: str) -> 'CiphertextHandle':
        if value.startswith('0x'):
            value = value[2:]
        return cls(bytes.fromhex(value))

    def to_hex(self) -> str:
        return '0x' + self._raw.hex()

    def raw(self) -> bytes:
        """Raw bytes, for use at the capability boundary only"""
        return self._raw

    def __eq__(self, other):
        if not isinstance(other, CiphertextHandle):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self):
        return hash(self._raw)

    def __repr__(self):
        return f"CiphertextHandle({self._raw[:4].hex()}...)"

@dataclass(frozen=True)
class EncryptedInput:
    """Encrypted score with the proof binding it to a context and caller"""
    handle: CiphertextHandle
    proof: bytes

@dataclass(frozen=True)
class DecryptionResult:
    """Clear values with the proof binding them to their handles"""
    clear_values: Dict[CiphertextHandle, int]
    clear_payload: bytes
    proof: bytes

@dataclass
class ContributionDraft:
    """Plaintext contribution entered by a member, before encryption"""
    name: str
    score: int
    category: ContributionCategory = ContributionCategory.DEVELOPMENT
    description: str = ''

@dataclass
class Contribution:
    """Snapshot of a stored contribution"""
    contribution_id: str
    submitter: str
    submitted_at: datetime
    verified: bool
    clear_score: Optional[int]  # None until verified
    name: str = ''
    description: str = ''
    category: ContributionCategory = ContributionCategory.DEVELOPMENT

    @property
    def timestamp(self) -> int:
        """Submission time in unix seconds"""
        return int(self.submitted_at.replace(tzinfo=timezone.utc).timestamp())

@dataclass
class Member:
    """Snapshot of a member aggregate"""
    address: str
    total_score: int = 0
    contribution_count: int = 0
    last_updated: Optional[datetime] = None
    exists: bool = False

@dataclass
class UserStats:
    """Per-member figures shown by the client"""
    total_contributions: int
    verified_count: int
    avg_score: float
    rank: int

@dataclass
class LeaderboardEntry:
    """Verified total of one submitter"""
    address: str
    score: int

@dataclass
class CategoryCount:
    """Number of contributions in a category filter"""
    id: str
    name: str
    count: int

@dataclass
class History:
    """Most recent client actions, newest first"""
    size: int = 10
    entries: List[str] = field(default_factory=list)

    def add(self, action: str, at: Optional[datetime] = None) -> None:
        stamp = (at or utcnow()).strftime('%H:%M:%S')
        self.entries.insert(0, f"{stamp}: {action}")
        del self.entries[self.size:]
