"""TransactionStatus model definition"""
from enum import Enum
from typing import Optional
from pydantic import BaseModel

class ContributionState(str, Enum):
    """Client-side lifecycle of a contribution"""
    DRAFT = 'draft'
    ENCRYPTING = 'encrypting'
    SUBMITTED = 'submitted'
    VERIFICATION_REQUESTED = 'verification_requested'
    VERIFIED = 'verified'
    REJECTED = 'rejected'

class TransactionStatus(BaseModel):
    """
    Outcome of a client action, as presented to the user.

    Attributes:
        status: "success" or "error"
        message: User-facing description
        state: Lifecycle state the contribution reached, if any
        contribution_id: Id the action applied to
        clear_score: Revealed score, when known
        retryable: Whether repeating the action may succeed
    """
    status: str
    message: str
    state: Optional[ContributionState] = None
    contribution_id: Optional[str] = None
    clear_score: Optional[int] = None
    retryable: bool = False

    @property
    def ok(self) -> bool:
        return self.status == 'success'

    @classmethod
    def success(cls, message: str, **kwargs) -> 'TransactionStatus':
        return cls(status='success', message=message, **kwargs)

    @classmethod
    def error(cls, message: str, **kwargs) -> 'TransactionStatus':
        return cls(status='error', message=message, **kwargs)
