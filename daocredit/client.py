"""Client-side contribution lifecycle: encrypt, submit, request verification"""
import logging
import time
from typing import Callable, Dict, List, Optional

from daocredit.errors import (
    AlreadyVerifiedError,
    CapabilityError,
    CapabilityUnavailableError,
    DuplicateIdError,
    InvalidProofError,
    LedgerError,
    NotFoundError,
)
from daocredit.models.contribution import (
    CategoryCount,
    Contribution,
    ContributionDraft,
    History,
    LeaderboardEntry,
    UserStats,
)
from daocredit.models.status import ContributionState, TransactionStatus
from daocredit.scoring import ALL_CATEGORIES, ContributionScorer, category_counts, filter_contributions
from daocredit.services.fhe import FHECapability
from daocredit.services.ledger import Ledger

logger = logging.getLogger(__name__)

def default_id_factory() -> str:
    return f"contribution-{int(time.time() * 1000)}"

class ContributionClient:
    """Drives contributions through encryption, submission and verification"""

    def __init__(self, ledger: Ledger, fhe: FHECapability, history_size: int = 10,
                 leaderboard_size: int = 10, id_factory: Callable[[], str] = default_id_factory):
        """Initialize client with the ledger and the capability it encrypts against"""
        self.ledger = ledger
        self.fhe = fhe
        self.scorer = ContributionScorer(leaderboard_size)
        self.history = History(size=history_size)
        self.id_factory = id_factory
        self.states: Dict[str, ContributionState] = {}

    def _transition(self, contribution_id: str, state: ContributionState) -> None:
        logger.info(f"{contribution_id}: {self.states.get(contribution_id, ContributionState.DRAFT).value} -> {state.value}")
        self.states[contribution_id] = state

    def _reject(self, contribution_id: Optional[str], message: str, retryable: bool = True) -> TransactionStatus:
        if contribution_id is not None:
            self._transition(contribution_id, ContributionState.REJECTED)
        return TransactionStatus.error(
            message,
            state=ContributionState.REJECTED,
            contribution_id=contribution_id,
            retryable=retryable
        )

    def check_availability(self) -> TransactionStatus:
        """Report whether the FHE system can be used"""
        if self.ledger.is_available():
            return TransactionStatus.success("FHE system is available")
        return TransactionStatus.error("Availability check failed", retryable=True)

    def create_contribution(self, draft: ContributionDraft, submitter: Optional[str]) -> TransactionStatus:
        """Encrypt a draft's score and submit it under a fresh id"""
        if not submitter or not submitter.strip():
            return TransactionStatus.error("Please connect wallet first")

        contribution_id = self.id_factory()
        self.states[contribution_id] = ContributionState.DRAFT
        self._transition(contribution_id, ContributionState.ENCRYPTING)
        try:
            encrypted = self.fhe.encrypt(self.ledger.address, submitter, draft.score)
        except ValueError as e:
            return self._reject(contribution_id, f"Invalid score: {e}", retryable=False)
        except CapabilityUnavailableError as e:
            logger.error(f"Encryption unavailable for {contribution_id}: {e}")
            return self._reject(contribution_id, "FHE system unavailable, please try again")
        except CapabilityError as e:
            logger.error(f"Encryption failed for {contribution_id}: {e}")
            return self._reject(contribution_id, "Encryption failed, please try again")

        try:
            self.ledger.submit_contribution(
                contribution_id,
                encrypted,
                submitter,
                name=draft.name,
                description=draft.description,
                category=draft.category
            )
        except DuplicateIdError:
            logger.error(f"Generated contribution id {contribution_id} is already taken")
            return self._reject(
                contribution_id,
                "Contribution id already in use, a new id must be generated",
                retryable=False
            )
        except CapabilityUnavailableError as e:
            logger.error(f"Submission of {contribution_id} failed: {e}")
            return self._reject(contribution_id, "FHE system unavailable, please try again")
        except CapabilityError as e:
            logger.error(f"Submission of {contribution_id} rejected: {e}")
            return self._reject(contribution_id, "Creation failed, please try again")

        self._transition(contribution_id, ContributionState.SUBMITTED)
        self.history.add(f"Created contribution: {draft.name}")
        return TransactionStatus.success(
            "Contribution created successfully!",
            state=ContributionState.SUBMITTED,
            contribution_id=contribution_id
        )

    def _already_verified(self, contribution: Contribution) -> TransactionStatus:
        self._transition(contribution.contribution_id, ContributionState.VERIFIED)
        return TransactionStatus.success(
            "Data already verified",
            state=ContributionState.VERIFIED,
            contribution_id=contribution.contribution_id,
            clear_score=contribution.clear_score
        )

    def decrypt_contribution(self, contribution_id: str, caller: Optional[str]) -> TransactionStatus:
        """Request decryption of a stored score and confirm it to the ledger"""
        if not caller:
            return TransactionStatus.error("Please connect wallet first")

        try:
            contribution = self.ledger.get_contribution(contribution_id)
        except NotFoundError:
            return TransactionStatus.error(
                f"Contribution {contribution_id} not found",
                contribution_id=contribution_id
            )
        if contribution.verified:
            return self._already_verified(contribution)

        self._transition(contribution_id, ContributionState.VERIFICATION_REQUESTED)
        try:
            handle = self.ledger.get_encrypted_score(contribution_id)
            result = self.fhe.public_decrypt([handle])
            verified = self.ledger.verify_contribution(contribution_id, result.clear_payload, result.proof)
        except AlreadyVerifiedError:
            return self._already_verified(self.ledger.get_contribution(contribution_id))
        except CapabilityUnavailableError as e:
            logger.error(f"Decryption unavailable for {contribution_id}: {e}")
            return self._reject(contribution_id, "FHE system unavailable, please try again")
        except InvalidProofError as e:
            logger.error(f"Decryption proof rejected for {contribution_id}: {e}")
            return self._reject(contribution_id, "Decryption failed, please try again")
        except (CapabilityError, LedgerError) as e:
            logger.error(f"Decryption of {contribution_id} failed: {e}")
            return self._reject(contribution_id, "Decryption failed, please try again")

        self._transition(contribution_id, ContributionState.VERIFIED)
        self.history.add(f"Decrypted contribution: {verified.name or contribution_id}")
        return TransactionStatus.success(
            "Data decrypted successfully!",
            state=ContributionState.VERIFIED,
            contribution_id=contribution_id,
            clear_score=verified.clear_score
        )

    def list_contributions(self, search: str = '', category: str = ALL_CATEGORIES) -> List[Contribution]:
        return filter_contributions(self.ledger.list_contributions(), search, category)

    def category_counts(self) -> List[CategoryCount]:
        return category_counts(self.ledger.list_contributions())

    def user_stats(self, address: str) -> UserStats:
        return self.scorer.calculate_user_stats(self.ledger.list_contributions(), address)

    def leaderboard(self, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        """Top members read from the ledger's verified aggregates"""
        limit = self.scorer.leaderboard_size if limit is None else limit
        return [LeaderboardEntry(address=m.address, score=m.total_score) for m in self.ledger.list_members()[:limit]]
