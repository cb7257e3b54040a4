"""Contribution ledger: encrypted submissions, one-time verification, member aggregates"""
import logging
import threading
from typing import Callable, List, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from daocredit.codec import decode_clear_values
from daocredit.db import Database
from daocredit.errors import (
    AlreadyVerifiedError,
    DuplicateIdError,
    InvalidProofError,
    MalformedCiphertextError,
    NotFoundError,
)
from daocredit.models.contribution import (
    CiphertextHandle,
    Contribution,
    ContributionCategory,
    EncryptedInput,
    Member,
    normalize_address,
    utcnow,
)
from daocredit.models.db import ContributionRecord, LedgerEventRecord, MemberRecord
from daocredit.models.events import ContributionAdded, EventEnvelope, MemberUpdated, ScoreVerified
from daocredit.services.fhe import FHECapability

logger = logging.getLogger(__name__)

EventListener = Callable[[EventEnvelope], None]

class Ledger:
    """
    Owns contribution records, member aggregates and the event outbox.

    Every mutation runs in a single database transaction while holding the
    ledger lock, so it either applies completely or not at all. Events are
    written to the outbox inside the same transaction and delivered to
    listeners in sequence order once it has committed.
    """

    def __init__(self, database: Database, fhe: FHECapability, address: str,
                 clock: Callable = utcnow):
        self.database = database
        self.fhe = fhe
        self.address = normalize_address(address)
        self.clock = clock
        self._lock = threading.RLock()
        self._listeners: List[EventListener] = []

    # ------------------------------------------------------------------
    # Notifications

    def subscribe(self, listener: EventListener) -> None:
        """Register a listener for committed events"""
        self._listeners.append(listener)

    def _emit(self, session: Session, event: BaseModel) -> LedgerEventRecord:
        record = LedgerEventRecord(
            name=type(event).__name__,
            payload=event.model_dump(),
            created_at=self.clock()
        )
        session.add(record)
        session.flush()
        return record

    def _dispatch(self, envelopes: List[EventEnvelope]) -> None:
        for envelope in envelopes:
            for listener in self._listeners:
                try:
                    listener(envelope)
                except Exception as e:
                    logger.error(f"Event listener failed on {envelope.name} #{envelope.sequence}: {e}")

    @staticmethod
    def _envelope(record: LedgerEventRecord) -> EventEnvelope:
        return EventEnvelope(
            sequence=record.sequence,
            name=record.name,
            payload=dict(record.payload),
            created_at=record.created_at
        )

    def events(self, after: int = 0) -> List[EventEnvelope]:
        """Committed events with a sequence number greater than `after`"""
        with self.database.session() as session:
            records = session.query(LedgerEventRecord).filter(
                LedgerEventRecord.sequence > after
            ).order_by(LedgerEventRecord.sequence).all()
            return [self._envelope(r) for r in records]

    # ------------------------------------------------------------------
    # Mutations

    def submit_contribution(self, contribution_id: str, encrypted: EncryptedInput, submitter: str,
                            name: str = '', description: str = '',
                            category: ContributionCategory = ContributionCategory.DEVELOPMENT) -> Contribution:
        """
        Store a new encrypted contribution.

        Raises:
            ValueError: If the id or submitter is empty
            DuplicateIdError: If a record already exists under the id
            MalformedCiphertextError: If the capability rejects the input
        """
        if not contribution_id:
            raise ValueError("Contribution id is required")
        if not submitter or not submitter.strip():
            raise ValueError("Submitter is required")
        submitter = normalize_address(submitter)

        with self._lock:
            with self.database.session() as session:
                if self._find(session, contribution_id) is not None:
                    logger.warning(f"Rejected duplicate contribution id {contribution_id}")
                    raise DuplicateIdError(f"Contribution {contribution_id} already exists", contribution_id)

            if not self.fhe.check_well_formed(encrypted, self.address, submitter):
                raise MalformedCiphertextError(f"Encrypted input for {contribution_id} is not well formed")
            self.fhe.grant_decrypt_access(encrypted.handle)

            try:
                with self.database.session() as session:
                    record = ContributionRecord(
                        contribution_id=contribution_id,
                        submitter=submitter,
                        encrypted_handle=encrypted.handle.to_hex(),
                        submitted_at=self.clock(),
                        verified=False,
                        name=name,
                        description=description,
                        category=category.value
                    )
                    session.add(record)
                    session.flush()
                    added = self._emit(session, ContributionAdded(
                        contribution_id=contribution_id,
                        submitter=submitter
                    ))
                    contribution = self._to_contribution(record)
                    envelopes = [self._envelope(added)]
            except IntegrityError:
                logger.warning(f"Rejected duplicate contribution id {contribution_id}")
                raise DuplicateIdError(f"Contribution {contribution_id} already exists", contribution_id)
            except SQLAlchemyError as e:
                logger.error(f"Database error storing contribution {contribution_id}: {e}")
                raise

        logger.info(f"Contribution {contribution_id} added by {submitter}")
        self._dispatch(envelopes)
        return contribution

    def verify_contribution(self, contribution_id: str, clear_payload: bytes, decryption_proof: bytes) -> Contribution:
        """
        Reveal a contribution's score and add it to its submitter's total.

        Raises:
            NotFoundError: If no record exists under the id
            AlreadyVerifiedError: If the contribution was verified before
            InvalidProofError: If the clear value or proof is rejected
        """
        with self._lock:
            try:
                with self.database.session() as session:
                    record = self._find(session, contribution_id)
                    if record is None:
                        raise NotFoundError(f"Contribution {contribution_id} not found", contribution_id)
                    if record.verified:
                        logger.warning(f"Rejected second verification of {contribution_id}")
                        raise AlreadyVerifiedError(f"Contribution {contribution_id} already verified", contribution_id)

                    handle = CiphertextHandle.from_hex(record.encrypted_handle)
                    if not self.fhe.verify_clear_value([handle], clear_payload, decryption_proof):
                        raise InvalidProofError(f"Decryption proof rejected for {contribution_id}")
                    clear_score = decode_clear_values(clear_payload, 1)[0]

                    now = self.clock()
                    record.clear_score = clear_score
                    record.verified = True
                    record.verified_at = now

                    member = session.get(MemberRecord, record.submitter)
                    if member is None:
                        member = MemberRecord(
                            address=record.submitter,
                            total_score=0,
                            contribution_count=0
                        )
                        session.add(member)
                    member.total_score += clear_score
                    member.contribution_count += 1
                    member.last_updated = now
                    session.flush()

                    verified = self._emit(session, ScoreVerified(
                        contribution_id=contribution_id,
                        clear_score=clear_score
                    ))
                    updated = self._emit(session, MemberUpdated(
                        submitter=record.submitter,
                        total_score=member.total_score
                    ))
                    contribution = self._to_contribution(record)
                    envelopes = [self._envelope(verified), self._envelope(updated)]
            except SQLAlchemyError as e:
                logger.error(f"Database error verifying contribution {contribution_id}: {e}")
                raise

        logger.info(f"Contribution {contribution_id} verified with score {contribution.clear_score}")
        self._dispatch(envelopes)
        return contribution

    # ------------------------------------------------------------------
    # Reads

    @staticmethod
    def _find(session: Session, contribution_id: str) -> Optional[ContributionRecord]:
        return session.query(ContributionRecord).filter_by(
            contribution_id=contribution_id
        ).first()

    @staticmethod
    def _to_contribution(record: ContributionRecord) -> Contribution:
        return Contribution(
            contribution_id=record.contribution_id,
            submitter=record.submitter,
            submitted_at=record.submitted_at,
            verified=bool(record.verified),
            clear_score=record.clear_score if record.verified else None,
            name=record.name or '',
            description=record.description or '',
            category=ContributionCategory(record.category)
        )

    @staticmethod
    def _to_member(record: MemberRecord) -> Member:
        return Member(
            address=record.address,
            total_score=record.total_score,
            contribution_count=record.contribution_count,
            last_updated=record.last_updated,
            exists=True
        )

    def get_contribution(self, contribution_id: str) -> Contribution:
        """
        Raises:
            NotFoundError: If no record was ever created under the id
        """
        with self.database.session() as session:
            record = self._find(session, contribution_id)
            if record is None:
                raise NotFoundError(f"Contribution {contribution_id} not found", contribution_id)
            return self._to_contribution(record)

    def get_encrypted_score(self, contribution_id: str) -> CiphertextHandle:
        """Stored ciphertext handle of a contribution"""
        with self.database.session() as session:
            record = self._find(session, contribution_id)
            if record is None:
                raise NotFoundError(f"Contribution {contribution_id} not found", contribution_id)
            return CiphertextHandle.from_hex(record.encrypted_handle)

    def list_contribution_ids(self) -> List[str]:
        """All contribution ids in submission order"""
        with self.database.session() as session:
            rows = session.query(ContributionRecord.contribution_id).order_by(ContributionRecord.id).all()
            return [row[0] for row in rows]

    def list_contributions(self) -> List[Contribution]:
        """All contributions in submission order"""
        with self.database.session() as session:
            records = session.query(ContributionRecord).order_by(ContributionRecord.id).all()
            return [self._to_contribution(r) for r in records]

    def get_member(self, address: str) -> Member:
        """Member aggregate, or an empty one with exists=False"""
        address = normalize_address(address)
        with self.database.session() as session:
            record = session.get(MemberRecord, address)
            if record is None:
                return Member(address=address)
            return self._to_member(record)

    def list_members(self) -> List[Member]:
        """Existing members by total score, highest first"""
        with self.database.session() as session:
            records = session.query(MemberRecord).order_by(
                MemberRecord.total_score.desc(), MemberRecord.address
            ).all()
            return [self._to_member(r) for r in records]

    def is_available(self) -> bool:
        """Whether the FHE capability behind the ledger can be reached"""
        return self.fhe.is_available()
