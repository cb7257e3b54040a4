"""SQLAlchemy database models for ledger state"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, BigInteger, JSON, Text
from sqlalchemy.orm import declarative_base

from daocredit.models.contribution import utcnow

Base = declarative_base()

class ContributionRecord(Base):
    """
    One record per contribution id.
    The autoincrement primary key gives the append-only submission order.
    """
    __tablename__ = 'contributions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    contribution_id = Column(String, unique=True, nullable=False, index=True)
    submitter = Column(String, nullable=False, index=True)
    encrypted_handle = Column(Text, nullable=False)
    submitted_at = Column(DateTime, nullable=False, default=utcnow)
    clear_score = Column(BigInteger, nullable=True)
    verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime, nullable=True)

    # Public metadata, never encrypted
    name = Column(String, nullable=False, default='')
    description = Column(Text, nullable=False, default='')
    category = Column(Integer, nullable=False, default=1)

class MemberRecord(Base):
    """
    Running aggregate of verified contributions per submitter.
    Created lazily on the first verification.
    """
    __tablename__ = 'members'

    address = Column(String, primary_key=True)
    total_score = Column(BigInteger, nullable=False, default=0)
    contribution_count = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime, nullable=False, default=utcnow)

class LedgerEventRecord(Base):
    """
    Ordered outbox of ledger notifications.
    """
    __tablename__ = 'ledger_events'

    sequence = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

class DecryptGrant(Base):
    """
    Handles made publicly decryptable by the local FHE capability.
    """
    __tablename__ = 'fhe_acl'

    handle = Column(String, primary_key=True)
    granted_at = Column(DateTime, nullable=False, default=utcnow)
