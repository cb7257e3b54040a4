"""Ledger notification models"""
from datetime import datetime
from typing import Any, Dict, Type
from pydantic import BaseModel

class ContributionAdded(BaseModel):
    """A contribution record was created"""
    contribution_id: str
    submitter: str

class ScoreVerified(BaseModel):
    """A contribution's clear score was verified and revealed"""
    contribution_id: str
    clear_score: int

class MemberUpdated(BaseModel):
    """A member aggregate changed; always follows its ScoreVerified"""
    submitter: str
    total_score: int

EVENT_TYPES: Dict[str, Type[BaseModel]] = {
    cls.__name__: cls for cls in (ContributionAdded, ScoreVerified, MemberUpdated)
}

class EventEnvelope(BaseModel):
    """
    Committed ledger event as read from the outbox.

    Attributes:
        sequence: Position in the global event order, strictly increasing
        name: Event type name
        payload: Event fields
        created_at: Time the emitting transaction ran
    """
    sequence: int
    name: str
    payload: Dict[str, Any]
    created_at: datetime

    def event(self) -> BaseModel:
        """Rebuild the typed event"""
        return EVENT_TYPES[self.name](**self.payload)
