"""
Lead persistence.

LeadRepository is the storage contract the engine depends on.
InMemoryLeadRepository keeps everything in process memory; replace with a
database-backed implementation in production.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..errors import LeadNotFoundError
from ..models.schemas import (
    Lead,
    LeadHistoryEntry,
    LeadStatus,
    PotentialTag,
    utcnow,
)


class LeadRepository(ABC):
    """Storage for Lead aggregates and their append-only history"""

    @abstractmethod
    def create(self, lead: Lead) -> Lead:
        """Persist a new lead and return the stored copy"""

    @abstractmethod
    def get(self, lead_id: str) -> Optional[Lead]:
        """Return a copy of the lead, or None"""

    @abstractmethod
    def save(self, lead: Lead) -> Lead:
        """Replace an existing lead. Raises LeadNotFoundError if it is gone."""

    @abstractmethod
    def delete(self, lead_id: str) -> None:
        """Delete a lead and its history. Raises LeadNotFoundError."""

    @abstractmethod
    def list(
        self,
        status: Optional[LeadStatus] = None,
        potential_tag: Optional[PotentialTag] = None,
        min_score: Optional[int] = None,
        max_score: Optional[int] = None,
    ) -> List[Lead]:
        """Leads matching every given filter, highest score first"""

    @abstractmethod
    def append_history(self, entry: LeadHistoryEntry) -> None:
        """Append one history entry"""

    @abstractmethod
    def history(self, lead_id: str, limit: Optional[int] = None) -> List[LeadHistoryEntry]:
        """History entries for a lead, most recent first"""


class InMemoryLeadRepository(LeadRepository):
    """
    Thread-safe in-memory repository.
    Stored objects are deep-copied on the way in and out.
    """

    def __init__(self):
        self._leads: Dict[str, Lead] = {}
        self._history: Dict[str, List[LeadHistoryEntry]] = {}
        self._lock = threading.RLock()

    def create(self, lead: Lead) -> Lead:
        with self._lock:
            if lead.id in self._leads:
                raise ValueError(f"Lead already exists: {lead.id}")
            self._leads[lead.id] = lead.model_copy(deep=True)
            self._history.setdefault(lead.id, [])
            return lead.model_copy(deep=True)

    def get(self, lead_id: str) -> Optional[Lead]:
        with self._lock:
            lead = self._leads.get(lead_id)
            return lead.model_copy(deep=True) if lead else None

    def save(self, lead: Lead) -> Lead:
        with self._lock:
            if lead.id not in self._leads:
                raise LeadNotFoundError(lead.id)
            stored = lead.model_copy(deep=True, update={"updated_at": utcnow()})
            self._leads[lead.id] = stored
            return stored.model_copy(deep=True)

    def delete(self, lead_id: str) -> None:
        with self._lock:
            if lead_id not in self._leads:
                raise LeadNotFoundError(lead_id)
            del self._leads[lead_id]
            self._history.pop(lead_id, None)

    def list(self, status=None, potential_tag=None, min_score=None, max_score=None) -> List[Lead]:
        with self._lock:
            leads = [lead.model_copy(deep=True) for lead in self._leads.values()]

        if status is not None:
            leads = [lead for lead in leads if lead.status == status]
        if potential_tag is not None:
            leads = [lead for lead in leads if lead.potential_tag == potential_tag]
        if min_score is not None:
            leads = [lead for lead in leads if lead.lead_score is not None and lead.lead_score >= min_score]
        if max_score is not None:
            leads = [lead for lead in leads if lead.lead_score is not None and lead.lead_score <= max_score]

        # Unscored leads last
        leads.sort(key=lambda lead: (lead.lead_score is None, -(lead.lead_score or 0)))
        return leads

    def append_history(self, entry: LeadHistoryEntry) -> None:
        with self._lock:
            self._history.setdefault(entry.lead_id, []).append(entry.model_copy(deep=True))

    def history(self, lead_id: str, limit: Optional[int] = None) -> List[LeadHistoryEntry]:
        with self._lock:
            entries = [e.model_copy(deep=True) for e in reversed(self._history.get(lead_id, []))]
        return entries[:limit] if limit is not None else entries
