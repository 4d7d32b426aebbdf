"""Data models for client and activity records."""

from dataclasses import dataclass
from typing import Optional, List, Tuple


@dataclass
class ClientRecord:
    """Represents a client profile from the clients table."""
    client_id: str
    first_name: str = ""
    last_name: str = ""
    middle: Optional[str] = None
    aka: Optional[str] = None
    age: Optional[str] = None
    gender: Optional[str] = None
    ethnicity: Optional[str] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    hair: Optional[str] = None
    eyes: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    contacts: int = 0
    last_contact: Optional[str] = None
    created_at: Optional[str] = None

    def full_name(self) -> str:
        """Return formatted display name."""
        parts = [p for p in (self.first_name, self.middle, self.last_name) if p]
        return ' '.join(parts) if parts else 'Unknown'

    def match_name(self) -> str:
        """Return the lowercased, trimmed "first last" string used for matching."""
        return f"{self.first_name or ''} {self.last_name or ''}".lower().strip()

    def match_aka(self) -> str:
        """Return the lowercased, trimmed alias ('' when absent)."""
        return (self.aka or '').lower().strip()

    def display_key(self) -> str:
        """Return the lowercased "first last" string as entered, spaces kept.

        Scoring and reason labels compare this, so only names typed the
        same way earn the exact-name bonus.
        """
        return f"{self.first_name or ''} {self.last_name or ''}".lower()

    def demographics(self) -> List[Tuple[str, str]]:
        """Return the non-empty descriptors as (field, value) pairs."""
        fields = ('age', 'gender', 'ethnicity', 'height', 'weight', 'hair', 'eyes')
        result = []
        for name in fields:
            value = getattr(self, name)
            if value is not None and str(value).strip():
                result.append((name, str(value)))
        return result


@dataclass
class ActivityRecord:
    """Represents an interaction logged against a client."""
    activity_id: int
    client_id: str
    worker_id: Optional[str] = None
    worker_name: Optional[str] = None
    interaction_type: Optional[str] = None
    notes: Optional[str] = None
    interaction_date: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None

    def has_location(self) -> bool:
        """True if a geocoordinate was captured."""
        return self.location_lat is not None and self.location_lng is not None
