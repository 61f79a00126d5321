"""
Audit domain models
"""

from typing import Dict, Optional
from datetime import datetime
from dataclasses import dataclass, field


@dataclass
class SearchEvent:
    """One patient search performed by a staff member"""
    staff_id: str
    hospital_id: str
    filters: Dict[str, str] = field(default_factory=dict)
    result_count: int = 0
    created_at: Optional[datetime] = None

    def to_document(self) -> Dict:
        return {
            "staff_id": self.staff_id,
            "hospital_id": self.hospital_id,
            "filters": dict(self.filters),
            "result_count": self.result_count,
            "created_at": self.created_at,
        }
