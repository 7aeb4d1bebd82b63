"""Self check-in domain events."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List


@dataclass
class SelfCheckInRecorded:
    """Fired after a student checks into one or more of today's sessions."""

    student_id: str
    student_name: str
    occurred_at: datetime
    classroom_names: List[str] = field(default_factory=list)
    statuses: List[str] = field(default_factory=list)  # 'present' or 'late', per classroom

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
