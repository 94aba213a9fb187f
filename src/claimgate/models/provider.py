"""Provider job counters."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Provider(BaseModel):
    """Counterparty profile counters, mutated only by accept/complete."""

    id: str
    accepted_job_count: int = 0
    completed_job_count: int = 0
    updated_at: Optional[datetime] = None
