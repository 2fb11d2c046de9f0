from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class HealthState(BaseModel):
    """Reachability of the backend as last observed by the HealthMonitor."""

    healthy: bool = True  # optimistic until the first probe completes
    consecutive_failures: int = 0
    next_check_delay: Optional[float] = None  # seconds; None when nothing is scheduled
    checking: bool = False
    last_checked: Optional[datetime] = None
