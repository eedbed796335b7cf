"""
Query Models

Read-side requests and their results. Queries never mutate state;
they only describe what is already in the application context.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from timelock.clock import utc_now


class LockBoxQuery(BaseModel):
    """
    Which of a user's lock boxes to show.

    Both flags set shows everything ("active & released"). Both flags
    cleared is allowed and shows nothing.
    """

    username: str = Field(..., min_length=1)
    show_active: bool = True
    show_released: bool = True

    @property
    def label(self) -> str:
        if self.show_active and self.show_released:
            return "active & released"
        if self.show_active:
            return "active"
        if self.show_released:
            return "released"
        return "no"


class QueryResult(BaseModel):
    """
    Result of executing a read-side query.

    The console renders `results`; `summary` carries totals.
    """

    executed_at: datetime = Field(
        default_factory=utc_now
    )

    # Success/failure
    success: bool
    error_message: Optional[str] = None

    # Results
    data_found: bool = Field(
        ...,
        description="Was any data found?"
    )
    result_count: int = Field(
        ge=0,
        description="Number of results"
    )
    results: list[dict] = Field(
        default_factory=list,
        description="Query results as list of dicts"
    )
    summary: Optional[dict] = None

    query_description: str = Field(
        ...,
        description="Human-readable description of what was queried"
    )
