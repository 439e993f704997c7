from __future__ import annotations

"""Analytics configuration (hyperparameters) using Pydantic."""

from pydantic import BaseModel, Field


class AnalyticsConfig(BaseModel):
    """Hyperparameters for history analytics.

    - smoothing_span: EWMA span in sessions (>1)
    - min_attempts: groups with fewer attempts are left out of accuracy tables (>=1)
    """

    smoothing_span: int = Field(5, gt=1)
    min_attempts: int = Field(1, ge=1)
