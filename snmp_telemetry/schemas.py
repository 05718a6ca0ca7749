"""
Pydantic models ("schemas") for API responses.

We keep these separate from the ORM models so the API layer
does not expose SQLAlchemy internals.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class MetricDescriptorOut(BaseModel):
    """A stored metric stream."""

    model_config = ConfigDict(from_attributes=True)

    type: str
    name: str
    metric_kind: str
    value_type: str
    unit: str
    description: str
    display_name: str


class LatestPointOut(BaseModel):
    """
    Most recent value of one metric stream.

    - value: int for INT64 streams, float for DOUBLE streams
    """

    type: str
    target: str
    kind: str
    entity: str
    unit: str
    ts: datetime
    value: Optional[Union[int, float]]
