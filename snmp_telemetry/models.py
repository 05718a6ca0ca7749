"""
SQLAlchemy ORM models for the published time series.

- MetricDescriptor: one row per metric type (e.g. ".../router/cpu/1/usage"),
  created the first time the series is published.
- MetricPoint: one row per (metric type, collection time) value.
"""

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from snmp_telemetry.database import Base

GAUGE = "GAUGE"
INT64 = "INT64"
DOUBLE = "DOUBLE"


class MetricDescriptor(Base):
    """Describes one metric stream: its type name, value type and unit."""

    __tablename__ = "metric_descriptors"

    id = Column(Integer, primary_key=True, index=True)

    type = Column(String(512), unique=True, index=True, nullable=False)
    name = Column(String(512), nullable=False)
    metric_kind = Column(String(16), nullable=False, default=GAUGE)
    value_type = Column(String(16), nullable=False)  # INT64 or DOUBLE
    unit = Column(String(64), nullable=False, default="")
    description = Column(String(512), nullable=False, default="")
    display_name = Column(String(512), nullable=False, default="")

    points = relationship(
        "MetricPoint",
        back_populates="descriptor",
        cascade="all, delete-orphan",
    )


class MetricPoint(Base):
    """
    One value of a metric stream.

    Exactly one of `int_value` / `double_value` is set, matching the
    descriptor's value type.
    """

    __tablename__ = "metric_points"

    id = Column(Integer, primary_key=True, index=True)

    descriptor_id = Column(
        Integer, ForeignKey("metric_descriptors.id"), index=True, nullable=False
    )
    ts = Column(DateTime(timezone=True), index=True, nullable=False)

    # Labels
    target = Column(String(128), index=True, nullable=False)
    kind = Column(String(32), nullable=False)  # cpu, storage, interface, wireless
    entity = Column(String(256), nullable=False, default="")

    int_value = Column(BigInteger, nullable=True)
    double_value = Column(Float, nullable=True)

    descriptor = relationship("MetricDescriptor", back_populates="points")
