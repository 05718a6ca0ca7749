"""
FastAPI application exposing the published metrics.

Endpoints
---------
- GET /health          -> Simple liveness check
- GET /metrics         -> Metric descriptors (optionally for one target)
- GET /metrics/latest  -> Latest point of every metric stream
"""

from typing import List, Optional

from fastapi import Depends, FastAPI
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from snmp_telemetry.database import Base, SessionLocal, engine
from snmp_telemetry.models import INT64, MetricDescriptor, MetricPoint
from snmp_telemetry.schemas import LatestPointOut, MetricDescriptorOut


# ---------------------------------------------------------------------------
# Database bootstrap
# ---------------------------------------------------------------------------

# Make sure tables exist even if the collector has not been run yet.
Base.metadata.create_all(bind=engine)


app = FastAPI(
    title="SNMP Telemetry API",
    version="0.1.0",
)


# ---------------------------------------------------------------------------
# Dependency: one DB session per request
# ---------------------------------------------------------------------------

def get_db() -> Session:
    """
    FastAPI dependency that provides a SQLAlchemy session.

    The session is created at the start of the request and closed at the end.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/health")
def health() -> dict:
    """Simple liveness endpoint used for health checks."""
    return {"status": "ok"}


@app.get("/metrics", response_model=List[MetricDescriptorOut])
def list_metrics(target: Optional[str] = None, db: Session = Depends(get_db)):
    """Return the metric descriptors, ordered by type."""
    q = select(MetricDescriptor).order_by(MetricDescriptor.type)
    if target:
        q = q.where(
            MetricDescriptor.id.in_(
                select(MetricPoint.descriptor_id).where(MetricPoint.target == target)
            )
        )
    return db.scalars(q).all()


@app.get("/metrics/latest", response_model=List[LatestPointOut])
def latest_points(target: Optional[str] = None, db: Session = Depends(get_db)):
    """
    Return the latest point of every metric stream.

    Implementation steps:
    1. Build a subquery that finds `max(ts)` per descriptor.
    2. Join it back to `MetricPoint` (and its descriptor) to get full rows.
    3. Order by metric type for a stable output.
    """
    subq = select(
        MetricPoint.descriptor_id,
        func.max(MetricPoint.ts).label("max_ts"),
    ).group_by(MetricPoint.descriptor_id)
    if target:
        subq = subq.where(MetricPoint.target == target)
    subq = subq.subquery()

    q = (
        select(MetricPoint, MetricDescriptor)
        .join(MetricDescriptor, MetricPoint.descriptor_id == MetricDescriptor.id)
        .join(
            subq,
            (MetricPoint.descriptor_id == subq.c.descriptor_id)
            & (MetricPoint.ts == subq.c.max_ts),
        )
        .order_by(MetricDescriptor.type)
    )

    results = []
    for point, descriptor in db.execute(q).all():
        value = point.int_value if descriptor.value_type == INT64 else point.double_value
        results.append(
            LatestPointOut(
                type=descriptor.type,
                target=point.target,
                kind=point.kind,
                entity=point.entity,
                unit=descriptor.unit,
                ts=point.ts,
                value=value,
            )
        )
    return results
