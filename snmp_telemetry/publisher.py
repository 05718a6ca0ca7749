"""
Publishes target snapshots as time series into the database.

Every value becomes a point on a named metric stream
"<prefix>/<target>/<kind>/<entity>/<metric>". The stream's descriptor is
created the first time it is seen, so publishing is idempotent with respect
to descriptors.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Union

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from snmp_telemetry.database import SessionLocal
from snmp_telemetry.models import DOUBLE, GAUGE, INT64, MetricDescriptor, MetricPoint
from snmp_telemetry.target import TargetSnapshot

logger = logging.getLogger(__name__)


@dataclass
class Series:
    """One value to publish, with what is needed to describe its stream."""

    type: str
    name: str
    value_type: str
    unit: str
    description: str
    kind: str
    entity: str
    value: Union[int, float]


def sanitize(name: str) -> str:
    """Make an entity name usable inside a metric type path."""
    return name.replace(" ", "_").replace("/", "_")


def build_series(snapshot: TargetSnapshot, prefix: str) -> List[Series]:
    """Turn a snapshot into the list of series values to publish."""
    base = f"{prefix}/{snapshot.name}"
    t = snapshot.name
    series: List[Series] = []

    def add(path, value_type, unit, description, kind, entity, value):
        series.append(Series(
            type=f"{base}/{path}",
            name=f"{t}-{path.replace('/', '-')}",
            value_type=value_type,
            unit=unit,
            description=f"{t} {description}",
            kind=kind,
            entity=entity,
            value=value,
        ))

    for cpu, load in sorted(snapshot.cpu.items()):
        add(f"cpu/{cpu}/usage", INT64, "%", f"cpu({cpu}) usage", "cpu", cpu, int(load))

    for name, strg in sorted(snapshot.storage.items()):
        descr = sanitize(name)
        add(f"storage/{descr}/used", INT64, "By", f"{name} used", "storage", name,
            strg.used_bytes())
        add(f"storage/{descr}/size", INT64, "By", f"{name} size", "storage", name,
            strg.size_bytes())

    for name, iface in sorted(snapshot.interfaces.items()):
        descr = sanitize(name)
        add(f"interface/{descr}/rxrate", DOUBLE, "bit/s", f"{name} Rx rate", "interface", name,
            iface.in_rate())
        add(f"interface/{descr}/txrate", DOUBLE, "bit/s", f"{name} Tx rate", "interface", name,
            iface.out_rate())
        add(f"interface/{descr}/rxusage", DOUBLE, "%", f"{name} Rx utilization", "interface",
            name, iface.in_usage())
        add(f"interface/{descr}/txusage", DOUBLE, "%", f"{name} Tx utilization", "interface",
            name, iface.out_usage())

    wireless = snapshot.wireless
    if wireless is not None:
        add("wireless/clients", INT64, "1", "wireless client count", "wireless", "",
            wireless.client_count)
        add("wireless/ccq", INT64, "%", "wireless overall CCQ", "wireless", "", wireless.ccq)
        for client in sorted(wireless.clients.values(), key=lambda c: c.mac):
            mac = client.mac.replace(":", "")
            label = client.name or client.mac
            if client.signal_strength is not None:
                add(f"wireless/{mac}/signal", INT64, "dBm", f"{label} signal strength",
                    "wireless", client.mac, client.signal_strength)
            if client.snr is not None:
                add(f"wireless/{mac}/snr", INT64, "dB", f"{label} SNR", "wireless",
                    client.mac, client.snr)

    return series


class SqlPublisher:
    """Writes snapshots through a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker = SessionLocal, prefix: str = "custom/snmp"):
        self.session_factory = session_factory
        self.prefix = prefix

    def _ensure_descriptors(self, db: Session, series: List[Series]) -> Dict[str, MetricDescriptor]:
        types = {s.type for s in series}
        existing = {
            d.type: d
            for d in db.scalars(select(MetricDescriptor).where(MetricDescriptor.type.in_(types)))
        }
        for s in series:
            if s.type in existing:
                continue
            descriptor = MetricDescriptor(
                type=s.type,
                name=s.name,
                metric_kind=GAUGE,
                value_type=s.value_type,
                unit=s.unit,
                description=s.description,
                display_name=s.description,
            )
            db.add(descriptor)
            existing[s.type] = descriptor
            logger.debug("created metric descriptor: %s", s.type)
        db.flush()
        return existing

    def publish(self, snapshot: TargetSnapshot) -> int:
        """Write one point per series of `snapshot`; returns the number written."""
        series = build_series(snapshot, self.prefix)
        if not series:
            return 0
        with self.session_factory() as db:
            descriptors = self._ensure_descriptors(db, series)
            for s in series:
                descriptor = descriptors[s.type]
                point = MetricPoint(
                    descriptor_id=descriptor.id,
                    ts=snapshot.collect_time,
                    target=snapshot.name,
                    kind=s.kind,
                    entity=s.entity,
                )
                if descriptor.value_type == INT64:
                    point.int_value = int(s.value)
                else:
                    point.double_value = float(s.value)
                db.add(point)
                logger.debug("adding timeseries data for %s at %s", s.type, snapshot.collect_time)
            db.commit()
        return len(series)

    def erase(self) -> int:
        """Delete every stored point and descriptor; returns descriptors removed."""
        with self.session_factory() as db:
            db.execute(delete(MetricPoint))
            removed = db.execute(delete(MetricDescriptor)).rowcount
            db.commit()
        return removed
