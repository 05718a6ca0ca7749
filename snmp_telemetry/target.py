"""
A monitored device and everything discovered on it.

A Target is owned by exactly one poller task, so none of its maps are locked.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from snmp_telemetry.config import Settings, TargetConfig, settings as default_settings
from snmp_telemetry.metrics import InterfaceMetric, StorageMetric, WirelessState
from snmp_telemetry.snmp_client import SnmpSession

logger = logging.getLogger(__name__)


@dataclass
class TargetSnapshot:
    """Point-in-time, independent copy of a target's values for publishing."""

    name: str
    collect_time: datetime
    cpu: Dict[str, int] = field(default_factory=dict)
    interfaces: Dict[str, InterfaceMetric] = field(default_factory=dict)
    storage: Dict[str, StorageMetric] = field(default_factory=dict)
    wireless: Optional[WirelessState] = None


class Target:
    """
    One device being polled.

    The entity maps (`interfaces`, `storage`) are keyed by name and the index
    maps (`interface_index`, `storage_index`) by OID tail. Records are only
    added, through `add_interface` / `add_storage`, which keep both maps of a
    kind in step.
    """

    def __init__(
        self,
        config: TargetConfig,
        settings: Settings = default_settings,
        session_factory: Optional[Callable[["Target"], SnmpSession]] = None,
    ) -> None:
        self.config = config
        self.settings = settings
        self._session_factory = session_factory

        self.interfaces: Dict[str, InterfaceMetric] = {}
        self.interface_index: Dict[str, str] = {}  # oid tail -> ifDescr
        self.storage: Dict[str, StorageMetric] = {}
        self.storage_index: Dict[str, str] = {}  # oid tail -> storage name
        self.cpu: Dict[str, int] = {}  # processor index -> load %
        self.wireless: Optional[WirelessState] = (
            WirelessState() if config.wireless is not None else None
        )
        self.collect_time: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"<Target {self.name} {self.ip}>"

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def ip(self) -> str:
        return self.config.ip

    @property
    def interval(self) -> timedelta:
        return self.config.interval

    @property
    def tracked_interfaces(self) -> List[str]:
        return self.config.interfaces

    @property
    def storage_filter(self) -> List[str]:
        return self.config.storage_filter

    def session(self) -> SnmpSession:
        """Return a new, unconnected SNMP session to the device."""
        if self._session_factory is not None:
            return self._session_factory(self)
        return SnmpSession(
            host=self.config.ip,
            community=self.config.community,
            port=self.config.port or self.settings.snmp_port,
            timeout=self.settings.snmp_timeout_seconds,
            retries=self.settings.snmp_retries,
            max_repetitions=self.settings.snmp_max_repetitions,
            max_oids=self.settings.snmp_max_oids,
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_interface(self, description: str, oid_tail: str) -> Optional[InterfaceMetric]:
        """
        Track interface `description` at index `oid_tail`.

        Returns the new record, or None if it was already tracked. When the
        device has moved a known interface to another index, only the index
        map is updated.
        """
        existing = self.interfaces.get(description)
        if existing is not None:
            if existing.oid_tail != oid_tail:
                self._reindex(self.interface_index, self.interfaces, existing, oid_tail)
            return None
        metric = InterfaceMetric(description, oid_tail)
        self.interfaces[description] = metric
        self._claim(self.interface_index, self.interfaces, metric)
        return metric

    def add_storage(self, description: str, oid_tail: str) -> Optional[StorageMetric]:
        """Same as `add_interface` for storage entries."""
        existing = self.storage.get(description)
        if existing is not None:
            if existing.oid_tail != oid_tail:
                self._reindex(self.storage_index, self.storage, existing, oid_tail)
            return None
        metric = StorageMetric(description, oid_tail)
        self.storage[description] = metric
        self._claim(self.storage_index, self.storage, metric)
        return metric

    def _reindex(self, index: Dict[str, str], records: Dict, metric, oid_tail: str) -> None:
        logger.info(
            "%s on %s moved from index %s to %s",
            metric.description, self.name, metric.oid_tail, oid_tail,
        )
        if index.get(metric.oid_tail) == metric.description:
            del index[metric.oid_tail]
        metric.oid_tail = oid_tail
        self._claim(index, records, metric)

    def _claim(self, index: Dict[str, str], records: Dict, metric) -> None:
        # A record pushed out of its index is no longer sampled: clear its
        # last values.
        previous = index.get(metric.oid_tail)
        if previous is not None and previous != metric.description:
            logger.info(
                "%s on %s lost index %s to %s",
                previous, self.name, metric.oid_tail, metric.description,
            )
            records[previous].clear()
        index[metric.oid_tail] = metric.description

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> TargetSnapshot:
        """Copy the current values so publishing never sees later updates."""
        return TargetSnapshot(
            name=self.name,
            collect_time=self.collect_time or datetime.now(timezone.utc),
            cpu=dict(self.cpu),
            interfaces=copy.deepcopy(self.interfaces),
            storage=copy.deepcopy(self.storage),
            wireless=copy.deepcopy(self.wireless),
        )
