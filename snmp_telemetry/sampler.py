"""
Batched GETs for the entities found by discovery.

One GET is built per metric kind from the index maps; the response varbinds
come back in a single untyped list and are routed to the right record by
column OID (dispatch tables below) and index (the target's index maps).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set

from snmp_telemetry import oids
from snmp_telemetry.metrics import InterfaceMetric, StorageMetric
from snmp_telemetry.snmp_client import SnmpVariable, to_int
from snmp_telemetry.target import Target

logger = logging.getLogger(__name__)

BITS_PER_OCTET = 8

INTERFACE_COLUMNS = (oids.IF_SPEED, oids.IF_HC_IN_OCTETS, oids.IF_HC_OUT_OCTETS)
STORAGE_COLUMNS = (
    oids.HR_STORAGE_SIZE,
    oids.HR_STORAGE_USED,
    oids.HR_STORAGE_ALLOCATION_UNITS,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_request(columns: Iterable[str], indexes: Iterable[str]) -> List[str]:
    """Instance OIDs for every (index, column) pair."""
    columns = tuple(columns)
    return [oids.with_index(column, index) for index in indexes for column in columns]


def counter_delta(previous: Optional[int], current: int) -> int:
    """
    Difference between two counter readings.

    0 when there is no previous reading, or when the counter went backwards
    (device reboot or counter reset): the new value becomes the baseline.
    """
    if previous is None or current < previous:
        return 0
    return current - previous


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------

class _InterfacePass:
    """State shared by the handlers while one response set is applied."""

    def __init__(self, now: datetime) -> None:
        self.now = now
        self.stamped: Set[str] = set()

    def stamp(self, metric: InterfaceMetric) -> None:
        # Both octet columns share the timestamp; only the first one seen in
        # this pass moves it.
        if metric.description in self.stamped:
            return
        self.stamped.add(metric.description)
        if metric.timestamp is not None:
            metric.elapsed = self.now - metric.timestamp
        else:
            metric.elapsed = timedelta(0)
        metric.timestamp = self.now


def _if_speed(metric: InterfaceMetric, value, state: _InterfacePass) -> None:
    metric.speed = to_int(value)


def _if_in_octets(metric: InterfaceMetric, value, state: _InterfacePass) -> None:
    state.stamp(metric)
    bits = to_int(value) * BITS_PER_OCTET
    metric.in_bits_delta = counter_delta(metric.in_bits, bits)
    metric.in_bits = bits


def _if_out_octets(metric: InterfaceMetric, value, state: _InterfacePass) -> None:
    state.stamp(metric)
    bits = to_int(value) * BITS_PER_OCTET
    metric.out_bits_delta = counter_delta(metric.out_bits, bits)
    metric.out_bits = bits


INTERFACE_HANDLERS: Dict[str, Callable] = {
    oids.IF_SPEED: _if_speed,
    oids.IF_HC_IN_OCTETS: _if_in_octets,
    oids.IF_HC_OUT_OCTETS: _if_out_octets,
}


def apply_interface_response(
    target: Target, variables: Iterable[SnmpVariable], now: Optional[datetime] = None
) -> None:
    state = _InterfacePass(now or utcnow())
    for var in variables:
        handler = INTERFACE_HANDLERS.get(oids.oid_head(var.name))
        description = target.interface_index.get(oids.index_suffix(var.name))
        if handler is None or description is None:
            logger.debug("ignoring unexpected response %s from %s", var.name, target.name)
            continue
        logger.debug(
            "processing SNMP response %s from %s for %s", var.name, target.name, description
        )
        handler(target.interfaces[description], var.value, state)


async def sample_interfaces(target: Target, session, now: Optional[datetime] = None) -> None:
    """GET speed and HC octet counters of every discovered interface."""
    if not target.interface_index:
        return
    variables = await session.get(build_request(INTERFACE_COLUMNS, target.interface_index))
    apply_interface_response(target, variables, now)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def _storage_size(metric: StorageMetric, value, now: datetime) -> None:
    metric.size = to_int(value)


def _storage_used(metric: StorageMetric, value, now: datetime) -> None:
    metric.used = to_int(value)
    metric.timestamp = now


def _storage_allocation_units(metric: StorageMetric, value, now: datetime) -> None:
    metric.multiplier = to_int(value)


STORAGE_HANDLERS: Dict[str, Callable] = {
    oids.HR_STORAGE_SIZE: _storage_size,
    oids.HR_STORAGE_USED: _storage_used,
    oids.HR_STORAGE_ALLOCATION_UNITS: _storage_allocation_units,
}


def apply_storage_response(
    target: Target, variables: Iterable[SnmpVariable], now: Optional[datetime] = None
) -> None:
    now = now or utcnow()
    for var in variables:
        handler = STORAGE_HANDLERS.get(oids.oid_head(var.name))
        description = target.storage_index.get(oids.index_suffix(var.name))
        if handler is None or description is None:
            logger.debug("ignoring unexpected response %s from %s", var.name, target.name)
            continue
        logger.debug(
            "processing SNMP response %s from %s for %s", var.name, target.name, description
        )
        handler(target.storage[description], var.value, now)


async def sample_storage(target: Target, session, now: Optional[datetime] = None) -> None:
    """GET size, used and allocation units of every discovered storage entry."""
    if not target.storage_index:
        return
    variables = await session.get(build_request(STORAGE_COLUMNS, target.storage_index))
    apply_storage_response(target, variables, now)
