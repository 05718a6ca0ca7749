"""
In-memory counter records for the entities we track on a device.

Counters are plain Python ints, so 64-bit HC counters multiplied by 8 never
overflow. They are only converted to float when a rate is computed.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional


@dataclass
class InterfaceMetric:
    """
    Traffic counters for one interface, keyed by its ifDescr.

    `in_bits` / `out_bits` stay None until the first sample, and the deltas
    and elapsed time stay at zero until a second one arrives, so rates read
    as 0 rather than "whole counter since boot".
    """

    description: str
    oid_tail: str
    speed: int = 0
    in_bits: Optional[int] = None
    out_bits: Optional[int] = None
    in_bits_delta: int = 0
    out_bits_delta: int = 0
    timestamp: Optional[datetime] = None
    elapsed: timedelta = field(default_factory=timedelta)

    @property
    def sampled(self) -> bool:
        return self.timestamp is not None

    def clear(self) -> None:
        """Drop the last interval so rates read 0 until the next sample."""
        self.in_bits_delta = 0
        self.out_bits_delta = 0
        self.elapsed = timedelta(0)

    def in_rate(self) -> float:
        """Inbound bits per second over the last sample interval."""
        return self._rate(self.in_bits_delta)

    def out_rate(self) -> float:
        """Outbound bits per second over the last sample interval."""
        return self._rate(self.out_bits_delta)

    def in_usage(self) -> float:
        """Inbound utilization as a percentage of the link speed."""
        return self._usage(self.in_rate())

    def out_usage(self) -> float:
        """Outbound utilization as a percentage of the link speed."""
        return self._usage(self.out_rate())

    def _rate(self, delta: int) -> float:
        seconds = self.elapsed.total_seconds()
        if seconds <= 0:
            return 0.0
        return delta / seconds

    def _usage(self, rate: float) -> float:
        if not self.speed:
            return 0.0
        # Utilization = ((octets2 - octets1) * 8 / delta_time) / ifSpeed * 100
        return rate / self.speed * 100


@dataclass
class StorageMetric:
    """
    Size and usage of one hrStorage entry.

    The device reports size and used in allocation units, `multiplier` holds
    the unit size in bytes.
    """

    description: str
    oid_tail: str
    size: int = 0
    used: int = 0
    multiplier: int = 1
    timestamp: Optional[datetime] = None

    def usage(self) -> float:
        """Percentage of the volume in use."""
        if not self.size:
            return 0.0
        return self.used / self.size * 100

    def clear(self) -> None:
        self.size = 0
        self.used = 0

    def size_bytes(self) -> int:
        return self.size * self.multiplier

    def used_bytes(self) -> int:
        return self.used * self.multiplier


@dataclass
class WirelessClient:
    mac: str
    name: str = ""
    signal_strength: Optional[int] = None
    snr: Optional[int] = None


@dataclass
class WirelessState:
    """MikroTik wireless registration data, clients keyed by MAC OID index."""

    client_count: int = 0
    ccq: int = 0
    clients: Dict[str, WirelessClient] = field(default_factory=dict)
