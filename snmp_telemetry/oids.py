"""
OIDs polled from the devices and helpers to translate them.

Standard MIBs used:

- IF-MIB      ifDescr, ifSpeed (1.3.6.1.2.1.2.2.1.X)
- IF-MIB      ifHCInOctets, ifHCOutOctets (1.3.6.1.2.1.31.1.1.1.X)
- HOST-RESOURCES-MIB  hrStorage* (1.3.6.1.2.1.25.2.3.1.X)
- HOST-RESOURCES-MIB  hrProcessorLoad (1.3.6.1.2.1.25.3.3.1.2)

plus the MikroTik wireless registration table (1.3.6.1.4.1.14988).
"""

import re
from typing import List

IF_DESCR = "1.3.6.1.2.1.2.2.1.2"
IF_SPEED = "1.3.6.1.2.1.2.2.1.5"
IF_HC_IN_OCTETS = "1.3.6.1.2.1.31.1.1.1.6"
IF_HC_OUT_OCTETS = "1.3.6.1.2.1.31.1.1.1.10"

HR_STORAGE_DESCR = "1.3.6.1.2.1.25.2.3.1.3"
HR_STORAGE_ALLOCATION_UNITS = "1.3.6.1.2.1.25.2.3.1.4"
HR_STORAGE_SIZE = "1.3.6.1.2.1.25.2.3.1.5"
HR_STORAGE_USED = "1.3.6.1.2.1.25.2.3.1.6"

HR_PROCESSOR_LOAD = "1.3.6.1.2.1.25.3.3.1.2"

MIKROTIK_WIRELESS_CLIENT_COUNT = "1.3.6.1.4.1.14988.1.1.1.3.1.6"
MIKROTIK_WIRELESS_OVERALL_CCQ = "1.3.6.1.4.1.14988.1.1.1.3.1.10"
MIKROTIK_WIRELESS_CLIENT_SIGNAL_STRENGTH = "1.3.6.1.4.1.14988.1.1.1.2.1.3"
MIKROTIK_WIRELESS_CLIENT_SNR = "1.3.6.1.4.1.14988.1.1.1.2.1.12"
# Every MikroTik wireless OID we read ends in the interface index 26.
MIKROTIK_WIRELESS_OID_SUFFIX = ".26"

MAC_OCTETS = 6
_HEX_OCTET = re.compile(r"[0-9A-Fa-f]{1,2}")


class InvalidAddress(ValueError):
    """Raised when a MAC address cannot be turned into an OID index."""


def normalize(oid: str) -> str:
    """Drop the leading dot some agents/libraries put in front of an OID."""
    return oid.lstrip(".")


def index_suffix(oid: str) -> str:
    """Return the last dotted component of `oid` (the row index)."""
    return normalize(oid).rsplit(".", 1)[-1]


def oid_head(oid: str) -> str:
    """Return `oid` without its index suffix (the column OID)."""
    return normalize(oid).rsplit(".", 1)[0]


def in_subtree(oid: str, root: str) -> bool:
    """True if `oid` lies strictly below `root`."""
    return normalize(oid).startswith(normalize(root) + ".")


def with_index(column: str, index: str, suffix: str = "") -> str:
    """Build the instance OID `<column>.<index><suffix>`."""
    return f"{column}.{index}{suffix}"


def mac_to_index(mac: str) -> str:
    """
    Convert a colon separated hex MAC into the dot separated decimal form
    used as a table index.

        "AA:BB:CC:00:11:02" -> "170.187.204.0.17.2"
    """
    octets = mac.strip().split(":")
    if len(octets) != MAC_OCTETS:
        raise InvalidAddress(f"invalid mac address {mac!r}: expected {MAC_OCTETS} octets")

    parts: List[str] = []
    for octet in octets:
        if not _HEX_OCTET.fullmatch(octet):
            raise InvalidAddress(f"invalid mac address at {octet!r}")
        parts.append(str(int(octet, 16)))
    return ".".join(parts)


def index_from_response_key(full_oid: str, prefix: str) -> str:
    """
    Strip `prefix` from a response OID and return the MAC index part.

    MikroTik appends the interface index after the 6 MAC components, so only
    the leading 6 components identify the client.
    """
    tail = normalize(full_oid)[len(normalize(prefix)) + 1:]
    return ".".join(tail.split(".")[:MAC_OCTETS])
