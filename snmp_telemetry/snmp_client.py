"""
SNMP transport used by the collector.

`SnmpSession` wraps the pysnmp 7 asyncio HLAPI (SNMPv2c) behind the four
operations the collector needs:

- connect()               resolve the target and create the engine
- close()                 release the engine's transport dispatcher
- bulk_walk(root, visit)  GETBULK walk of a subtree, one callback per row
- get(oids)               batched GET, split into PDUs of at most max_oids

Values come back as pysnmp objects; `to_int` and `to_str` convert them.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, List, Optional, Sequence

from pysnmp.hlapi.v3arch.asyncio import (
    CommunityData,
    ContextData,
    ObjectIdentity,
    ObjectType,
    SnmpEngine,
    UdpTransportTarget,
    bulk_walk_cmd,
    get_cmd,
)
from pysnmp.error import PySnmpError
from pysnmp.proto.rfc1905 import EndOfMibView, NoSuchInstance, NoSuchObject

from snmp_telemetry.oids import normalize

logger = logging.getLogger(__name__)


class SnmpError(Exception):
    """Raised when connecting to a device or an SNMP request fails."""


class EndOfTable(Exception):
    """
    Raised by a walk visitor when a row falls outside the walked subtree.

    `SnmpSession.bulk_walk` stops on it without reporting an error.
    """


@dataclass
class SnmpVariable:
    """One varbind of a response: dotted OID (no leading dot) and its value."""

    name: str
    value: Any


def to_int(value: Any) -> int:
    """Convert an SNMP numeric value (Integer, Gauge32, Counter64, ...) to int."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    return int(value)


def to_str(value: Any) -> str:
    """Convert an SNMP value (usually an OctetString) to text."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _is_missing(value: Any) -> bool:
    return isinstance(value, (NoSuchObject, NoSuchInstance, EndOfMibView))


def _error_message(error_status, error_index, var_binds) -> str:
    at = "?"
    if error_index and var_binds:
        at = var_binds[int(error_index) - 1][0]
    return f"{error_status.prettyPrint()} at {at}"


class SnmpSession:
    """SNMPv2c session to a single device."""

    def __init__(
        self,
        host: str,
        community: str,
        port: int = 161,
        timeout: float = 2.0,
        retries: int = 3,
        max_repetitions: int = 25,
        max_oids: int = 60,
    ) -> None:
        self.host = host
        self.community = community
        self.port = port
        self.timeout = timeout
        self.retries = retries
        self.max_repetitions = max_repetitions
        self.max_oids = max_oids

        self._engine: Optional[SnmpEngine] = None
        self._transport: Optional[UdpTransportTarget] = None

    async def connect(self) -> None:
        engine = SnmpEngine()
        try:
            self._transport = await UdpTransportTarget.create(
                (self.host, self.port),
                timeout=self.timeout,
                retries=self.retries,
            )
        except (PySnmpError, OSError) as exc:
            engine.close_dispatcher()
            raise SnmpError(f"cannot connect to {self.host}:{self.port}: {exc}") from exc
        self._engine = engine

    def close(self) -> None:
        if self._engine is not None:
            self._engine.close_dispatcher()
        self._engine = None
        self._transport = None

    def _auth(self) -> CommunityData:
        return CommunityData(self.community, mpModel=1)  # SNMP v2c

    def _require_connection(self) -> None:
        if self._engine is None or self._transport is None:
            raise SnmpError(f"session to {self.host} is not connected")

    async def bulk_walk(self, root: str, visit: Callable[[SnmpVariable], None]) -> None:
        """
        Walk the subtree under `root`, calling `visit` for every row.

        `visit` raising EndOfTable ends the walk normally; SNMP errors raise
        SnmpError.
        """
        self._require_connection()
        walk = bulk_walk_cmd(
            self._engine,
            self._auth(),
            self._transport,
            ContextData(),
            0,
            self.max_repetitions,
            ObjectType(ObjectIdentity(root)),
            lexicographicMode=False,
            lookupMib=False,
        )
        try:
            async for error_indication, error_status, error_index, var_binds in walk:
                if error_indication:
                    raise SnmpError(str(error_indication))
                if error_status:
                    raise SnmpError(_error_message(error_status, error_index, var_binds))
                for oid, value in var_binds:
                    if _is_missing(value):
                        return
                    try:
                        visit(SnmpVariable(normalize(oid.prettyPrint()), value))
                    except EndOfTable:
                        return
        except PySnmpError as exc:
            raise SnmpError(f"walk of {root} on {self.host} failed: {exc}") from exc

    async def get(self, oids: Sequence[str]) -> List[SnmpVariable]:
        """
        GET every OID in `oids`.

        Instances the device does not have (noSuchObject / noSuchInstance)
        are left out of the result.
        """
        self._require_connection()
        variables: List[SnmpVariable] = []
        for start in range(0, len(oids), self.max_oids):
            chunk = oids[start:start + self.max_oids]
            try:
                error_indication, error_status, error_index, var_binds = await get_cmd(
                    self._engine,
                    self._auth(),
                    self._transport,
                    ContextData(),
                    *[ObjectType(ObjectIdentity(oid)) for oid in chunk],
                    lookupMib=False,
                )
            except PySnmpError as exc:
                raise SnmpError(f"get from {self.host} failed: {exc}") from exc
            if error_indication:
                raise SnmpError(str(error_indication))
            if error_status:
                raise SnmpError(_error_message(error_status, error_index, var_binds))
            for oid, value in var_binds:
                if _is_missing(value):
                    logger.debug("no such instance %s on %s", oid.prettyPrint(), self.host)
                    continue
                variables.append(SnmpVariable(normalize(oid.prettyPrint()), value))
        return variables


@asynccontextmanager
async def open_session(session) -> AsyncIterator[Any]:
    """Connect `session`, yield it, and always close it afterwards."""
    await session.connect()
    try:
        yield session
    finally:
        session.close()
