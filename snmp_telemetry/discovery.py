"""
Table walks that find what is present on a device.

Each walk visitor raises EndOfTable on the first row outside its subtree,
which the session treats as the normal end of the walk. Discovery only ever
adds records, so running it every cycle is safe.
"""

import logging

from snmp_telemetry import oids
from snmp_telemetry.snmp_client import EndOfTable, SnmpVariable, to_int, to_str
from snmp_telemetry.target import Target

logger = logging.getLogger(__name__)

ROOT_MOUNT = "/"
ROOT_NAME = "root"


def normalize_storage_name(description: str) -> str:
    """hrStorageDescr "/" is reported as "root"."""
    return ROOT_NAME if description == ROOT_MOUNT else description


def interface_visitor(target: Target):
    """Register every tracked interface found in the ifDescr table."""
    tracked = set(target.tracked_interfaces)

    def visit(var: SnmpVariable) -> None:
        if not oids.in_subtree(var.name, oids.IF_DESCR):
            raise EndOfTable()
        description = to_str(var.value)
        if description not in tracked:
            return
        if target.add_interface(description, oids.index_suffix(var.name)) is not None:
            logger.info("interface %s on %s added for tracking", description, target.name)

    return visit


def storage_visitor(target: Target):
    """
    Register storage entries found in the hrStorageDescr table.

    With an empty storage filter everything is tracked, otherwise only the
    names listed in it.
    """
    allowed = set(target.storage_filter)

    def visit(var: SnmpVariable) -> None:
        if not oids.in_subtree(var.name, oids.HR_STORAGE_DESCR):
            raise EndOfTable()
        description = normalize_storage_name(to_str(var.value))
        if allowed and description not in allowed:
            return
        if target.add_storage(description, oids.index_suffix(var.name)) is not None:
            logger.info("storage %s on %s added for tracking", description, target.name)

    return visit


def cpu_load_visitor(target: Target):
    """Store the hrProcessorLoad of each processor as it is walked."""

    def visit(var: SnmpVariable) -> None:
        if not oids.in_subtree(var.name, oids.HR_PROCESSOR_LOAD):
            raise EndOfTable()
        cpu = oids.index_suffix(var.name)
        target.cpu[cpu] = to_int(var.value)
        logger.debug("processing CPU load response from %s for CPU(%s)", target.name, cpu)

    return visit


async def discover_interfaces(target: Target, session) -> None:
    await session.bulk_walk(oids.IF_DESCR, interface_visitor(target))


async def discover_storage(target: Target, session) -> None:
    await session.bulk_walk(oids.HR_STORAGE_DESCR, storage_visitor(target))


async def walk_cpu_load(target: Target, session) -> None:
    await session.bulk_walk(oids.HR_PROCESSOR_LOAD, cpu_load_visitor(target))
