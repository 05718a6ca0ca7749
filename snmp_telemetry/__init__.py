"""Poll SNMP devices and publish interface, CPU, storage and wireless metrics."""

__version__ = "0.1.0"
