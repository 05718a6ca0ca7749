"""
Entrypoint module for uvicorn.

Run as:

    uvicorn snmp_telemetry.main:app --reload
"""

from snmp_telemetry.api import app  # noqa: F401  FastAPI app
