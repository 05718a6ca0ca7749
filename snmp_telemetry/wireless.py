"""
MikroTik wireless extension.

Reads the overall client count and CCQ of the wireless interface, and the
signal strength and SNR of each configured client from the registration
table, which is indexed by the client MAC (as 6 decimal components) followed
by the interface index.
"""

import logging
from typing import Iterable, List

from snmp_telemetry import oids
from snmp_telemetry.metrics import WirelessClient
from snmp_telemetry.snmp_client import SnmpVariable, to_int
from snmp_telemetry.target import Target

logger = logging.getLogger(__name__)


class NotConfigured(Exception):
    """Raised when wireless metrics are requested for a target without them."""


def _require_wireless(target: Target):
    if target.wireless is None or target.config.wireless is None:
        raise NotConfigured(f"mikrotik extension not configured for target {target.name}")
    return target.wireless


def prepare_request(target: Target) -> List[str]:
    """
    Seed a client record per configured MAC and build the OID list.

    Clients are created once; their previous values are cleared so a client
    that is no longer associated reports nothing this cycle.
    """
    state = _require_wireless(target)
    request = [
        oids.MIKROTIK_WIRELESS_CLIENT_COUNT + oids.MIKROTIK_WIRELESS_OID_SUFFIX,
        oids.MIKROTIK_WIRELESS_OVERALL_CCQ + oids.MIKROTIK_WIRELESS_OID_SUFFIX,
    ]
    for client_config in target.config.wireless.wireless_clients:
        index = oids.mac_to_index(client_config.mac)
        client = state.clients.setdefault(
            index, WirelessClient(mac=client_config.mac.upper(), name=client_config.name)
        )
        client.signal_strength = None
        client.snr = None
        request.append(oids.with_index(
            oids.MIKROTIK_WIRELESS_CLIENT_SIGNAL_STRENGTH, index, oids.MIKROTIK_WIRELESS_OID_SUFFIX
        ))
        request.append(oids.with_index(
            oids.MIKROTIK_WIRELESS_CLIENT_SNR, index, oids.MIKROTIK_WIRELESS_OID_SUFFIX
        ))
    return request


def apply_response(target: Target, variables: Iterable[SnmpVariable]) -> None:
    state = _require_wireless(target)
    for var in variables:
        if oids.in_subtree(var.name, oids.MIKROTIK_WIRELESS_CLIENT_COUNT):
            logger.debug("processing wireless client count from %s", target.name)
            state.client_count = to_int(var.value)
        elif oids.in_subtree(var.name, oids.MIKROTIK_WIRELESS_OVERALL_CCQ):
            logger.debug("processing wireless overall CCQ from %s", target.name)
            state.ccq = to_int(var.value)
        elif oids.in_subtree(var.name, oids.MIKROTIK_WIRELESS_CLIENT_SIGNAL_STRENGTH):
            client = _client_for(state, var.name, oids.MIKROTIK_WIRELESS_CLIENT_SIGNAL_STRENGTH)
            if client is not None:
                logger.debug("processing signal strength from %s for %s", target.name, client.mac)
                client.signal_strength = to_int(var.value)
        elif oids.in_subtree(var.name, oids.MIKROTIK_WIRELESS_CLIENT_SNR):
            client = _client_for(state, var.name, oids.MIKROTIK_WIRELESS_CLIENT_SNR)
            if client is not None:
                logger.debug("processing SNR from %s for %s", target.name, client.mac)
                client.snr = to_int(var.value)


def _client_for(state, name: str, column: str):
    return state.clients.get(oids.index_from_response_key(name, column))


async def sample_wireless(target: Target, session) -> None:
    """GET wireless overall and per-client values for `target`."""
    request = prepare_request(target)
    variables = await session.get(request)
    apply_response(target, variables)
