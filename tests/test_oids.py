import pytest

from snmp_telemetry import oids
from snmp_telemetry.oids import InvalidAddress


def test_index_suffix():
    assert oids.index_suffix("1.3.6.1.2.1.2.2.1.2.12") == "12"
    assert oids.index_suffix(".1.3.6.1.2.1.2.2.1.2.3") == "3"


def test_oid_head_strips_index_and_leading_dot():
    assert oids.oid_head(".1.3.6.1.2.1.31.1.1.1.6.4") == oids.IF_HC_IN_OCTETS


def test_in_subtree_does_not_match_sibling_columns():
    assert oids.in_subtree("1.3.6.1.2.1.2.2.1.2.1", oids.IF_DESCR)
    # ifDescr is ...1.2, ifType ...1.3, and 1.2 is a string prefix of 1.20
    assert not oids.in_subtree("1.3.6.1.2.1.2.2.1.3.1", oids.IF_DESCR)
    assert not oids.in_subtree("1.3.6.1.2.1.2.2.1.20.1", oids.IF_DESCR)


def test_mac_to_index():
    assert oids.mac_to_index("AA:BB:CC:00:11:02") == "170.187.204.0.17.2"
    assert oids.mac_to_index("a:b:c:0:1:2") == "10.11.12.0.1.2"


@pytest.mark.parametrize("mac", [
    "AA:BB:CC:00:11",          # too short
    "AA:BB:CC:00:11:02:03",    # too long
    "AAA:BB:CC:00:11:02",      # 3 digit octet
    "GG:BB:CC:00:11:02",       # not hex
    "AA:BB::00:11:02",         # empty octet
    "AA-BB-CC-00-11-02",
])
def test_mac_to_index_rejects_malformed(mac):
    with pytest.raises(InvalidAddress):
        oids.mac_to_index(mac)


def test_index_from_response_key_drops_vendor_suffix():
    index = oids.mac_to_index("AA:BB:CC:00:11:02")
    key = oids.with_index(
        oids.MIKROTIK_WIRELESS_CLIENT_SNR, index, oids.MIKROTIK_WIRELESS_OID_SUFFIX
    )
    assert key == oids.MIKROTIK_WIRELESS_CLIENT_SNR + ".170.187.204.0.17.2.26"
    assert oids.index_from_response_key(key, oids.MIKROTIK_WIRELESS_CLIENT_SNR) == index
    assert oids.index_from_response_key(
        "." + key, oids.MIKROTIK_WIRELESS_CLIENT_SNR
    ) == index
