from datetime import datetime, timedelta, timezone

from snmp_telemetry.metrics import InterfaceMetric, StorageMetric


def test_new_interface_reads_zero():
    iface = InterfaceMetric("ether1", "1", speed=1_000_000)
    assert not iface.sampled
    assert iface.in_rate() == 0
    assert iface.out_rate() == 0
    assert iface.in_usage() == 0
    assert iface.out_usage() == 0


def test_rate_and_usage():
    iface = InterfaceMetric(
        "ether1", "1",
        speed=10_000_000,
        in_bits_delta=4000,
        out_bits_delta=2000,
        elapsed=timedelta(seconds=5),
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    assert iface.sampled
    assert iface.in_rate() == 800
    assert iface.out_rate() == 400
    assert iface.in_usage() == 800 / 10_000_000 * 100


def test_usage_zero_without_speed():
    iface = InterfaceMetric("ppp", "9", in_bits_delta=4000, elapsed=timedelta(seconds=5))
    assert iface.in_rate() == 800
    assert iface.in_usage() == 0


def test_huge_counters_do_not_overflow():
    delta = 2 ** 70
    iface = InterfaceMetric("ether1", "1", in_bits_delta=delta, elapsed=timedelta(seconds=1))
    assert iface.in_rate() == float(delta)


def test_storage_usage_and_bytes():
    strg = StorageMetric("root", "31", size=1000, used=250, multiplier=4)
    assert strg.used_bytes() == 1000
    assert strg.size_bytes() == 4000
    assert strg.usage() == 25.0


def test_storage_defaults():
    strg = StorageMetric("root", "31")
    assert strg.multiplier == 1
    assert strg.usage() == 0.0
