import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from snmp_telemetry import oids, sampler
from snmp_telemetry.snmp_client import SnmpError, SnmpVariable

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def var(column, index, value):
    return SnmpVariable(f"{column}.{index}", value)


@pytest.fixture
def target(make_target):
    t = make_target(interfaces=["ether1"])
    t.add_interface("ether1", "1")
    return t


def test_build_request():
    assert sampler.build_request((oids.IF_SPEED, oids.IF_HC_IN_OCTETS), ["1", "4"]) == [
        f"{oids.IF_SPEED}.1",
        f"{oids.IF_HC_IN_OCTETS}.1",
        f"{oids.IF_SPEED}.4",
        f"{oids.IF_HC_IN_OCTETS}.4",
    ]


def test_counter_delta():
    assert sampler.counter_delta(None, 500) == 0
    assert sampler.counter_delta(100, 500) == 400
    assert sampler.counter_delta(500, 100) == 0


def test_first_sample_has_zero_rate(target):
    sampler.apply_interface_response(target, [
        var(oids.IF_SPEED, 1, 10_000_000),
        var(oids.IF_HC_IN_OCTETS, 1, 1000),
        var(oids.IF_HC_OUT_OCTETS, 1, 3000),
    ], now=T0)

    iface = target.interfaces["ether1"]
    assert iface.sampled
    assert iface.in_bits == 8000
    assert iface.out_bits == 24000
    assert iface.in_bits_delta == 0
    assert iface.in_rate() == 0
    assert iface.in_usage() == 0
    assert iface.out_rate() == 0


def test_second_sample_rate_and_utilization(target):
    sampler.apply_interface_response(target, [
        var(oids.IF_SPEED, 1, 10_000_000),
        var(oids.IF_HC_IN_OCTETS, 1, 1000),
        var(oids.IF_HC_OUT_OCTETS, 1, 2000),
    ], now=T0)
    sampler.apply_interface_response(target, [
        var(oids.IF_SPEED, 1, 10_000_000),
        var(oids.IF_HC_IN_OCTETS, 1, 1500),
        var(oids.IF_HC_OUT_OCTETS, 1, 2250),
    ], now=T0 + timedelta(seconds=5))

    iface = target.interfaces["ether1"]
    assert iface.in_bits_delta == 4000
    assert iface.out_bits_delta == 2000
    assert iface.elapsed == timedelta(seconds=5)
    assert iface.in_rate() == 800
    assert iface.out_rate() == 400
    assert iface.in_usage() == pytest.approx(0.008)


def test_elapsed_counted_once_per_pass_whatever_the_order(target):
    sampler.apply_interface_response(target, [
        var(oids.IF_HC_IN_OCTETS, 1, 0),
        var(oids.IF_HC_OUT_OCTETS, 1, 0),
    ], now=T0)
    sampler.apply_interface_response(target, [
        var(oids.IF_HC_OUT_OCTETS, 1, 10),
        var(oids.IF_HC_IN_OCTETS, 1, 10),
    ], now=T0 + timedelta(seconds=10))

    iface = target.interfaces["ether1"]
    assert iface.elapsed == timedelta(seconds=10)
    assert iface.timestamp == T0 + timedelta(seconds=10)
    assert iface.in_rate() == 8
    assert iface.out_rate() == 8


def test_outbound_only_response_still_moves_timestamp(target):
    sampler.apply_interface_response(target, [var(oids.IF_HC_OUT_OCTETS, 1, 0)], now=T0)
    sampler.apply_interface_response(
        target, [var(oids.IF_HC_OUT_OCTETS, 1, 100)], now=T0 + timedelta(seconds=4)
    )

    iface = target.interfaces["ether1"]
    assert iface.elapsed == timedelta(seconds=4)
    assert iface.out_rate() == 200


def test_counter_reset_gives_zero_delta(target):
    sampler.apply_interface_response(target, [var(oids.IF_HC_IN_OCTETS, 1, 10_000)], now=T0)
    sampler.apply_interface_response(
        target, [var(oids.IF_HC_IN_OCTETS, 1, 10)], now=T0 + timedelta(seconds=5)
    )

    iface = target.interfaces["ether1"]
    assert iface.in_bits_delta == 0
    assert iface.in_bits == 80
    assert iface.in_rate() == 0


def test_64bit_counters_beyond_native_width(target):
    big = 2 ** 64 - 1
    sampler.apply_interface_response(target, [var(oids.IF_HC_IN_OCTETS, 1, big - 100)], now=T0)
    sampler.apply_interface_response(
        target, [var(oids.IF_HC_IN_OCTETS, 1, big)], now=T0 + timedelta(seconds=1)
    )

    iface = target.interfaces["ether1"]
    assert iface.in_bits == big * 8
    assert iface.in_bits_delta == 800


def test_unknown_index_and_column_are_ignored(target):
    sampler.apply_interface_response(target, [
        var(oids.IF_HC_IN_OCTETS, 99, 1000),
        var(oids.IF_DESCR, 1, "ether1"),
    ], now=T0)
    assert not target.interfaces["ether1"].sampled


def test_storage_response(make_target):
    target = make_target()
    target.add_storage("root", "31")
    sampler.apply_storage_response(target, [
        var(oids.HR_STORAGE_SIZE, 31, 1000),
        var(oids.HR_STORAGE_USED, 31, 250),
        var(oids.HR_STORAGE_ALLOCATION_UNITS, 31, 4),
    ], now=T0)

    strg = target.storage["root"]
    assert strg.size_bytes() == 4000
    assert strg.used_bytes() == 1000
    assert strg.usage() == 25.0
    assert strg.timestamp == T0


def run_sample(fn, target, device, **kwargs):
    async def _run():
        session = device.session()
        await session.connect()
        try:
            await fn(target, session, **kwargs)
        finally:
            session.close()

    asyncio.run(_run())


def test_sample_interfaces_issues_one_batched_get(target, make_target, device):
    target.add_interface("ether2", "2")
    device.table.update({
        f"{oids.IF_SPEED}.1": 100,
        f"{oids.IF_HC_IN_OCTETS}.1": 1,
        f"{oids.IF_HC_OUT_OCTETS}.1": 2,
        f"{oids.IF_SPEED}.2": 200,
    })

    run_sample(sampler.sample_interfaces, target, device, now=T0)

    assert len(device.gets) == 1
    assert len(device.gets[0]) == 6
    assert target.interfaces["ether1"].speed == 100
    assert target.interfaces["ether2"].speed == 200


def test_sample_without_discovered_entities_sends_nothing(make_target, device):
    target = make_target()
    run_sample(sampler.sample_interfaces, target, device)
    run_sample(sampler.sample_storage, target, device)
    assert device.gets == []


def test_sample_propagates_transport_errors(target, device):
    device.fail.add("get")
    with pytest.raises(SnmpError):
        run_sample(sampler.sample_interfaces, target, device)
