"""
Background collector process.

This module:
- runs one polling task per configured target, each at its own interval
- per cycle, walks and GETs CPU, storage, interface and wireless values
- hands a snapshot of the target to the publisher (database)

Run it as:

    TARGETS_CONF=targets.json python -m snmp_telemetry.collector

or, to delete every stored metric descriptor and point:

    python -m snmp_telemetry.collector --erase
"""

import argparse
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from snmp_telemetry import discovery, sampler, wireless
from snmp_telemetry.config import ConfigError, Settings, load_targets, settings
from snmp_telemetry.database import Base, engine
from snmp_telemetry.oids import InvalidAddress
from snmp_telemetry.publisher import SqlPublisher
from snmp_telemetry.snmp_client import SnmpError, open_session
from snmp_telemetry.target import Target

logger = logging.getLogger(__name__)

# Errors that end one phase of a cycle without stopping the poller.
COLLECTION_ERRORS = (SnmpError, InvalidAddress, wireless.NotConfigured)


async def collect_cpu(target: Target) -> None:
    async with open_session(target.session()) as session:
        await discovery.walk_cpu_load(target, session)


async def collect_storage(target: Target) -> None:
    async with open_session(target.session()) as session:
        await discovery.discover_storage(target, session)
        await sampler.sample_storage(target, session)


async def collect_interfaces(target: Target) -> None:
    async with open_session(target.session()) as session:
        await discovery.discover_interfaces(target, session)
        await sampler.sample_interfaces(target, session)


async def collect_wireless(target: Target) -> None:
    async with open_session(target.session()) as session:
        await wireless.sample_wireless(target, session)


@dataclass
class CycleReport:
    """What happened during one poll cycle of a target."""

    target: str
    started: datetime
    errors: Dict[str, str] = field(default_factory=dict)
    published: Optional[int] = None

    @property
    def ok(self) -> bool:
        return not self.errors


class TargetPoller:
    """
    Polls one target forever: collect, publish, sleep, repeat.

    A failing phase is logged and recorded, and the cycle moves on to the
    next phase; nothing a device does stops the loop.
    """

    def __init__(self, target: Target, publisher) -> None:
        self.target = target
        self.publisher = publisher

    def _phases(self):
        phases = [
            ("cpu", collect_cpu),
            ("storage", collect_storage),
            ("interface", collect_interfaces),
        ]
        if self.target.wireless is not None:
            phases.append(("wireless", collect_wireless))
        return phases

    async def run_once(self) -> CycleReport:
        t = self.target
        report = CycleReport(target=t.name, started=datetime.now(timezone.utc))

        for phase, collect in self._phases():
            try:
                await collect(t)
            except COLLECTION_ERRORS as exc:
                logger.error("%s metrics collection from %s error: %s", phase, t.name, exc)
                report.errors[phase] = str(exc)
            except Exception as exc:
                # Bad values from a device end this phase only.
                logger.exception("unexpected error collecting %s metrics from %s", phase, t.name)
                report.errors[phase] = repr(exc)

        t.collect_time = datetime.now(timezone.utc)
        snapshot = t.snapshot()
        try:
            report.published = await asyncio.to_thread(self.publisher.publish, snapshot)
        except SQLAlchemyError as exc:
            logger.error("error storing metrics for %s: %s", t.name, exc)
            report.errors["publish"] = str(exc)
        except Exception as exc:
            logger.exception("unexpected error publishing metrics for %s", t.name)
            report.errors["publish"] = repr(exc)
        else:
            logger.debug("published %s points for %s", report.published, t.name)
        return report

    async def run_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        """Run cycles until `stop` is set (checked while sleeping)."""
        stop = stop or asyncio.Event()
        interval = self.target.interval.total_seconds()
        logger.info("polling %s (%s) every %s", self.target.name, self.target.ip,
                    self.target.config.frequency)
        while not stop.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("stopped polling %s", self.target.name)


async def run(pollers: Sequence[TargetPoller], stop: Optional[asyncio.Event] = None) -> None:
    """Run every poller concurrently; returns once all of them have stopped."""
    stop = stop or asyncio.Event()
    results = await asyncio.gather(
        *(p.run_forever(stop) for p in pollers), return_exceptions=True
    )
    for poller, result in zip(pollers, results):
        if isinstance(result, Exception):
            logger.error("poller for %s stopped: %r", poller.target.name, result)


def build_pollers(
    config_settings: Settings, publisher: SqlPublisher
) -> List[TargetPoller]:
    if config_settings.targets_conf is None:
        raise ConfigError("TARGETS_CONF environment variable not set")
    configs = load_targets(config_settings.targets_conf)
    return [
        TargetPoller(Target(cfg, settings=config_settings), publisher)
        for cfg in configs
    ]


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Entry point: load targets, then poll them until interrupted.
    """
    parser = argparse.ArgumentParser(description="Poll SNMP devices and store their metrics.")
    parser.add_argument(
        "--erase", action="store_true",
        help="erase all historical data and metric descriptors",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log every SNMP response")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if (args.verbose or settings.verbose) else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # pysnmp is very chatty at DEBUG
    logging.getLogger("pysnmp").setLevel(logging.WARNING)

    # Create DB tables on startup (no-op if they already exist)
    Base.metadata.create_all(bind=engine)
    publisher = SqlPublisher(prefix=settings.metric_type_prefix)

    if args.erase:
        logger.info("erasing all historic data and metric descriptors...")
        removed = publisher.erase()
        logger.info("finished erasing data (%d descriptors removed)", removed)
        return 0

    try:
        pollers = build_pollers(settings, publisher)
    except ConfigError as exc:
        logger.error("error loading targets configuration: %s", exc)
        return 1

    logger.info("Starting SNMP collector for %d target(s)", len(pollers))
    try:
        asyncio.run(run(pollers))
    except KeyboardInterrupt:
        logger.info("collector interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
