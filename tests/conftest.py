import os

# Keep the module level engine in memory instead of creating ./metrics.db.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest

from snmp_telemetry.config import Settings, TargetConfig
from snmp_telemetry import models  # noqa: F401  registers the tables on Base
from snmp_telemetry.database import Base, make_engine, make_session_factory
from snmp_telemetry.snmp_client import EndOfTable, SnmpError, SnmpVariable
from snmp_telemetry.target import Target


def _oid_key(oid):
    return tuple(int(part) for part in oid.split("."))


class FakeDevice:
    """
    In-memory SNMP agent: a flat {oid: value} table.

    `fail` holds operation names ("connect", "walk", "get") that should raise
    SnmpError, optionally restricted to OIDs under a root via `fail_roots`.
    """

    def __init__(self, table=None):
        self.table = dict(table or {})
        self.fail = set()
        self.fail_roots = set()
        self.sessions = []
        self.gets = []
        self.walks = []

    def session(self, target=None):
        s = FakeSession(self)
        self.sessions.append(s)
        return s


class FakeSession:
    def __init__(self, device):
        self.device = device
        self.connected = False
        self.closed = False

    async def connect(self):
        if "connect" in self.device.fail:
            raise SnmpError("request timed out")
        self.connected = True

    def close(self):
        self.closed = True
        self.connected = False

    def _should_fail(self, op, oids):
        if op not in self.device.fail:
            return False
        if not self.device.fail_roots:
            return True
        return any(o.startswith(r) for o in oids for r in self.device.fail_roots)

    async def bulk_walk(self, root, visit):
        assert self.connected
        self.device.walks.append(root)
        if self._should_fail("walk", [root]):
            raise SnmpError("walk failed")
        # Like a real agent, keep going past the end of the subtree.
        for oid in sorted(self.device.table, key=_oid_key):
            if _oid_key(oid) <= _oid_key(root):
                continue
            try:
                visit(SnmpVariable(oid, self.device.table[oid]))
            except EndOfTable:
                return

    async def get(self, oids):
        assert self.connected
        self.device.gets.append(list(oids))
        if self._should_fail("get", oids):
            raise SnmpError("get failed")
        return [SnmpVariable(o, self.device.table[o]) for o in oids if o in self.device.table]


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def make_device():
    """Extra devices for tests that poll more than one target."""
    return FakeDevice


@pytest.fixture
def test_settings():
    return Settings(targets_conf=None, database_url="sqlite://")


@pytest.fixture
def make_target(device, test_settings):
    def _make(session_factory=None, **overrides):
        data = {
            "name": "router",
            "ip": "192.0.2.1",
            "community": "public",
            "interfaces": ["ether1", "ether2"],
            "frequency": "30s",
        }
        data.update(overrides)
        return Target(
            TargetConfig.model_validate(data),
            settings=test_settings,
            session_factory=session_factory or device.session,
        )

    return _make


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()
