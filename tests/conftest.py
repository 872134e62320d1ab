import itertools
import logging
import os

import pytest
from pymongo.errors import AutoReconnect

from conformance import FIXTURES_DIR
from conformance.classes.event_client import EventClient, EventListener

# Configure logging
logging.basicConfig(
    level=logging.DEBUG, format="%(asctime)s - %(levelname)s - %(message)s"
)


def pytest_addoption(parser):
    logging.info("Adding pytest options")
    add = parser.addoption
    add("--mongodb-uri", default=os.getenv("MONGODB_URI"), help="Deployment to run fixtures against")
    add("--spec-path", default=os.getenv("SPEC_PATH"), help="Fixture file or directory (default: bundled)")
    add(
        "--run-integration",
        action="store_true",
        default=os.getenv("RUN_INTEGRATION", "false").lower() in ("1", "true", "yes"),
        help="Run tests marked integration",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration") and config.getoption("--mongodb-uri"):
        return
    skip = pytest.mark.skip(reason="needs --run-integration and --mongodb-uri")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(scope="session")
def fixture_path():
    """Return the path to the bundled listCollectionObjects fixture."""
    return FIXTURES_DIR / "retryable-reads" / "listCollectionObjects.yml"


class FakeCommandEvent:
    """Stands in for pymongo's command monitoring events."""

    def __init__(self, command_name, request_id, command=None, database_name="retryable-reads-tests", failure=None):
        self.command_name = command_name
        self.request_id = request_id
        self.command = command or {command_name: 1}
        self.database_name = database_name
        self.failure = failure


class FakeServer:
    """A deployment whose failCommand fail point closes connections."""

    def __init__(self, version="6.0.5", topology="replicaset"):
        self.version = version
        self._topology = topology
        self.fail_point = None
        self.remaining = 0
        self.calls = []
        self._ids = itertools.count(1)

    def next_request_id(self):
        return next(self._ids)

    def server_version(self):
        return self.version

    def topology(self):
        return self._topology

    def prepare_collection(self, database_name, collection_name, data):
        self.calls.append(("prepare", database_name, collection_name, len(data)))

    def configure_fail_point(self, fail_point):
        self.calls.append(("configure", fail_point.name))
        self.fail_point = fail_point
        mode = fail_point.mode
        self.remaining = mode["times"] if isinstance(mode, dict) else -1

    def disable_fail_point(self, fail_point):
        self.calls.append(("disable", fail_point.name))
        self.fail_point = None
        self.remaining = 0

    def close(self):
        pass

    def should_fail(self, command_name):
        if self.fail_point is None or command_name not in self.fail_point.fail_commands:
            return False
        if self.remaining == 0:
            return False
        if self.remaining > 0:
            self.remaining -= 1
        return True


class FakeMongoClient:
    """Sends commands to a FakeServer, retrying a read once when retryReads is on."""

    def __init__(self, server, listener, retry_reads=True):
        self.server = server
        self.listener = listener
        self.retry_reads = retry_reads

    def _attempt(self, command, database_name):
        name = next(iter(command))
        request_id = self.server.next_request_id()
        self.listener.started(FakeCommandEvent(name, request_id, command, database_name))
        if self.server.should_fail(name):
            error = AutoReconnect("connection closed")
            self.listener.failed(FakeCommandEvent(name, request_id, command, database_name, failure=str(error)))
            raise error
        self.listener.succeeded(FakeCommandEvent(name, request_id, command, database_name))
        return {"ok": 1}

    def execute(self, command, database_name):
        try:
            return self._attempt(command, database_name)
        except AutoReconnect:
            if not self.retry_reads:
                raise
            return self._attempt(command, database_name)

    def __getitem__(self, name):
        return FakeDatabase(self, name)


class FakeDatabase:
    """Database handle whose list_collections goes through FakeMongoClient.execute."""

    def __init__(self, client, name):
        self.client = client
        self.name = name

    def list_collections(self, **kwargs):
        self.client.execute({"listCollections": 1, "cursor": {}, **kwargs}, self.name)
        return iter([{"name": "coll", "type": "collection"}])


class FakeEventClient(EventClient):
    """EventClient backed by a FakeMongoClient."""

    instances = []

    def __init__(
        self,
        uri,
        client_options=None,
        use_multiple_mongoses=None,
        topology=None,
        server_selection_timeout_ms=10000,
        server=None,
    ):
        self._topology = topology
        self.host = uri
        self.client_options = client_options or {}
        self.listener = EventListener()
        self.client = FakeMongoClient(
            server, self.listener, retry_reads=self.client_options.get("retryReads", True)
        )
        self.closed = False
        FakeEventClient.instances.append(self)

    def close(self):
        self.closed = True


@pytest.fixture
def make_event():
    return FakeCommandEvent


@pytest.fixture
def fake_server():
    return FakeServer()


@pytest.fixture
def fake_client_factory(fake_server):
    FakeEventClient.instances = []

    def _factory(uri, **kwargs):
        return FakeEventClient(uri, server=fake_server, **kwargs)

    return _factory


@pytest.fixture
def fake_clients(fake_client_factory):
    """The FakeEventClients created by fake_client_factory, in order."""
    return FakeEventClient.instances


@pytest.fixture
def srv_uri(monkeypatch):
    """A mongodb+srv URI whose records resolve to two mongos hosts, without a DNS lookup."""
    uri = "mongodb+srv://user:pw@cluster0.example.com/admin"
    parsed = {
        "nodelist": [("shard-00.example.com", 27017), ("shard-01.example.com", 27017)],
        "username": "user",
        "password": "pw",
        "database": "admin",
        "collection": None,
        "options": {"tls": True},
        "fqdn": "cluster0.example.com",
    }

    def _parse_uri(value):
        assert value == uri
        return parsed

    monkeypatch.setattr("conformance.classes.event_client.parse_uri", _parse_uri)
    return uri
