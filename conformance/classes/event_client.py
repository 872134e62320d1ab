"""Define a MongoDB client that records the command and pool events it emits, for asserting against fixture expectations."""

import logging
import threading
from collections import deque

from pymongo import MongoClient, monitoring
from pymongo.uri_parser import parse_uri

logger = logging.getLogger(__name__)

IGNORED_COMMANDS = ("configureFailPoint",)

_TOPOLOGY_TYPES = {
    "Single": "single",
    "ReplicaSetNoPrimary": "replicaset",
    "ReplicaSetWithPrimary": "replicaset",
    "Sharded": "sharded",
    "LoadBalanced": "load-balanced",
}


class CommandEvent:
    """A started, succeeded or failed command event."""

    STARTED = "commandStartedEvent"
    SUCCEEDED = "commandSucceededEvent"
    FAILED = "commandFailedEvent"

    def __init__(self, kind: str, event):
        self.kind = kind
        self.event = event

    def __repr__(self):
        return f"CommandEvent({self.kind}, {self.command_name}, request_id={self.request_id})"

    @property
    def command_name(self) -> str:
        return self.event.command_name

    @property
    def request_id(self) -> int:
        return self.event.request_id

    @property
    def is_command_started(self) -> bool:
        return self.kind == CommandEvent.STARTED

    @property
    def is_command_succeeded(self) -> bool:
        return self.kind == CommandEvent.SUCCEEDED

    @property
    def is_command_failed(self) -> bool:
        return self.kind == CommandEvent.FAILED


class EventListener(monitoring.CommandListener, monitoring.ConnectionPoolListener):
    """Records command events and pool-cleared events."""

    def __init__(self):
        self._lock = threading.Lock()
        self.command_events: deque[CommandEvent] = deque()
        self.pool_cleared_events: deque = deque()

    def _push(self, queue: deque, item):
        with self._lock:
            queue.append(item)

    def snapshot(self) -> list[CommandEvent]:
        with self._lock:
            return list(self.command_events)

    def pool_cleared_snapshot(self) -> list:
        with self._lock:
            return list(self.pool_cleared_events)

    def clear(self):
        with self._lock:
            self.command_events.clear()
            self.pool_cleared_events.clear()

    # Command monitoring

    def started(self, event):
        logger.debug(f"Command started: {event.command_name} ({event.request_id})")
        self._push(self.command_events, CommandEvent(CommandEvent.STARTED, event))

    def succeeded(self, event):
        self._push(self.command_events, CommandEvent(CommandEvent.SUCCEEDED, event))

    def failed(self, event):
        logger.debug(f"Command failed: {event.command_name}: {event.failure}")
        self._push(self.command_events, CommandEvent(CommandEvent.FAILED, event))

    # Connection pool monitoring

    def pool_cleared(self, event):
        logger.debug(f"Pool cleared: {event.address}")
        self._push(self.pool_cleared_events, event)

    def pool_created(self, event):
        pass

    def pool_ready(self, event):
        pass

    def pool_closed(self, event):
        pass

    def connection_created(self, event):
        pass

    def connection_ready(self, event):
        pass

    def connection_closed(self, event):
        pass

    def connection_check_out_started(self, event):
        pass

    def connection_check_out_failed(self, event):
        pass

    def connection_checked_out(self, event):
        pass

    def connection_checked_in(self, event):
        pass


def seed_hosts(uri: str) -> list[tuple[str, int]]:
    """The (host, port) seed list of a URI, with SRV records resolved."""
    return parse_uri(uri)["nodelist"]


def pinned_client_args(uri: str) -> tuple[str, dict]:
    """
    Split a URI into its first host and the MongoClient keyword arguments
    that carry the rest of it (credentials, auth source and URI options).
    """
    parsed = parse_uri(uri)
    host, port = parsed["nodelist"][0]
    if ":" in host:
        host = f"[{host}]"

    kwargs = dict(parsed["options"])
    if parsed["username"] is not None:
        kwargs["username"] = parsed["username"]
        kwargs["password"] = parsed["password"]
    if parsed["database"] and not any(k.lower() == "authsource" for k in kwargs):
        kwargs["authSource"] = parsed["database"]
    return f"{host}:{port}", kwargs


class EventClient:
    """A MongoClient whose command events are captured for assertions."""

    def __init__(
        self,
        uri: str,
        client_options: dict | None = None,
        use_multiple_mongoses: bool | None = None,
        topology: str | None = None,
        server_selection_timeout_ms: int = 10000,
    ):
        self._topology = topology
        self.host = uri
        options = {"serverSelectionTimeoutMS": server_selection_timeout_ms}

        if use_multiple_mongoses is True:
            if len(seed_hosts(uri)) <= 1:
                raise ValueError("Test requires multiple mongos hosts")
        elif topology == "sharded":
            # Fail points are set per mongos, so stay on the first one.
            self.host, pinned = pinned_client_args(uri)
            options.update(pinned)
            logger.info(f"Pinning event client to mongos {self.host}")

        options.update(client_options or {})
        self.listener = EventListener()
        logger.info(f"Creating event client with options {client_options or {}}")
        self.client = MongoClient(self.host, event_listeners=[self.listener], **options)

        # Drop anything emitted while setting up the client.
        self.listener.clear()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __getitem__(self, name):
        return self.client[name]

    @property
    def command_events(self) -> list[CommandEvent]:
        return self.listener.snapshot()

    @property
    def pool_cleared_events(self) -> list:
        return self.listener.pool_cleared_snapshot()

    def clear_events(self):
        self.listener.clear()

    def close(self):
        self.client.close()

    def topology(self) -> str:
        if self._topology is not None:
            return self._topology
        name = self.client.topology_description.topology_type_name
        return _TOPOLOGY_TYPES.get(name, "single")

    def get_command_started_events(self, command_name: str) -> list:
        """Get all of the command started events for a command name."""
        return [
            e.event
            for e in self.command_events
            if e.is_command_started and e.command_name == command_name
        ]

    def get_filtered_events(
        self,
        observe_events: list[str] | None = None,
        ignore_command_names: list[str] | None = None,
    ) -> list[CommandEvent]:
        """
        Get the events of the requested kinds, skipping ignored command names.
        configureFailPoint events are always skipped.
        """
        events = []
        for e in self.command_events:
            if e.command_name in IGNORED_COMMANDS:
                continue
            if observe_events is not None and e.kind not in observe_events:
                continue
            if ignore_command_names and e.command_name in ignore_command_names:
                continue
            events.append(e)
        return events

    def get_successful_command_execution(self, command_name: str):
        """
        Get the first started/succeeded pair for a command name, popping off all
        events before and between them.
        """
        with self.listener._lock:
            queue = self.listener.command_events
            started = None
            while queue:
                e = queue.popleft()
                if e.command_name != command_name:
                    continue
                if started is None:
                    if not e.is_command_started:
                        raise AssertionError(f"First event not a command started event: {e}")
                    started = e.event
                    continue
                if e.request_id == started.request_id:
                    if not e.is_command_succeeded:
                        raise AssertionError(f"Second event not a command succeeded event: {e}")
                    return started, e.event

        raise AssertionError(f"Could not find event for {command_name} command")
