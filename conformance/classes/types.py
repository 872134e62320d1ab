"""
Type definitions for retryable reads fixture files.
"""

import re

TOPOLOGIES = ("single", "replicaset", "sharded", "load-balanced")
OPERATION_OBJECTS = ("client", "database", "collection", "gridfsbucket")


def parse_version(version: str) -> tuple[int, ...]:
    """Parse a server version like '4.1.7' or '7.0.2-rc0' into a tuple of ints."""
    if not isinstance(version, str) or not version:
        raise ValueError(f"Invalid server version: {version!r}")
    core = re.split(r"[-+]", version, maxsplit=1)[0]
    parts = core.split(".")
    try:
        return tuple(int(p) for p in parts)
    except ValueError:
        raise ValueError(f"Invalid server version: {version!r}")


def _pad(version: tuple[int, ...], size: int = 3) -> tuple[int, ...]:
    return version + (0,) * (size - len(version))


class RunOnRequirement:
    """Server version range and topologies a fixture file may run against."""

    def __init__(
        self,
        min_server_version: str | None = None,
        max_server_version: str | None = None,
        topologies: list[str] | None = None,
    ):
        self.min_server_version = min_server_version
        self.max_server_version = max_server_version
        self.topologies = topologies

    def __repr__(self):
        return (
            f"RunOnRequirement(min={self.min_server_version}, "
            f"max={self.max_server_version}, topologies={self.topologies})"
        )

    def is_satisfied(self, server_version: str, topology: str) -> bool:
        version = _pad(parse_version(server_version))
        if self.min_server_version is not None:
            if version < _pad(parse_version(self.min_server_version)):
                return False
        if self.max_server_version is not None:
            if version > _pad(parse_version(self.max_server_version)):
                return False
        if self.topologies is not None and topology not in self.topologies:
            return False
        return True

    @staticmethod
    def from_json(json: dict):
        """Create RunOnRequirement from a runOn entry."""
        if not isinstance(json, dict):
            raise ValueError(f"runOn entry must be a mapping, got {json!r}")
        topologies = json.get("topology")
        if topologies is not None and not isinstance(topologies, list):
            raise ValueError(f"runOn.topology must be a list, got {topologies!r}")
        return RunOnRequirement(
            json.get("minServerVersion"),
            json.get("maxServerVersion"),
            topologies,
        )


class FailPoint:
    """A configureFailPoint command document."""

    def __init__(self, document: dict):
        self.document = document

    def __repr__(self):
        return f"FailPoint({self.document})"

    @property
    def name(self) -> str:
        return self.document["configureFailPoint"]

    @property
    def mode(self):
        return self.document["mode"]

    @property
    def data(self) -> dict:
        return self.document.get("data") or {}

    @property
    def fail_commands(self) -> list[str]:
        return list(self.data.get("failCommands", []))

    @property
    def close_connection(self) -> bool:
        return bool(self.data.get("closeConnection", False))

    @property
    def error_code(self) -> int | None:
        return self.data.get("errorCode")

    def command(self) -> dict:
        """The command to send, with configureFailPoint as the first key."""
        cmd = {"configureFailPoint": self.name}
        cmd.update((k, v) for k, v in self.document.items() if k != "configureFailPoint")
        return cmd

    def disable_command(self) -> dict:
        return {"configureFailPoint": self.name, "mode": "off"}

    @staticmethod
    def from_json(json: dict):
        """Create FailPoint from a failPoint entry."""
        if not isinstance(json, dict):
            raise ValueError(f"failPoint must be a mapping, got {json!r}")
        if "configureFailPoint" not in json:
            raise ValueError("failPoint is missing 'configureFailPoint'")
        if "mode" not in json:
            raise ValueError("failPoint is missing 'mode'")
        return FailPoint(dict(json))


class Operation:
    """A driver operation to invoke on a client, database or collection."""

    def __init__(
        self,
        name: str,
        object: str,
        arguments: dict | None = None,
        error: bool = False,
        result=None,
    ):
        self.name = name
        self.object = object
        self.arguments = arguments or {}
        self.error = error
        self.result = result

    def __repr__(self):
        return f"Operation({self.object}.{self.name}, error={self.error})"

    @staticmethod
    def from_json(json: dict):
        """Create Operation from an operations entry."""
        if not isinstance(json, dict):
            raise ValueError(f"operation must be a mapping, got {json!r}")
        for field in ("name", "object"):
            if field not in json:
                raise ValueError(f"operation is missing '{field}'")
        return Operation(
            json["name"],
            json["object"],
            json.get("arguments"),
            bool(json.get("error", False)),
            json.get("result"),
        )


class ExpectedCommandEvent:
    """An expected command-started event."""

    def __init__(
        self,
        command_name: str,
        command: dict,
        database_name: str | None = None,
    ):
        self.command_name = command_name
        self.command = command
        self.database_name = database_name

    def __repr__(self):
        return f"ExpectedCommandEvent({self.command_name}, {self.command})"

    @staticmethod
    def from_json(json: dict):
        """Create ExpectedCommandEvent from an expectations entry."""
        if not isinstance(json, dict) or "command_started_event" not in json:
            raise ValueError(
                f"expectation must contain 'command_started_event', got {json!r}"
            )
        event = json["command_started_event"]
        command = event.get("command")
        if not isinstance(command, dict) or not command:
            raise ValueError("command_started_event is missing 'command'")
        return ExpectedCommandEvent(
            event.get("command_name") or next(iter(command)),
            command,
            event.get("database_name"),
        )


class SpecTestCase:
    """One named scenario of a fixture file."""

    def __init__(
        self,
        description: str,
        operations: list[Operation],
        expectations: list[ExpectedCommandEvent] | None = None,
        client_options: dict | None = None,
        fail_point: FailPoint | None = None,
        skip_reason: str | None = None,
        use_multiple_mongoses: bool | None = None,
    ):
        self.description = description
        self.operations = operations
        self.expectations = expectations
        self.client_options = client_options or {}
        self.fail_point = fail_point
        self.skip_reason = skip_reason
        self.use_multiple_mongoses = use_multiple_mongoses

    def __repr__(self):
        return f"SpecTestCase({self.description!r})"

    @property
    def expects_error(self) -> bool:
        return any(op.error for op in self.operations)

    @staticmethod
    def from_json(json: dict):
        """Create SpecTestCase from a tests entry."""
        if not isinstance(json, dict):
            raise ValueError(f"test must be a mapping, got {json!r}")
        if "description" not in json:
            raise ValueError("test is missing 'description'")
        description = json["description"]
        try:
            expectations = json.get("expectations")
            return SpecTestCase(
                description,
                [Operation.from_json(op) for op in json.get("operations", [])],
                (
                    [ExpectedCommandEvent.from_json(e) for e in expectations]
                    if expectations is not None
                    else None
                ),
                json.get("clientOptions"),
                FailPoint.from_json(json["failPoint"]) if "failPoint" in json else None,
                json.get("skipReason"),
                json.get("useMultipleMongoses"),
            )
        except ValueError as e:
            raise ValueError(f"{description}: {e}") from e


class SpecTestFile:
    """A parsed fixture file."""

    def __init__(
        self,
        path: str,
        run_on: list[RunOnRequirement],
        database_name: str,
        collection_name: str | None,
        data: list[dict],
        tests: list[SpecTestCase],
    ):
        self.path = path
        self.run_on = run_on
        self.database_name = database_name
        self.collection_name = collection_name
        self.data = data
        self.tests = tests

    def __repr__(self):
        return f"SpecTestFile({self.path}, tests={len(self.tests)})"

    def should_run_on(self, server_version: str, topology: str) -> bool:
        if not self.run_on:
            return True
        return any(req.is_satisfied(server_version, topology) for req in self.run_on)

    def get_test(self, description: str) -> SpecTestCase:
        """Get test case by description."""
        return next(t for t in self.tests if t.description == description)

    @staticmethod
    def from_json(json: dict, path: str = "<memory>"):
        """Create SpecTestFile from a loaded fixture document."""
        if not isinstance(json, dict):
            raise ValueError(f"{path}: fixture must be a mapping")
        if "tests" not in json or not isinstance(json["tests"], list):
            raise ValueError(f"{path}: fixture is missing a 'tests' list")
        if "database_name" not in json:
            raise ValueError(f"{path}: fixture is missing 'database_name'")
        data = json.get("data") or []
        if not isinstance(data, list):
            raise ValueError(f"{path}: 'data' must be a list")
        try:
            return SpecTestFile(
                path,
                [RunOnRequirement.from_json(r) for r in json.get("runOn", [])],
                json["database_name"],
                json.get("collection_name"),
                data,
                [SpecTestCase.from_json(t) for t in json["tests"]],
            )
        except ValueError as e:
            raise ValueError(f"{path}: {e}") from e
