"""
Runs fixture scenarios against a live deployment and checks the observed command events.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from pymongo.errors import PyMongoError

from conformance.classes.deployment import Deployment
from conformance.classes.event_client import CommandEvent, EventClient, pinned_client_args
from conformance.classes.types import Operation, SpecTestCase, SpecTestFile
from conformance.operations import run_operation
from conformance.utils.loading import expand_paths, list_fixture_files, load_test_file
from conformance.utils.matching import match_document, match_events

logger = logging.getLogger(__name__)

PASSED = "passed"
FAILED = "failed"
SKIPPED = "skipped"


class RunnerConfig:
    """Runner settings, read from the environment by default."""

    def __init__(
        self,
        mongodb_uri: str | None = None,
        server_selection_timeout_ms: int | None = None,
        ignore_command_names: list[str] | None = None,
        fail_fast: bool = False,
    ):
        self.mongodb_uri = mongodb_uri or os.getenv("MONGODB_URI", "mongodb://localhost:27017")
        if server_selection_timeout_ms is None:
            server_selection_timeout_ms = int(os.getenv("SERVER_SELECTION_TIMEOUT_MS", "10000"))
        self.server_selection_timeout_ms = server_selection_timeout_ms
        if ignore_command_names is None:
            raw = os.getenv("SPEC_IGNORE_COMMANDS", "configureFailPoint")
            ignore_command_names = [c.strip() for c in raw.split(",") if c.strip()]
        self.ignore_command_names = ignore_command_names
        self.fail_fast = fail_fast

    def __repr__(self):
        return (
            f"RunnerConfig(uri={self.mongodb_uri}, "
            f"timeout={self.server_selection_timeout_ms}, ignore={self.ignore_command_names})"
        )


class ScenarioResult:
    """Outcome of one scenario."""

    def __init__(self, path: str, description: str, status: str, messages: list[str] | None = None):
        self.path = path
        self.description = description
        self.status = status
        self.messages = messages or []

    def __repr__(self):
        return f"ScenarioResult({self.description!r}, {self.status})"

    @property
    def name(self) -> str:
        return f"{Path(self.path).name} :: {self.description}"

    def assert_passed(self):
        if self.status == FAILED:
            raise AssertionError(f"{self.name} failed: " + "; ".join(self.messages))


class RunReport:
    """Collected outcomes of a run."""

    def __init__(self):
        self.results: list[ScenarioResult] = []

    def add(self, result: ScenarioResult):
        self.results.append(result)

    def _with_status(self, status: str) -> list[ScenarioResult]:
        return [r for r in self.results if r.status == status]

    @property
    def passed(self) -> list[ScenarioResult]:
        return self._with_status(PASSED)

    @property
    def failed(self) -> list[ScenarioResult]:
        return self._with_status(FAILED)

    @property
    def skipped(self) -> list[ScenarioResult]:
        return self._with_status(SKIPPED)

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return f"{len(self.passed)} passed, {len(self.failed)} failed, {len(self.skipped)} skipped"


class SpecRunner:
    """Runs fixture scenarios against the deployment at a URI."""

    def __init__(
        self,
        uri: str | None = None,
        config: RunnerConfig | None = None,
        deployment: Deployment | None = None,
        client_factory=EventClient,
    ):
        self.config = config or RunnerConfig(mongodb_uri=uri)
        self.uri = uri or self.config.mongodb_uri
        self._deployment = deployment
        self._single_mongos: Deployment | None = None
        self.client_factory = client_factory

    @property
    def deployment(self) -> Deployment:
        if self._deployment is None:
            self._deployment = Deployment(
                self.uri, server_selection_timeout_ms=self.config.server_selection_timeout_ms
            )
        return self._deployment

    def close(self):
        for d in (self._deployment, self._single_mongos):
            if d is not None:
                d.close()

    def _fail_point_target(self, test_case: SpecTestCase, topology: str) -> Deployment:
        # On sharded clusters the fail point must be set on the mongos the test client uses.
        if topology != "sharded" or test_case.use_multiple_mongoses:
            return self.deployment
        if self._single_mongos is None:
            host, pinned = pinned_client_args(self.uri)
            logger.info(f"Setting fail points on mongos {host}")
            self._single_mongos = Deployment(
                host,
                server_selection_timeout_ms=self.config.server_selection_timeout_ms,
                **pinned,
            )
        return self._single_mongos

    def skip_reason(self, test_file: SpecTestFile, test_case: SpecTestCase) -> Optional[str]:
        if test_case.skip_reason:
            return test_case.skip_reason
        version = self.deployment.server_version()
        topology = self.deployment.topology()
        if not test_file.should_run_on(version, topology):
            return f"runOn requirements not met by {topology} server {version}"
        return None

    def _run_operation(self, client, test_file: SpecTestFile, operation: Operation) -> List[str]:
        try:
            result = run_operation(
                client.client, test_file.database_name, test_file.collection_name, operation
            )
        except PyMongoError as e:
            if operation.error:
                logger.info(f"{operation.name} failed as expected: {e}")
                return []
            logger.error(f"{operation.name} raised unexpectedly: {e}")
            return [f"{operation.name}: unexpected error: {e}"]

        if operation.error:
            return [f"{operation.name}: expected an error but the operation succeeded"]
        if operation.result is not None:
            return [f"{operation.name}: {e}" for e in match_document(operation.result, result, "result")]
        return []

    def run_test_case(self, test_file: SpecTestFile, test_case: SpecTestCase) -> ScenarioResult:
        """Run one scenario and return its outcome."""
        logger.info(f"Running '{test_case.description}'")

        reason = self.skip_reason(test_file, test_case)
        if reason:
            logger.warning(f"Skipping '{test_case.description}': {reason}")
            return ScenarioResult(test_file.path, test_case.description, SKIPPED, [reason])

        topology = self.deployment.topology()
        self.deployment.prepare_collection(
            test_file.database_name, test_file.collection_name, test_file.data
        )
        target = self._fail_point_target(test_case, topology)

        client = self.client_factory(
            self.uri,
            client_options=test_case.client_options,
            use_multiple_mongoses=test_case.use_multiple_mongoses,
            topology=topology,
            server_selection_timeout_ms=self.config.server_selection_timeout_ms,
        )
        errors = []
        try:
            if test_case.fail_point is not None:
                target.configure_fail_point(test_case.fail_point)
            try:
                for operation in test_case.operations:
                    errors.extend(self._run_operation(client, test_file, operation))
            finally:
                if test_case.fail_point is not None:
                    target.disable_fail_point(test_case.fail_point)

            if test_case.expectations is not None:
                observed = client.get_filtered_events(
                    [CommandEvent.STARTED], self.config.ignore_command_names
                )
                errors.extend(match_events(test_case.expectations, [e.event for e in observed]))
        finally:
            client.close()

        if errors:
            for e in errors:
                logger.error(f"'{test_case.description}': {e}")
            return ScenarioResult(test_file.path, test_case.description, FAILED, errors)

        logger.info(f"'{test_case.description}' passed")
        return ScenarioResult(test_file.path, test_case.description, PASSED)

    def run_file(self, path: Union[str, Path], report: RunReport | None = None) -> RunReport:
        report = report if report is not None else RunReport()
        test_file = load_test_file(path)
        for test_case in test_file.tests:
            result = self.run_test_case(test_file, test_case)
            report.add(result)
            if self.config.fail_fast and result.status == FAILED:
                break
        return report

    def run_paths(self, paths: Optional[Iterable[Union[str, Path]]] = None) -> RunReport:
        """Run every scenario in the given fixture files or directories."""
        report = RunReport()
        files = expand_paths(paths) if paths else list_fixture_files()
        for path in files:
            self.run_file(path, report)
            if self.config.fail_fast and report.failed:
                break
        logger.info(f"Run finished: {report.summary()}")
        return report
