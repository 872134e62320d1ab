"""Define an internal client used to inspect the deployment, seed data and toggle fail points outside of the monitored client."""

import logging

from pymongo import MongoClient
from pymongo.errors import OperationFailure

from .types import FailPoint

logger = logging.getLogger(__name__)

COMMAND_NOT_FOUND = 59


class Deployment:
    """Admin connection to the deployment under test; its commands are not monitored."""

    def __init__(
        self,
        uri: str,
        server_selection_timeout_ms: int = 10000,
        client=None,
        **client_options,
    ):
        self.uri = uri
        self._server_version: str | None = None
        self._topology: str | None = None
        self.client = client or MongoClient(
            uri, serverSelectionTimeoutMS=server_selection_timeout_ms, **client_options
        )

    def _hello(self) -> dict:
        try:
            return self.client.admin.command("hello")
        except OperationFailure as e:
            # hello arrived in 4.4.2, 4.2.10 and 4.0.21.
            if e.code != COMMAND_NOT_FOUND:
                raise
            logger.debug("hello is not supported, falling back to isMaster")
            return self.client.admin.command("isMaster")

    def close(self):
        self.client.close()

    def server_version(self) -> str:
        if self._server_version is None:
            self._server_version = self.client.admin.command("buildInfo")["version"]
            logger.info(f"Server version: {self._server_version}")
        return self._server_version

    def topology(self) -> str:
        """Return one of single, replicaset, sharded or load-balanced."""
        if self._topology is None:
            hello = self._hello()
            if hello.get("msg") == "isdbgrid":
                topology = "sharded"
            elif hello.get("setName"):
                topology = "replicaset"
            elif hello.get("serviceId") is not None:
                topology = "load-balanced"
            else:
                topology = "single"
            self._topology = topology
            logger.info(f"Topology: {topology}")
        return self._topology

    def configure_fail_point(self, fail_point: FailPoint):
        logger.info(f"Enabling fail point {fail_point.name} with mode {fail_point.mode}")
        logger.debug(f"Fail point command: {fail_point.command()}")
        self.client.admin.command(fail_point.command())

    def disable_fail_point(self, fail_point: FailPoint):
        logger.info(f"Disabling fail point {fail_point.name}")
        self.client.admin.command(fail_point.disable_command())

    def prepare_collection(self, database_name: str, collection_name: str | None, data: list):
        """Drop the collection and insert the seed documents."""
        if collection_name is None:
            return
        logger.info(f"Preparing {database_name}.{collection_name} with {len(data)} document(s)")
        coll = self.client[database_name][collection_name]
        coll.drop()
        if data:
            coll.insert_many([dict(d) for d in data])
