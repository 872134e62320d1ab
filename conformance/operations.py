"""
Dispatch of fixture operations to pymongo calls.
"""

import logging
from typing import Any, Callable, Dict

from conformance.classes.types import Operation

logger = logging.getLogger(__name__)

# camelCase fixture argument -> pymongo keyword
ARGUMENT_NAMES = {
    "batchSize": "batch_size",
    "maxTimeMS": "max_time_ms",
    "fieldName": "key",
    "noCursorTimeout": "no_cursor_timeout",
    "allowPartialResults": "allow_partial_results",
    "returnKey": "return_key",
    "showRecordId": "show_record_id",
}


def _kwargs(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {ARGUMENT_NAMES.get(k, k): v for k, v in arguments.items()}


def _database_ops(db) -> Dict[str, Callable[..., Any]]:
    return {
        "listCollectionObjects": lambda **kw: list(db.list_collections(**kw)),
        "listCollections": lambda **kw: list(db.list_collections(**kw)),
        "listCollectionNames": lambda **kw: db.list_collection_names(**kw),
        "aggregate": lambda pipeline, **kw: list(db.aggregate(pipeline, **kw)),
        "runCommand": lambda command, **kw: db.command(command, **kw),
    }


def _client_ops(client) -> Dict[str, Callable[..., Any]]:
    return {
        "listDatabases": lambda **kw: list(client.list_databases(**kw)),
        "listDatabaseObjects": lambda **kw: list(client.list_databases(**kw)),
        "listDatabaseNames": lambda **kw: client.list_database_names(**kw),
    }


def _collection_ops(coll) -> Dict[str, Callable[..., Any]]:
    return {
        "find": lambda filter=None, **kw: list(coll.find(filter or {}, **kw)),
        "aggregate": lambda pipeline, **kw: list(coll.aggregate(pipeline, **kw)),
        "countDocuments": lambda filter=None, **kw: coll.count_documents(filter or {}, **kw),
        "estimatedDocumentCount": lambda **kw: coll.estimated_document_count(**kw),
        "distinct": lambda key, filter=None, **kw: coll.distinct(key, filter, **kw),
        "listIndexes": lambda **kw: list(coll.list_indexes(**kw)),
        "listIndexNames": lambda **kw: [ix["name"] for ix in coll.list_indexes(**kw)],
    }


def run_operation(client, database_name: str, collection_name: str | None, operation: Operation):
    """
    Run one fixture operation against a pymongo client.

    Cursors are exhausted so every command the operation needs is sent.

    Args:
        client: pymongo MongoClient
        database_name: Database the fixture targets
        collection_name: Collection the fixture targets
        operation: The operation to run

    Returns:
        The operation result
    """
    if operation.object == "client":
        ops = _client_ops(client)
    elif operation.object == "database":
        ops = _database_ops(client[database_name])
    elif operation.object == "collection":
        if collection_name is None:
            raise ValueError(f"{operation.name}: fixture has no collection_name")
        ops = _collection_ops(client[database_name][collection_name])
    else:
        raise ValueError(f"Unsupported operation object '{operation.object}'")

    if operation.name not in ops:
        raise ValueError(f"Unsupported operation '{operation.object}.{operation.name}'")

    logger.info(f"Running {operation.object}.{operation.name}")
    return ops[operation.name](**_kwargs(operation.arguments))
