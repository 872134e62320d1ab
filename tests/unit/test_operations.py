"""
Unit tests for operation dispatch.
"""

from unittest.mock import MagicMock

import pytest

from conformance.classes.types import Operation
from conformance.operations import run_operation


@pytest.fixture
def client():
    client = MagicMock()
    db = client.__getitem__.return_value
    db.list_collections.return_value = iter([{"name": "coll", "type": "collection"}])
    db.list_collection_names.return_value = ["coll"]
    coll = db.__getitem__.return_value
    coll.find.return_value = iter([{"_id": 1}, {"_id": 2}])
    coll.count_documents.return_value = 2
    coll.list_indexes.return_value = iter([{"name": "_id_"}])
    client.list_database_names.return_value = ["admin", "retryable-reads-tests"]
    return client


class TestRunOperation:

    def test_list_collection_objects(self, client):
        op = Operation("listCollectionObjects", "database")
        result = run_operation(client, "retryable-reads-tests", "coll", op)
        assert result == [{"name": "coll", "type": "collection"}]
        client.__getitem__.assert_called_with("retryable-reads-tests")
        client.__getitem__.return_value.list_collections.assert_called_once_with()

    def test_list_collection_names_with_filter(self, client):
        op = Operation("listCollectionNames", "database", {"filter": {"name": "coll"}})
        assert run_operation(client, "db", None, op) == ["coll"]
        client.__getitem__.return_value.list_collection_names.assert_called_once_with(
            filter={"name": "coll"}
        )

    def test_find_translates_arguments(self, client):
        op = Operation("find", "collection", {"filter": {"x": 1}, "batchSize": 2})
        assert run_operation(client, "db", "coll", op) == [{"_id": 1}, {"_id": 2}]
        coll = client.__getitem__.return_value.__getitem__.return_value
        coll.find.assert_called_once_with({"x": 1}, batch_size=2)

    def test_distinct_field_name(self, client):
        op = Operation("distinct", "collection", {"fieldName": "x", "filter": {}})
        run_operation(client, "db", "coll", op)
        coll = client.__getitem__.return_value.__getitem__.return_value
        coll.distinct.assert_called_once_with("x", {})

    def test_count_documents_default_filter(self, client):
        op = Operation("countDocuments", "collection")
        assert run_operation(client, "db", "coll", op) == 2

    def test_list_index_names(self, client):
        op = Operation("listIndexNames", "collection")
        assert run_operation(client, "db", "coll", op) == ["_id_"]

    def test_client_operation(self, client):
        op = Operation("listDatabaseNames", "client")
        assert run_operation(client, "db", None, op) == ["admin", "retryable-reads-tests"]

    def test_unknown_operation(self, client):
        with pytest.raises(ValueError, match="database.listGraphs"):
            run_operation(client, "db", "coll", Operation("listGraphs", "database"))

    def test_unknown_object(self, client):
        with pytest.raises(ValueError, match="gridfsbucket"):
            run_operation(client, "db", "coll", Operation("download", "gridfsbucket"))

    def test_collection_needs_collection_name(self, client):
        with pytest.raises(ValueError, match="collection_name"):
            run_operation(client, "db", None, Operation("find", "collection"))
