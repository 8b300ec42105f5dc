from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError
from pymongo.errors import ConnectionFailure, PyMongoError
from tenacity import wait_none

from intent_engine.domain.models.intent import Intent, TrainingExample
from intent_engine.domain.schemas.model_record import ModelRecord
from intent_engine.infrastructure.database.mongodb import client as client_module
from intent_engine.infrastructure.database.mongodb.client import MongoDBClient
from intent_engine.infrastructure.repositories.file_model_store import FileModelStore
from intent_engine.infrastructure.repositories.memory import (
    InMemoryEventLog,
    InMemoryModelStore,
    InMemoryTrainingDataRepository,
)
from intent_engine.infrastructure.repositories.mongo import (
    MongoEventLog,
    MongoModelStore,
    MongoTrainingDataRepository,
)
from intent_engine.utils.exceptions import (
    DatabaseConnectionError,
    ModelPersistenceError,
    NotFoundException,
    RepositoryError,
)


def make_record(**overrides):
    data = {
        "weights": [[0.1, -0.2], [0.3, 0.4]],
        "biases": [0.01, -0.01],
        "vocabulary": {"protein": 0, "bmi": 1},
        "vocabulary_version": "abc123",
        "intent_index": {"protein_question": 0, "bmi_calculation": 1},
        "index_intent": {0: "protein_question", 1: "bmi_calculation"},
    }
    data.update(overrides)
    return ModelRecord(**data)


class TestModelRecord:
    def test_parameter_count(self):
        assert make_record().parameter_count == 6

    def test_rejects_unknown_format_version(self):
        with pytest.raises(ValidationError):
            make_record(format_version=2)

    def test_rejects_mismatched_shapes(self):
        with pytest.raises(ValidationError):
            make_record(weights=[[0.1, 0.2]])
        with pytest.raises(ValidationError):
            make_record(weights=[[0.1], [0.2]])

    def test_rejects_inconsistent_mappings(self):
        with pytest.raises(ValidationError):
            make_record(index_intent={0: "bmi_calculation", 1: "protein_question"})

    def test_rejects_indices_outside_outputs(self):
        with pytest.raises(ValidationError):
            ModelRecord(
                weights=[[0.1]],
                biases=[0.0],
                vocabulary={"protein": 0},
                vocabulary_version="abc123",
                intent_index={"protein_question": 5},
                index_intent={5: "protein_question"},
            )

    def test_created_at_is_utc(self):
        assert make_record().created_at.tzinfo == timezone.utc

    def test_json_dump_validates_back(self):
        record = make_record()
        assert ModelRecord.model_validate(record.model_dump(mode="json")) == record


class TestInMemoryTrainingDataRepository:
    def test_inactive_intents_and_examples_are_hidden(self):
        repository = InMemoryTrainingDataRepository([
            Intent(id="a", name="A", examples=[
                TrainingExample(intent_id="a", text="one"),
                TrainingExample(intent_id="a", text="two", is_active=False),
            ]),
            Intent(id="b", name="B", is_active=False, examples=[TrainingExample(intent_id="b", text="three")]),
        ])

        intents = repository.get_active_intents()
        assert [intent.id for intent in intents] == ["a"]
        assert [example.text for example in intents[0].examples] == ["one"]
        assert repository.count_active_examples() == 1
        assert repository.count_active_intents() == 1

    def test_count_created_after(self):
        repository = InMemoryTrainingDataRepository.from_dict({"a": []})
        cutoff = datetime(2024, 1, 1, tzinfo=timezone.utc)
        repository.add_example(TrainingExample(intent_id="a", text="old", created_at=cutoff))
        repository.add_example(TrainingExample(intent_id="a", text="new", created_at=cutoff + timedelta(seconds=1)))

        assert repository.count_active_examples(created_after=cutoff) == 1

    def test_add_example_to_unknown_intent(self):
        with pytest.raises(NotFoundException):
            InMemoryTrainingDataRepository().add_example(TrainingExample(intent_id="missing", text="hello"))


class TestInMemoryStores:
    def test_model_store_returns_latest_copy(self):
        store = InMemoryModelStore()
        assert store.load_latest() is None

        store.save(make_record(vocabulary_version="first"))
        store.save(make_record(vocabulary_version="second"))

        latest = store.load_latest()
        assert latest.vocabulary_version == "second"
        latest.biases[0] = 99.0
        assert store.load_latest().biases[0] == 0.01

    def test_event_log_newest_first(self):
        log = InMemoryEventLog()
        for i in range(3):
            log.log_event("prediction", {"n": i})
        log.log_event("training_completed", {})

        assert [event.metadata["n"] for event in log.list_events("prediction", limit=2)] == [2, 1]
        assert log.get_latest("prediction").metadata["n"] == 2
        assert log.get_latest("unknown") is None


class TestFileModelStore:
    def test_missing_file(self, tmp_path):
        assert FileModelStore(str(tmp_path / "absent.joblib")).load_latest() is None

    def test_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "model.joblib"
        store = FileModelStore(str(path))
        record = make_record()

        store.save(record)

        assert path.exists()
        assert [p.name for p in path.parent.iterdir()] == ["model.joblib"]
        assert store.load_latest() == record

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "model.joblib"
        path.write_bytes(b"not a model")
        with pytest.raises(ModelPersistenceError):
            FileModelStore(str(path)).load_latest()


@pytest.fixture
def collections():
    return {}


@pytest.fixture
def db_client(collections):
    client = MagicMock(spec=MongoDBClient)
    client.get_collection.side_effect = lambda name: collections.setdefault(name, MagicMock(name=name))
    return client


class TestMongoTrainingDataRepository:
    def test_get_active_intents_groups_examples(self, db_client, collections):
        created = datetime(2024, 1, 1)
        repository = MongoTrainingDataRepository(db_client, ensure_indexes=False)
        intents = db_client.get_collection("training_intents")
        examples = db_client.get_collection("training_examples")
        intents.find.return_value.sort.return_value = [
            {"intent_id": "greeting", "name": "Greeting", "is_active": True},
            {"intent_id": "protein_question", "name": "Protein", "is_active": True},
        ]
        examples.find.return_value.sort.return_value = [
            {"example_id": "e1", "intent_id": "protein_question", "text": "protein", "created_at": created},
            {"example_id": "e2", "intent_id": "greeting", "text": "hello", "created_at": created},
        ]

        result = repository.get_active_intents()

        assert [intent.id for intent in result] == ["greeting", "protein_question"]
        assert [example.text for example in result[0].examples] == ["hello"]
        assert result[1].examples[0].id == "e1"
        query = examples.find.call_args[0][0]
        assert query == {"intent_id": {"$in": ["greeting", "protein_question"]}, "is_active": True}

    def test_driver_errors_become_repository_errors(self, db_client):
        repository = MongoTrainingDataRepository(db_client, ensure_indexes=False)
        db_client.get_collection("training_intents").find.side_effect = PyMongoError("down")
        with pytest.raises(RepositoryError):
            repository.get_active_intents()

    def test_add_example_requires_intent(self, db_client):
        repository = MongoTrainingDataRepository(db_client, ensure_indexes=False)
        db_client.get_collection("training_intents").find_one.return_value = None
        with pytest.raises(NotFoundException):
            repository.add_example(TrainingExample(intent_id="missing", text="hello"))

    def test_add_example_inserts_document(self, db_client):
        repository = MongoTrainingDataRepository(db_client, ensure_indexes=False)
        db_client.get_collection("training_intents").find_one.return_value = {"intent_id": "greeting", "name": "Greeting"}
        example = TrainingExample(intent_id="greeting", text="hello there", keywords=["hello", "there"])

        repository.add_example(example)

        document = db_client.get_collection("training_examples").insert_one.call_args[0][0]
        assert document["example_id"] == example.id
        assert document["keywords"] == ["hello", "there"]

    def test_indexes_created_on_init(self, db_client):
        MongoTrainingDataRepository(db_client)
        names = [call[0][0] for call in db_client.create_indexes.call_args_list]
        assert names == ["training_intents", "training_examples"]


class TestMongoStores:
    def test_event_log(self, db_client):
        log = MongoEventLog(db_client)
        created = datetime(2024, 5, 1)
        collection = db_client.get_collection("neural_network_logs")

        log.log_event("prediction", {"intent_id": "greeting"})
        assert collection.insert_one.call_args[0][0]["event_type"] == "prediction"

        collection.find_one.return_value = {"event_type": "training_completed", "metadata": {"accuracy": 0.9}, "created_at": created}
        latest = log.get_latest("training_completed")
        assert latest.created_at == created
        assert latest.metadata == {"accuracy": 0.9}

        collection.find.return_value.sort.return_value.limit.return_value = [
            {"event_type": "prediction", "metadata": {}, "created_at": created},
        ]
        assert len(log.list_events("prediction", limit=5)) == 1
        collection.find.return_value.sort.return_value.limit.assert_called_with(5)

    def test_model_store_round_trip(self, db_client):
        store = MongoModelStore(db_client)
        collection = db_client.get_collection("model_records")
        record = make_record()

        store.save(record)
        document = dict(collection.insert_one.call_args[0][0], _id="object-id")
        collection.find_one.return_value = document

        assert store.load_latest() == record

    def test_model_store_write_failure(self, db_client):
        db_client.get_collection("model_records").insert_one.side_effect = PyMongoError("down")
        with pytest.raises(ModelPersistenceError):
            MongoModelStore(db_client).save(make_record())

    def test_model_store_empty(self, db_client):
        db_client.get_collection("model_records").find_one.return_value = None
        assert MongoModelStore(db_client).load_latest() is None


class TestMongoDBClient:
    def test_uses_injected_client(self):
        pymongo_client = MagicMock()
        client = MongoDBClient(database_name="nutrition", client=pymongo_client)

        client.get_collection("training_intents")
        pymongo_client.__getitem__.assert_called_with("nutrition")

        client.close()
        pymongo_client.close.assert_called_once()

    def test_create_indexes(self):
        pymongo_client = MagicMock()
        collection = pymongo_client.__getitem__.return_value.__getitem__.return_value
        collection.create_index.return_value = "intent_id_unique"
        client = MongoDBClient(client=pymongo_client)

        names = client.create_indexes("training_intents", [
            {"key": {"intent_id": 1}, "name": "intent_id_unique", "unique": True},
        ])

        assert names == ["intent_id_unique"]
        collection.create_index.assert_called_once_with([("intent_id", 1)], name="intent_id_unique", unique=True)

    def test_connect_retries_transient_failures(self, monkeypatch):
        attempts = []
        connected = MagicMock()

        def fake_client(uri, **options):
            attempts.append(uri)
            if len(attempts) < 3:
                raise ConnectionFailure("not yet")
            return connected

        monkeypatch.setattr(client_module, "MongoClient", fake_client)
        monkeypatch.setattr(MongoDBClient._open_client.retry, "wait", wait_none())

        client = MongoDBClient(connection_uri="mongodb://db:27017")
        assert client.get_connection() is connected
        assert len(attempts) == 3
        connected.admin.command.assert_called_with("ping")

    def test_connect_gives_up(self, monkeypatch):
        def fake_client(uri, **options):
            raise ConnectionFailure("refused")

        monkeypatch.setattr(client_module, "MongoClient", fake_client)
        monkeypatch.setattr(MongoDBClient._open_client.retry, "wait", wait_none())

        client = MongoDBClient()
        with pytest.raises(DatabaseConnectionError):
            client.get_connection()
        assert client.stats["last_connection_error"]["error"] == "refused"

    def test_requests_timezone_aware_datetimes(self):
        assert MongoDBClient().connection_options["tz_aware"] is True

    def test_ping(self):
        pymongo_client = MagicMock()
        client = MongoDBClient(client=pymongo_client)

        assert client.ping() is True
        pymongo_client.admin.command.assert_called_with("ping")

        pymongo_client.admin.command.side_effect = PyMongoError("unreachable")
        with pytest.raises(DatabaseConnectionError):
            client.ping()
