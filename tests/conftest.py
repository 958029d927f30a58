# ===============================================================================
# tests/conftest.py
# Shared fixtures: local-mode environment, sample call records, fake GCP clients
# ===============================================================================

import base64
import json

import pytest
from cloudevents.http import CloudEvent
from flask import Request
from google.api_core.exceptions import NotFound
from google.cloud import bigquery
from werkzeug.test import EnvironBuilder

PROJECT_ID = "test-project"
DATASET_ID = "uc_calls_test"

SOURCES = ["Teams", "Avaya", "Zoom", "Ringcentral"]


@pytest.fixture(autouse=True)
def local_env(monkeypatch):
    """Run every test in local mode with a known project and dataset"""
    for var in ["K_SERVICE", "FUNCTION_NAME", "GAE_ENV", "GOOGLE_CLOUD_PROJECT", "ENVIRONMENT",
                "LOG_LEVEL", "INGEST_FUNCTION_KEY", "PIPELINE_DRY_RUN", "DEFAULT_INGEST_SOURCE",
                "SERVICE_ACCOUNT"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("LOCAL_DEV", "1")
    monkeypatch.setenv("BIGQUERY_PROJECT_ID", PROJECT_ID)
    monkeypatch.setenv("BIGQUERY_DATASET_ID", DATASET_ID)


def make_call_record(source="Teams", call_id="CALL_001", **overrides):
    record = {
        "source": source,
        "callId": call_id,
        "startTime": "2023-10-01T10:00:00Z",
        "endTime": "2023-10-01T10:30:00Z",
        "participants": ["user1@domain.com", "user2@domain.com"],
        "recording": True,
    }
    record.update(overrides)
    return record


@pytest.fixture
def teams_call():
    return make_call_record()


@pytest.fixture
def teams_call_json(teams_call):
    return json.dumps(teams_call)


def make_http_request(body, headers=None, query_string=None):
    """Build a Flask request the way the Cloud Functions runtime hands it over"""
    if not isinstance(body, (str, bytes)):
        body = json.dumps(body)
    builder = EnvironBuilder(
        method="POST",
        path="/",
        data=body,
        content_type="application/json",
        headers=headers or {},
        query_string=query_string,
    )
    return Request(builder.get_environ())


def make_pubsub_event(message):
    """Wrap a message in a Pub/Sub CloudEvent as delivered to 2nd gen functions"""
    encoded = base64.b64encode(json.dumps(message).encode("utf-8")).decode("ascii")
    attributes = {
        "type": "google.cloud.pubsub.topic.v1.messagePublished",
        "source": f"//pubsub.googleapis.com/projects/{PROJECT_ID}/topics/uc-calls-dev",
    }
    return CloudEvent(attributes, {"message": {"data": encoded, "messageId": "1"}})


class FakeQueryJob:
    def result(self):
        return []


class FakeBigQueryClient:
    """In-memory stand-in for bigquery.Client recording every call"""

    def __init__(self, project=None, fail_inserts=0):
        self.project = project
        self.tables = {}
        self.inserted = {}
        self.queries = []
        self.fail_inserts = fail_inserts

    def get_table(self, table_ref):
        if table_ref not in self.tables:
            raise NotFound(f"Table {table_ref} not found")
        return self.tables[table_ref]

    def create_table(self, table):
        ref = f"{table.project}.{table.dataset_id}.{table.table_id}"
        self.tables[ref] = table
        return table

    def insert_rows_json(self, table_ref, rows):
        if self.fail_inserts:
            self.fail_inserts -= 1
            raise NotFound(f"Table {table_ref} not found")
        self.inserted.setdefault(table_ref, []).extend(rows)
        return []

    def query(self, query, job_config=None):
        self.queries.append((query, job_config))
        return FakeQueryJob()


@pytest.fixture
def fake_bigquery(monkeypatch):
    client = FakeBigQueryClient(project=PROJECT_ID)
    monkeypatch.setattr(bigquery, "Client", lambda project=None: client)
    monkeypatch.setattr("call_pipeline.bigquery_utils.time.sleep", lambda seconds: None)
    return client


class FakeFuture:
    def __init__(self, message_id):
        self.message_id = message_id

    def result(self):
        return self.message_id


class FakePublisher:
    """Records published Pub/Sub messages"""

    def __init__(self, error=None):
        self.published = []
        self.error = error

    def topic_path(self, project, topic):
        return f"projects/{project}/topics/{topic}"

    def publish(self, topic_path, data):
        if self.error:
            raise self.error
        self.published.append((topic_path, json.loads(data.decode("utf-8"))))
        return FakeFuture(f"msg-{len(self.published)}")


@pytest.fixture
def fake_publisher(monkeypatch):
    """Pretend to run in GCP and capture Pub/Sub publishing"""
    publisher = FakePublisher()
    monkeypatch.setattr("call_pipeline.events.is_running_in_gcp", lambda: True)
    monkeypatch.setattr("call_pipeline.events._get_pubsub_client", lambda: publisher)
    return publisher
