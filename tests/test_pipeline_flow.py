# tests/test_pipeline_flow.py
# End-to-end flow: HTTP ingest -> transform -> route

import json

import pytest

import ingest_main
import route_main
import transform_main
from conftest import SOURCES, make_call_record, make_http_request, make_pubsub_event


def test_pipeline_flow_processes_data_end_to_end_when_valid_input_provided(teams_call_json, monkeypatch):
    monkeypatch.setenv("PIPELINE_DRY_RUN", "true")

    ingest_result, ingest_status = ingest_main.main(make_http_request(teams_call_json))
    assert ingest_status == 200
    assert ingest_result["status"] == "success"

    transform_result = transform_main.main(make_pubsub_event(json.loads(teams_call_json)))
    assert transform_result["status"] == "success"

    route_result = route_main.main(make_pubsub_event(json.loads(teams_call_json)))
    assert route_result["status"] == "success"


@pytest.mark.parametrize("source", SOURCES)
def test_pipeline_flow_handles_different_sources_correctly(source, monkeypatch):
    monkeypatch.setenv("PIPELINE_DRY_RUN", "true")
    record = make_call_record(source=source, call_id=f"{source}_001",
                              participants=["user1@domain.com"], recording=False)

    result = route_main.main(make_pubsub_event(record))

    assert result["status"] == "success"
    assert result["source"] == source


def test_pipeline_flow_chains_published_events(teams_call, fake_publisher, fake_bigquery):
    """Each stage consumes exactly what the previous stage published"""
    _, ingest_status = ingest_main.main(make_http_request(teams_call))
    assert ingest_status == 200

    _, ingested_event = fake_publisher.published[0]
    transform_result = transform_main.main(make_pubsub_event(ingested_event))
    assert transform_result["status"] == "success"

    _, transformed_event = fake_publisher.published[1]
    assert transformed_event["type"] == "uc.call.transformed"
    route_result = route_main.main(make_pubsub_event(transformed_event))
    assert route_result["status"] == "success"

    [row] = fake_bigquery.inserted["test-project.uc_calls_test.uc_teams_calls"]
    assert row["call_id"] == "CALL_001"
    assert row["duration_minutes"] == 30
    assert row["ingested_at"] is not None

    stages = [
        {p.name: p.value for p in job_config.query_parameters}["stage"]
        for _, job_config in fake_bigquery.queries
    ]
    assert stages == ["ingest", "transform", "route"]
