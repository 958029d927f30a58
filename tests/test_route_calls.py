# tests/test_route_calls.py

import json

import pytest

import route_main
from call_pipeline.call_routing import resolve_route_table, route_call_message
from call_pipeline.call_transform import transform_call_message
from call_pipeline.events import build_event
from conftest import SOURCES, make_call_record, make_pubsub_event

EXPECTED_TABLES = {
    "Teams": "uc_teams_calls",
    "Avaya": "uc_avaya_calls",
    "Zoom": "uc_zoom_calls",
    "Ringcentral": "uc_ringcentral_calls",
}


@pytest.mark.parametrize("source", SOURCES)
def test_route_handles_different_sources(source):
    record = make_call_record(source=source, call_id=f"{source}_001",
                              participants=["user1@domain.com"], recording=False)

    result, status_code = route_call_message(json.dumps(record), dry_run=True)

    assert status_code == 200
    assert result["status"] == "success"
    assert result["table"] == EXPECTED_TABLES[source]
    assert result["message"] == f"{source} call data routed to {EXPECTED_TABLES[source]}"


@pytest.mark.parametrize("source", SOURCES)
def test_live_route_stores_record_in_source_table(source, fake_bigquery):
    record = make_call_record(source=source, call_id=f"{source}_001")

    _, status_code = route_call_message(json.dumps(record), dry_run=False)

    assert status_code == 200
    table_ref = f"test-project.uc_calls_test.{EXPECTED_TABLES[source]}"
    assert table_ref in fake_bigquery.tables
    [row] = fake_bigquery.inserted[table_ref]
    assert row["call_id"] == f"{source}_001"
    assert row["source"] == source
    assert row["duration_minutes"] == 30
    assert json.loads(row["participants"]) == ["user1@domain.com", "user2@domain.com"]
    assert row["recording"] is True


def test_live_route_registers_completion(fake_bigquery, teams_call):
    route_call_message(teams_call, dry_run=False)

    query, job_config = fake_bigquery.queries[-1]
    params = {p.name: p.value for p in job_config.query_parameters}
    assert params["call_id"] == "CALL_001"
    assert params["stage"] == "route"
    assert params["status"] == "completed"
    assert params["notes"] == "Stored in uc_teams_calls"


def test_unknown_source_routes_to_catch_all_table():
    assert resolve_route_table("webex") == "uc_other_calls"
    assert resolve_route_table(None) == "uc_other_calls"

    result, status_code = route_call_message(make_call_record(source="Webex"), dry_run=True)

    assert status_code == 200
    assert result["table"] == "uc_other_calls"


def test_route_accepts_transformed_record(teams_call):
    transformed, _ = transform_call_message(teams_call, dry_run=True)
    envelope = build_event("uc.call.transformed", transformed["record"], "uc-transform")

    result, status_code = route_call_message(json.dumps(envelope), dry_run=True)

    assert status_code == 200
    assert result["call_id"] == "CALL_001"
    assert result["table"] == "uc_teams_calls"


def test_route_retries_insert_into_new_table(teams_call, fake_bigquery):
    fake_bigquery.fail_inserts = 1

    _, status_code = route_call_message(teams_call, dry_run=False)

    assert status_code == 200
    assert len(fake_bigquery.inserted["test-project.uc_calls_test.uc_teams_calls"]) == 1


def test_route_storage_failure_returns_error(teams_call, fake_bigquery):
    fake_bigquery.fail_inserts = 5

    result, status_code = route_call_message(teams_call, dry_run=False)

    assert status_code == 500
    assert result["status"] == "error"
    assert "failed after 3 attempts" in result["error"]
    params = {p.name: p.value for p in fake_bigquery.queries[-1][1].query_parameters}
    assert params["status"] == "failed"


def test_live_route_requires_project_configuration(teams_call, monkeypatch):
    monkeypatch.delenv("BIGQUERY_PROJECT_ID")
    monkeypatch.setattr("call_pipeline.call_routing.main.register_call_stage",
                        lambda *args, **kwargs: False)

    result, status_code = route_call_message(teams_call, dry_run=False)

    assert status_code == 500
    assert "BIGQUERY_PROJECT_ID" in result["error"]


def test_route_rejects_record_without_call_id():
    result, status_code = route_call_message('{"source": "Teams"}', dry_run=True)

    assert status_code == 400


def test_route_cloud_function_processes_transformed_event(monkeypatch, teams_call):
    monkeypatch.setenv("PIPELINE_DRY_RUN", "true")
    transformed, _ = transform_call_message(teams_call, dry_run=True)
    envelope = build_event("uc.call.transformed", transformed["record"], "uc-transform")

    result = route_main.main(make_pubsub_event(envelope))

    assert result["status"] == "success"
    assert result["table"] == "uc_teams_calls"


def test_route_cloud_function_ignores_ingested_events(monkeypatch, teams_call):
    monkeypatch.setenv("PIPELINE_DRY_RUN", "true")
    envelope = build_event("uc.call.ingested", teams_call, "uc-ingest")

    result = route_main.main(make_pubsub_event(envelope))

    assert result["status"] == "ignored"
