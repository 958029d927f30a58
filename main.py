# main.py - local runner for the call pipeline stages

import sys
import json
import argparse
import logging
from flask import Request
from werkzeug.test import EnvironBuilder

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s]: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    force=True  # Override any existing configuration
)

from ingest_main import main as ingest_cloud_main
from call_pipeline.config import init_env, get_config
from call_pipeline.call_ingest import ingest_call_record
from call_pipeline.call_transform import transform_call_message
from call_pipeline.call_routing import route_call_message

SAMPLE_CALL_RECORD = {
    "source": "Teams",
    "callId": "LOCAL_CALL_001",
    "startTime": "2023-10-01T10:00:00Z",
    "endTime": "2023-10-01T10:30:00Z",
    "participants": ["user1@domain.com", "user2@domain.com"],
    "recording": True
}


def load_record(path, source=None):
    """Load a call record from a JSON file, or use the sample record"""
    if path:
        with open(path, encoding="utf8") as f:
            record = json.load(f)
    else:
        record = dict(SAMPLE_CALL_RECORD)

    if source:
        record['source'] = source
    return record


def show_environment(config, live):
    print("\n" + "=" * 80)
    print("🌍 CURRENT ENVIRONMENT")
    print("=" * 80)
    print(f"Environment: {config['ENVIRONMENT']}")
    print(f"Project: {config['BIGQUERY_PROJECT_ID']}")
    print(f"Dataset: {config['BIGQUERY_DATASET_ID']}")
    print(f"Mode: {'🔥 LIVE' if live else '🧪 DRY RUN'}")

    if live and config['ENVIRONMENT'] == 'production':
        print("\n" + "🚨" * 20)
        print("⚠️  WARNING: YOU ARE IN PRODUCTION ENVIRONMENT!")
        print("🚨" * 20)
    elif live and config['ENVIRONMENT'] == 'staging':
        print("\n🔶 CAUTION: You are in STAGING environment")

    print("=" * 80)


def confirm_live_run(config):
    """Ask for confirmation before writing outside development"""
    if config['ENVIRONMENT'] == 'development':
        return True

    confirm = input(f"\nType '{config['ENVIRONMENT'].upper()}' to run live: ").strip()
    if confirm != config['ENVIRONMENT'].upper():
        print("❌ Action cancelled - incorrect confirmation")
        return False
    return True


def run_ingest(record, dry_run):
    """Simulate the HTTP trigger of the ingest Cloud Function (live runs only)"""
    if dry_run:
        return ingest_call_record(record, dry_run=True)

    builder = EnvironBuilder(
        method="POST",
        path="/",
        data=json.dumps(record),
        content_type="application/json",
        query_string={"source": record.get('source') or ''}
    )
    return ingest_cloud_main(Request(builder.get_environ()))


def run_flow(record, dry_run):
    """Run ingest, transform and route in sequence on one record"""
    result, status_code = ingest_call_record(record, dry_run=dry_run)
    print(f"📥 Ingest [{status_code}]: {result.get('message') or result.get('error')}")
    if status_code != 200:
        return result, status_code

    ingested = dict(record, callId=result['call_id'], source=result['source'])
    result, status_code = transform_call_message(ingested, dry_run=dry_run)
    print(f"⚙️ Transform [{status_code}]: {result.get('message') or result.get('error')}")
    if status_code != 200:
        return result, status_code

    result, status_code = route_call_message(result['record'], dry_run=dry_run)
    print(f"🧭 Route [{status_code}]: {result.get('message') or result.get('error')}")
    return result, status_code


def main():
    parser = argparse.ArgumentParser(description="Run call pipeline stages locally")
    parser.add_argument("mode", choices=["ingest", "transform", "route", "flow"],
                        help="Pipeline stage to run, or 'flow' for all three")
    parser.add_argument("--file", help="JSON file with a call record (defaults to a sample Teams call)")
    parser.add_argument("--source", help="Override the record's source system")
    parser.add_argument("--live", action="store_true",
                        help="Publish events and write to BigQuery (default is dry run)")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARN or ERROR")
    args = parser.parse_args()

    init_env(log_level=args.log_level)
    config = get_config()
    dry_run = not args.live

    show_environment(config, args.live)
    if args.live and not confirm_live_run(config):
        return 1

    try:
        record = load_record(args.file, args.source)
    except (OSError, ValueError) as e:
        print(f"❌ Could not load call record: {e}")
        return 1

    print(f"\n🚀 Running {args.mode} for call {record.get('callId')}")
    print("-" * 50)

    if args.mode == "ingest":
        result, status_code = run_ingest(record, dry_run)
    elif args.mode == "transform":
        result, status_code = transform_call_message(record, dry_run=dry_run)
    elif args.mode == "route":
        result, status_code = route_call_message(record, dry_run=dry_run)
    else:
        result, status_code = run_flow(record, dry_run)

    print("-" * 50)
    if status_code == 200:
        print(f"✅ {args.mode} completed successfully")
    else:
        print(f"❌ {args.mode} failed with status {status_code}")
    print(json.dumps(result, indent=2, default=str))

    return 0 if status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
