# src/call_pipeline/config.py

import os
import logging
import requests
from typing import Dict, List, Optional
from dotenv import load_dotenv
from google.cloud import secretmanager
from google.api_core.exceptions import NotFound

# ─── BigQuery Table Names (static constants) ────────────────────────────────────────
BQ_TEAMS_CALLS_TABLE        = "uc_teams_calls"
BQ_AVAYA_CALLS_TABLE        = "uc_avaya_calls"
BQ_ZOOM_CALLS_TABLE         = "uc_zoom_calls"
BQ_RINGCENTRAL_CALLS_TABLE  = "uc_ringcentral_calls"
BQ_OTHER_CALLS_TABLE        = "uc_other_calls"
BQ_CALL_REGISTRY_TABLE      = "uc_call_registry"

# ─── Source Systems ─────────────────────────────────────────────────────────────────
# source_key -> canonical display name
KNOWN_SOURCES: Dict[str, str] = {
    "teams":       "Teams",
    "avaya":       "Avaya",
    "zoom":        "Zoom",
    "ringcentral": "Ringcentral",
}

# source_key -> destination table
ROUTE_TABLES: Dict[str, str] = {
    "teams":       BQ_TEAMS_CALLS_TABLE,
    "avaya":       BQ_AVAYA_CALLS_TABLE,
    "zoom":        BQ_ZOOM_CALLS_TABLE,
    "ringcentral": BQ_RINGCENTRAL_CALLS_TABLE,
}

DEFAULT_SOURCE = "Teams"

# ─── Pub/Sub Topics ─────────────────────────────────────────────────────────────────
TOPICS: Dict[str, Dict[str, str]] = {
    "ingested": {
        "development": "uc-calls-ingested-dev",
        "staging":     "uc-calls-ingested-staging",
        "production":  "uc-calls-ingested-prod",
    },
    "transformed": {
        "development": "uc-calls-transformed-dev",
        "staging":     "uc-calls-transformed-staging",
        "production":  "uc-calls-transformed-prod",
    },
}

INGEST_KEY_SECRET = "UC_INGEST_FUNCTION_KEY"

LOGGER_NAMES = {
    'config':    'callpipeline.config',
    'ingest':    'callpipeline.ingest',
    'transform': 'callpipeline.transform',
    'route':     'callpipeline.route',
    'events':    'callpipeline.events',
    'store':     'callpipeline.store',
    'registry':  'callpipeline.registry',
    'bigquery':  'callpipeline.bigquery',
    'normalization': 'callpipeline.normalization',
}


def get_environment() -> str:
    """Detect environment from Cloud Function name or env var"""
    function_name = os.getenv('K_SERVICE', '')  # Cloud Run service name
    if 'prod' in function_name:
        return 'production'
    elif 'staging' in function_name:
        return 'staging'
    elif 'dev' in function_name:
        return 'development'

    env = os.getenv('ENVIRONMENT', '').lower()
    if env in ['production', 'prod']:
        return 'production'
    elif env in ['staging', 'stage']:
        return 'staging'

    return 'development'


def is_running_in_gcp() -> bool:
    """Detect Google Cloud runtime (Cloud Functions 1st/2nd gen, App Engine, metadata server)"""
    logger = logging.getLogger('callpipeline.config')

    if os.getenv('K_SERVICE'):
        logger.debug("Detected Cloud Functions 2nd gen environment (K_SERVICE)")
        return True

    if os.getenv('FUNCTION_NAME'):
        logger.debug("Detected Cloud Functions 1st gen environment (FUNCTION_NAME)")
        return True

    if os.getenv('GAE_ENV'):
        logger.debug("Detected App Engine environment")
        return True

    if os.getenv('LOCAL_DEV'):
        logger.debug("LOCAL_DEV set - forcing local mode")
        return False

    if os.getenv('GOOGLE_CLOUD_PROJECT'):
        logger.debug("Detected GCP environment via GOOGLE_CLOUD_PROJECT")
        return True

    try:
        response = requests.get(
            "http://metadata.google.internal/computeMetadata/v1/instance/zone",
            headers={"Metadata-Flavor": "Google"},
            timeout=1
        )
        return response.status_code == 200
    except requests.RequestException as e:
        logger.debug(f"Metadata server check failed: {e}")
        return False


def get_default_dataset(env: str) -> str:
    """Get default dataset name based on environment"""
    datasets = {
        'development': 'uc_calls_dev',
        'staging': 'uc_calls_staging',
        'production': 'uc_calls_prod'
    }
    return datasets.get(env, 'uc_calls_dev')


def get_project_id() -> str:
    """Get project ID from environment or, in GCP, from the metadata server"""
    logger = logging.getLogger('callpipeline.config')

    project_id = os.getenv("BIGQUERY_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT")
    if project_id:
        logger.debug(f"Using project ID from environment: {project_id}")
        return project_id

    if is_running_in_gcp():
        try:
            response = requests.get(
                "http://metadata.google.internal/computeMetadata/v1/project/project-id",
                headers={"Metadata-Flavor": "Google"},
                timeout=2
            )
            response.raise_for_status()
            project_id = response.text
            logger.debug(f"Retrieved project ID from metadata: {project_id}")
            return project_id
        except requests.RequestException as e:
            logger.error(f"Failed to get project ID from metadata: {e}")
            raise RuntimeError("Failed to determine project ID from metadata server") from e

    logger.error("No project ID found in environment variables")
    raise RuntimeError("GOOGLE_CLOUD_PROJECT or BIGQUERY_PROJECT_ID must be set for local development")


def setup_logging(log_level: Optional[str] = None) -> Dict[str, logging.Logger]:
    """
    Configure logging based on environment and optional override

    Args:
        log_level (str, optional): Override log level ('DEBUG', 'INFO', 'WARN', 'ERROR')

    Returns:
        dict: component name -> logger
    """
    env = get_environment()
    default_levels = {
        'development': 'DEBUG',
        'staging': 'INFO',
        'production': 'WARN'
    }

    final_level = (
        log_level or                           # Request override
        os.getenv('LOG_LEVEL') or             # Environment variable
        default_levels.get(env, 'INFO')       # Environment default
    ).upper()

    level = getattr(logging, final_level, None)
    if not isinstance(level, int):
        level = logging.INFO
        final_level = 'INFO'

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True  # Override any existing configuration
    )

    loggers = {key: logging.getLogger(name) for key, name in LOGGER_NAMES.items()}

    config_logger = loggers['config']
    config_logger.info(f"Logging configured - Environment: {env}, Level: {final_level}")

    if final_level == 'DEBUG':
        config_logger.debug(f"Available loggers: {list(loggers.keys())}")

    return loggers


def load_ingest_function_key(project_id: str) -> Optional[str]:
    """
    Load the ingest function key from Secret Manager.

    Returns None when the secret does not exist, which disables ingest authentication.
    """
    logger = logging.getLogger('callpipeline.config')

    client = secretmanager.SecretManagerServiceClient()
    name = f"projects/{project_id}/secrets/{INGEST_KEY_SECRET}/versions/latest"

    logger.debug(f"Retrieving secret: {name}")
    try:
        response = client.access_secret_version(request={"name": name})
    except NotFound:
        logger.warning(f"⚠️ {INGEST_KEY_SECRET} not found in Secret Manager - ingest authentication disabled")
        return None

    secret_value = response.payload.data.decode("UTF-8").strip()
    logger.info(f"{INGEST_KEY_SECRET} loaded from Secret Manager")
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"{INGEST_KEY_SECRET} (first 6 chars): {secret_value[:6]}...")
    return secret_value or None


def init_env(log_level: Optional[str] = None) -> Dict[str, logging.Logger]:
    """
    Initialize environment variables from appropriate source

    Args:
        log_level (str, optional): Override log level for this session

    Returns:
        dict: component loggers from setup_logging()
    """
    loggers = setup_logging(log_level)
    logger = loggers['config']

    # Always load .env first (no-op in GCP, helpful for local dev)
    load_dotenv()
    logger.debug("Loaded .env file (if present)")

    env = get_environment()
    is_gcp = is_running_in_gcp()

    logger.info(f"Initializing environment - Running in: {'GCP' if is_gcp else 'Local'}, Environment: {env}")

    if is_gcp:
        project_id = get_project_id()
        logger.info(f"Running in GCP, project: {project_id}")
        os.environ["BIGQUERY_PROJECT_ID"] = project_id

        if not os.getenv("INGEST_FUNCTION_KEY"):
            try:
                function_key = load_ingest_function_key(project_id)
            except Exception as e:
                logger.error(f"Failed to load secrets from Secret Manager: {e}")
                raise
            if function_key:
                os.environ["INGEST_FUNCTION_KEY"] = function_key
    else:
        logger.info("Running locally")
        if not os.getenv("BIGQUERY_PROJECT_ID"):
            logger.warning("⚠️ BIGQUERY_PROJECT_ID not set - live routing will fail configuration validation")

    if not os.getenv("BIGQUERY_DATASET_ID"):
        default_dataset = get_default_dataset(env)
        os.environ["BIGQUERY_DATASET_ID"] = default_dataset
        logger.info(f"Using default dataset: {default_dataset}")
    else:
        logger.debug(f"Using configured dataset: {os.getenv('BIGQUERY_DATASET_ID')}")

    logger.info("Environment initialization completed successfully")
    return loggers


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def get_config() -> Dict:
    """Get configuration dictionary after init_env() has been called"""
    return {
        'BIGQUERY_PROJECT_ID': os.getenv('BIGQUERY_PROJECT_ID') or os.getenv('GOOGLE_CLOUD_PROJECT'),
        'BIGQUERY_DATASET_ID': os.getenv('BIGQUERY_DATASET_ID'),
        'GOOGLE_APPLICATION_CREDENTIALS': os.getenv('GOOGLE_APPLICATION_CREDENTIALS'),
        'DEFAULT_INGEST_SOURCE': os.getenv('DEFAULT_INGEST_SOURCE') or DEFAULT_SOURCE,
        'INGEST_FUNCTION_KEY': os.getenv('INGEST_FUNCTION_KEY'),
        'DRY_RUN': _env_flag('PIPELINE_DRY_RUN'),
        'FUNCTION_NAME': os.getenv('K_SERVICE') or os.getenv('FUNCTION_NAME') or 'unknown',
        'SERVICE_ACCOUNT': os.getenv('SERVICE_ACCOUNT'),
        'IS_GCP': is_running_in_gcp(),
        'ENVIRONMENT': get_environment(),
    }


def validate_config(required: Optional[List[str]] = None) -> Dict:
    """Validate that all required configuration is available"""
    logger = logging.getLogger('callpipeline.config')
    config = get_config()
    if required is None:
        required = ['BIGQUERY_PROJECT_ID', 'BIGQUERY_DATASET_ID']
    missing = [key for key in required if not config.get(key)]

    if missing:
        logger.error(f"Configuration validation failed. Missing: {missing}")
        raise RuntimeError(f"Configuration validation failed. Missing: {missing}")

    logger.info("Configuration validation passed")
    if logger.isEnabledFor(logging.DEBUG):
        safe_config = {k: v for k, v in config.items() if k != 'INGEST_FUNCTION_KEY'}
        key = config.get('INGEST_FUNCTION_KEY')
        safe_config['INGEST_FUNCTION_KEY'] = f"{key[:6]}..." if key else 'None'
        logger.debug(f"Validated configuration: {safe_config}")

    return config
