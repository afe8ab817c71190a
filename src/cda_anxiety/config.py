"""Runtime configuration read from environment variables."""
import json
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from cda_anxiety.db import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

REQUIRED_FIREBASE_KEYS = ("apiKey", "projectId")


@dataclass
class AppConfig:
    db_path: str = DEFAULT_DB_PATH
    firebase: Optional[dict] = None
    app_id: str = "default"
    auth_token: Optional[str] = None
    log_level: str = "WARNING"

    @property
    def remote_enabled(self) -> bool:
        return self.firebase is not None


def parse_firebase_config(raw: str | None) -> dict | None:
    """Parse a Firebase web config; any problem means local-only mode."""
    if not raw:
        return None
    try:
        config = json.loads(raw)
    except ValueError as e:
        logger.warning("Firebase config is not valid JSON, falling back to local mode: %s", e)
        return None
    if not isinstance(config, dict):
        logger.warning("Firebase config must be a JSON object, falling back to local mode")
        return None
    missing = [k for k in REQUIRED_FIREBASE_KEYS if not config.get(k)]
    if missing:
        logger.warning("Firebase config missing %s, falling back to local mode", ", ".join(missing))
        return None
    return config


def load_config(environ: Mapping[str, str] = os.environ) -> AppConfig:
    return AppConfig(
        db_path=environ.get("CDA_DB_PATH") or DEFAULT_DB_PATH,
        firebase=parse_firebase_config(environ.get("CDA_FIREBASE_CONFIG")),
        app_id=environ.get("CDA_APP_ID") or "default",
        auth_token=environ.get("CDA_AUTH_TOKEN") or None,
        log_level=(environ.get("CDA_LOG_LEVEL") or "WARNING").upper(),
    )
