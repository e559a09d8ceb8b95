import os
import logging
from dataclasses import dataclass, field

import yaml
from dotenv import load_dotenv

# -----------------------------------------------------------------------------
# Load environment variables
# -----------------------------------------------------------------------------
load_dotenv()

DEFAULT_CONFIG_PATH = "config/config.yaml"
DEFAULT_BASE_URL = "https://api.tokenfactory.nebius.com/v1/"
DEFAULT_MODEL = "openai/gpt-oss-120b"
MAX_LIST_LIMIT = 50


def load_config(path: str | None = None) -> dict:
    """Read the YAML configuration file pointed to by CONFIG_PATH."""
    config_path = path or os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)
    try:
        with open(config_path, "r") as f:
            cfg = yaml.safe_load(f)
            if not cfg:
                raise ValueError("Config file is empty or invalid.")
            return cfg
    except FileNotFoundError:
        logging.error(f"❌ Config not found at {config_path}")
        raise SystemExit(f"Config not found: {config_path}")
    except yaml.YAMLError as e:
        logging.error(f"❌ Error parsing {config_path}: {e}")
        raise SystemExit(f"Error parsing config: {e}")
    except Exception as e:
        logging.error(f"❌ Unexpected error loading config: {e}")
        raise SystemExit(f"Failed to load config: {e}")


@dataclass
class Settings:
    """Runtime settings: YAML for tunables, environment for secrets."""
    app_name: str = "Chatbot API"
    app_version: str = "0.1.0"

    # Session tokens
    jwt_secret: str | None = None
    token_expiry_hours: int = 24
    verify_firebase_token: bool = False
    firebase_credentials_json: str | None = None

    # Completion endpoint
    completion_base_url: str = DEFAULT_BASE_URL
    completion_api_key: str | None = None
    completion_model: str = DEFAULT_MODEL
    completion_max_tokens: int = 2000
    completion_temperature: float = 0.3

    # Transcript store
    store_backend: str = "firestore"
    store_collection: str = "chat_histories"
    store_project: str | None = None
    retention_days: int = 30
    list_limit: int = MAX_LIST_LIMIT

    # HTTP surface
    allowed_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    port: int = 5000
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 900
    rate_limit_max_clients: int = 10000

    logging: dict = field(default_factory=dict)

    @classmethod
    def from_config(cls, cfg: dict | None = None) -> "Settings":
        cfg = cfg or {}
        app_cfg = cfg.get("app", {})
        auth_cfg = cfg.get("auth", {})
        completion_cfg = cfg.get("completion", {})
        store_cfg = cfg.get("store", {})
        rate_cfg = cfg.get("security", {}).get("rate_limit", {})

        return cls(
            app_name=app_cfg.get("name", cls.app_name),
            app_version=app_cfg.get("version", cls.app_version),
            jwt_secret=os.getenv("JWT_SECRET"),
            token_expiry_hours=int(auth_cfg.get("token_expiry_hours", 24)),
            verify_firebase_token=bool(auth_cfg.get("verify_firebase_token", False)),
            firebase_credentials_json=os.getenv("FIREBASE_CREDENTIALS_JSON"),
            completion_base_url=os.getenv(
                "COMPLETION_BASE_URL", completion_cfg.get("base_url", DEFAULT_BASE_URL)
            ),
            completion_api_key=os.getenv("NEBIUS_API_KEY"),
            completion_model=completion_cfg.get("model", DEFAULT_MODEL),
            completion_max_tokens=int(completion_cfg.get("max_tokens", 2000)),
            completion_temperature=float(completion_cfg.get("temperature", 0.3)),
            store_backend=store_cfg.get("backend", "firestore"),
            store_collection=store_cfg.get("collection", "chat_histories"),
            store_project=os.getenv("GOOGLE_CLOUD_PROJECT"),
            retention_days=int(store_cfg.get("retention_days", 30)),
            list_limit=min(int(store_cfg.get("list_limit", MAX_LIST_LIMIT)), MAX_LIST_LIMIT),
            allowed_origins=os.getenv("FRONTEND_URL", "http://localhost:3000").split(","),
            port=int(os.getenv("PORT", "5000")),
            rate_limit_max_requests=int(rate_cfg.get("max_requests", 100)),
            rate_limit_window_seconds=int(rate_cfg.get("window_seconds", 900)),
            rate_limit_max_clients=int(rate_cfg.get("max_clients", 10000)),
            logging=cfg.get("logging", {}),
        )
