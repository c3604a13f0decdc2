# policy_monitor/settings.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load .env early (repo .env only; deployed secrets come from the environment)
env_path = Path(__file__).resolve().parents[1] / ".env"
if env_path.exists():
    load_dotenv(env_path, override=True)


# Env var name -> key used by GoogleAdsClient.load_from_dict / secrets.json
CREDENTIAL_KEYS: Dict[str, str] = {
    "GOOGLE_ADS_CLIENT_ID": "client_id",
    "GOOGLE_ADS_CLIENT_SECRET": "client_secret",
    "GOOGLE_ADS_DEVELOPER_TOKEN": "developer_token",
    "GOOGLE_ADS_REFRESH_TOKEN": "refresh_token",
}


class CredentialsError(RuntimeError):
    """Raised at startup when one or more Google Ads credentials are missing."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(
            f"Missing required credentials: {', '.join(self.missing)}")


class Settings(BaseSettings):
    # Credentials
    GOOGLE_ADS_CLIENT_ID: str | None = None
    GOOGLE_ADS_CLIENT_SECRET: str | None = None
    GOOGLE_ADS_DEVELOPER_TOKEN: str | None = None
    GOOGLE_ADS_REFRESH_TOKEN: str | None = None
    GOOGLE_ADS_SECRETS_FILE: str | None = None

    # Accounts
    GOOGLE_ADS_CUSTOMER_ID: str | None = None
    GOOGLE_ADS_LOGIN_CUSTOMER_ID: str | None = None

    # Remediation
    CAMPAIGN_NAME_MARKER: str = "AMG"
    REMEDIATE_APPROVAL_STATUSES: str = "DISAPPROVED,APPROVED_LIMITED"
    MAX_ADS_PER_AD_GROUP: int = 3
    SCAN_LIMIT: int = 0
    HEADLINE_MAX_LENGTH: int = 30
    DESCRIPTION_MAX_LENGTH: int = 90
    REWRITE_AD_TEXT: bool = True
    DRY_RUN: bool = False

    # Pacing
    MIN_API_INTERVAL_SECONDS: float = 2.0
    QUOTA_RETRY_BACKOFF_SECONDS: float = 60.0
    STEP_DELAY_SECONDS: float = 2.0
    PAUSE_CONFIRM_DELAY_SECONDS: float = 3.0
    PAUSE_CONFIRM_ATTEMPTS: int = 3

    # Scheduling / HTTP
    MONITOR_INTERVAL_MINUTES: int = 0
    RUN_MONITORING_TIMEOUT_SECONDS: float = 240.0
    DASH_API_KEY: str | None = None

    # Rewrite service
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"

    LOG_LEVEL: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",  # ignore unrelated env vars (host/port/etc.)
    }

    @property
    def approval_statuses(self) -> frozenset[str]:
        """Approval statuses that make an ad a remediation candidate.

        APPROVED is never actionable, whatever the configuration says.
        """
        names = {
            s.strip().upper()
            for s in (self.REMEDIATE_APPROVAL_STATUSES or "").split(",")
            if s.strip()
        }
        names.discard("APPROVED")
        return frozenset(names)


def _normalize_cid(cid: str | None) -> str:
    """Strip dashes; Google accepts digits only for customer ids."""
    return (cid or "").replace("-", "").strip()


def _is_placeholder(value: str | None) -> bool:
    return not value or value.strip().upper().startswith("YOUR_")


def _read_secrets_file(path: str | None) -> Dict[str, str]:
    if not path:
        return {}
    p = Path(path).expanduser()
    if not p.exists():
        return {}
    with p.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    return {k: str(v) for k, v in data.items() if v is not None}


def resolve_credentials(cfg: Settings) -> Dict[str, str | None]:
    """Return credential values keyed by env var name.

    Environment/.env values win; the JSON secret file fills the gaps.
    """
    secrets = _read_secrets_file(cfg.GOOGLE_ADS_SECRETS_FILE)
    out: Dict[str, str | None] = {}
    for env_name, key in CREDENTIAL_KEYS.items():
        value = getattr(cfg, env_name, None)
        if _is_placeholder(value):
            value = secrets.get(key)
        out[env_name] = None if _is_placeholder(value) else value
    return out


def ensure_credentials(cfg: Settings) -> dict:
    """Return a dict with keys: ok (bool), missing (list[str]), present (dict).

    Does not raise; purely reports which credentials are absent so the health
    endpoint can surface them.
    """
    creds = resolve_credentials(cfg)
    missing = [name for name, value in creds.items() if not value]
    return {
        "ok": len(missing) == 0,
        "missing": missing,
        "present": {name: bool(value) for name, value in creds.items()},
    }


def google_ads_config(cfg: Settings) -> dict:
    """Build the google-ads config dict, raising CredentialsError on gaps."""
    check = ensure_credentials(cfg)
    if not check["ok"]:
        raise CredentialsError(check["missing"])
    creds = resolve_credentials(cfg)
    secrets = _read_secrets_file(cfg.GOOGLE_ADS_SECRETS_FILE)
    out = {key: creds[env_name] for env_name, key in CREDENTIAL_KEYS.items()}
    out["use_proto_plus"] = True
    lcid = _normalize_cid(cfg.GOOGLE_ADS_LOGIN_CUSTOMER_ID
                          or secrets.get("login_customer_id"))
    if lcid:
        out["login_customer_id"] = lcid
    return out


def customer_id(cfg: Settings) -> str:
    """Return the account to monitor (env first, then the secret file)."""
    cid = _normalize_cid(cfg.GOOGLE_ADS_CUSTOMER_ID)
    if not cid:
        cid = _normalize_cid(_read_secrets_file(
            cfg.GOOGLE_ADS_SECRETS_FILE).get("customer_id"))
    if not cid:
        raise CredentialsError(["GOOGLE_ADS_CUSTOMER_ID"])
    return cid


# single shared instance
settings = Settings()
SETTINGS = settings


def get_settings() -> Settings:
    """FastAPI dependency; overridden in tests."""
    return settings
