"""
Runtime configuration for the onboarding engine.

Values come from the environment (optionally a project-level .env file).
Compliance policy data is not configured here; see rules/policy.py.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(PROJECT_ROOT / ".env")

PACKAGE_DIR = Path(__file__).parent
DEFAULT_POLICY_PATH = PACKAGE_DIR / "data" / "compliance_policy.yaml"

# Client-local marker read by route gating only; never trusted by the engine
KYC_COOKIE_NAME = os.getenv("EXPOSURE_KYC_COOKIE", "exposure_kyc_status")
KYC_COOKIE_MAX_AGE = 7 * 24 * 60 * 60


@dataclass
class APIConfig:
    """Configuration for the platform API connection."""
    base_url: str = os.getenv("EXPOSURE_API_URL", "http://localhost:3000/api")
    timeout: float = float(os.getenv("EXPOSURE_API_TIMEOUT", "30"))
    max_retries: int = int(os.getenv("EXPOSURE_API_MAX_RETRIES", "3"))
    backoff_base: float = float(os.getenv("EXPOSURE_API_BACKOFF", "1"))


@dataclass
class SignInConfig:
    """Fields bound into the sign-in message besides address and nonce."""
    domain: str = os.getenv("EXPOSURE_DOMAIN", "localhost:3000")
    uri: str = os.getenv("EXPOSURE_ORIGIN", "http://localhost:3000")
    statement: str = os.getenv("EXPOSURE_SIGN_IN_STATEMENT", "Sign in to Exposure")
    version: str = "1"


def get_policy_path() -> Path:
    """Policy file location, overridable with EXPOSURE_POLICY_PATH."""
    override = os.getenv("EXPOSURE_POLICY_PATH")
    return Path(override) if override else DEFAULT_POLICY_PATH
