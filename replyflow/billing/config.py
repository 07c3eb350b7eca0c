"""
Billing configuration loaded from environment variables.

Required:
    ASAAS_API_KEY, ASAAS_WEBHOOK_TOKEN, ASAAS_SUCCESS_URL, ASAAS_CANCEL_URL,
    BILLING_RECONCILE_TOKEN (at least 16 characters)

Optional:
    BILLING_PROVIDER (asaas), ASAAS_ENV (sandbox | production),
    ASAAS_BASE_URL, ASAAS_CHECKOUT_BASE_URL,
    PLAN_PRO_MONTHLY_BRL_CENTS (3900), BILLING_GRACE_DAYS (3, 0..14)
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

BASE_URL_BY_ENV = {
    "sandbox": "https://api-sandbox.asaas.com/v3",
    "production": "https://api.asaas.com/v3",
}

CHECKOUT_BASE_URL_BY_ENV = {
    "sandbox": "https://sandbox.asaas.com",
    "production": "https://www.asaas.com",
}

DEFAULT_PRO_MONTHLY_CENTS = 3900
DEFAULT_GRACE_DAYS = 3
MAX_GRACE_DAYS = 14
MIN_RECONCILE_TOKEN_LENGTH = 16


@dataclass(frozen=True)
class BillingConfig:
    provider: str
    asaas_env: str
    asaas_api_key: str
    asaas_base_url: str
    asaas_checkout_base_url: str
    asaas_webhook_token: str
    success_url: str
    cancel_url: str
    pro_monthly_cents: int
    grace_days: int
    reconcile_token: str

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BillingConfig":
        """
        Build and validate the billing configuration.

        Args:
            environ: Mapping to read from (default: os.environ)

        Raises:
            ValueError: If a variable is missing or invalid
        """
        env = os.environ if environ is None else environ

        provider = env.get("BILLING_PROVIDER") or "asaas"
        if provider != "asaas":
            raise ValueError(f"Unsupported BILLING_PROVIDER: {provider}")

        asaas_env = env.get("ASAAS_ENV") or "sandbox"
        if asaas_env not in BASE_URL_BY_ENV:
            raise ValueError("ASAAS_ENV must be 'sandbox' or 'production'")

        base_url = env.get("ASAAS_BASE_URL") or BASE_URL_BY_ENV[asaas_env]
        checkout_base_url = (
            env.get("ASAAS_CHECKOUT_BASE_URL") or CHECKOUT_BASE_URL_BY_ENV[asaas_env]
        )

        reconcile_token = _required(env, "BILLING_RECONCILE_TOKEN")
        if len(reconcile_token) < MIN_RECONCILE_TOKEN_LENGTH:
            raise ValueError(
                f"BILLING_RECONCILE_TOKEN must be at least {MIN_RECONCILE_TOKEN_LENGTH} characters"
            )

        pro_monthly_cents = _int_var(env, "PLAN_PRO_MONTHLY_BRL_CENTS", DEFAULT_PRO_MONTHLY_CENTS)
        if pro_monthly_cents <= 0:
            raise ValueError("PLAN_PRO_MONTHLY_BRL_CENTS must be positive")

        grace_days = _int_var(env, "BILLING_GRACE_DAYS", DEFAULT_GRACE_DAYS)
        if not 0 <= grace_days <= MAX_GRACE_DAYS:
            raise ValueError(f"BILLING_GRACE_DAYS must be between 0 and {MAX_GRACE_DAYS}")

        return cls(
            provider=provider,
            asaas_env=asaas_env,
            asaas_api_key=_required(env, "ASAAS_API_KEY"),
            asaas_base_url=_url(base_url, "ASAAS_BASE_URL").rstrip("/"),
            asaas_checkout_base_url=_url(
                checkout_base_url, "ASAAS_CHECKOUT_BASE_URL"
            ).rstrip("/"),
            asaas_webhook_token=_required(env, "ASAAS_WEBHOOK_TOKEN"),
            success_url=_url(_required(env, "ASAAS_SUCCESS_URL"), "ASAAS_SUCCESS_URL"),
            cancel_url=_url(_required(env, "ASAAS_CANCEL_URL"), "ASAAS_CANCEL_URL"),
            pro_monthly_cents=pro_monthly_cents,
            grace_days=grace_days,
            reconcile_token=reconcile_token,
        )


def _required(env: Mapping[str, str], name: str) -> str:
    value = env.get(name)
    if not value:
        raise ValueError(f"{name} environment variable must be set")
    return value


def _int_var(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _url(value: str, name: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"{name} must be a valid URL")
    return value


@lru_cache(maxsize=1)
def get_billing_config() -> BillingConfig:
    """Load the billing configuration once per process."""
    config = BillingConfig.from_env()
    logger.info(
        "Billing configuration loaded",
        extra={"provider": config.provider, "asaas_env": config.asaas_env},
    )
    return config
