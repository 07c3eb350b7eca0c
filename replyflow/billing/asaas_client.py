"""
Asaas API Client for subscription billing.

Covers the handful of endpoints ReplyFlow uses: customers, hosted
checkouts, subscriptions and subscription payments.
API Documentation: https://docs.asaas.com/
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import requests

from replyflow.common.retry import TransientHTTPError, is_transient_status, retry_with_backoff

logger = logging.getLogger(__name__)

# Constants
API_TIMEOUT_SECONDS = 30


class AsaasApiError(Exception):
    """Raised when Asaas answers with a non-success status."""

    def __init__(self, status: int, details: Optional[list[dict[str, Any]]] = None, message: Optional[str] = None):
        super().__init__(message or f"Asaas request failed ({status})")
        self.status = status
        self.details = details or []


class AsaasClient:
    """
    Client for the Asaas v3 REST API.

    Authenticates with the ``access_token`` header. Rate limiting (429) and
    server errors are retried with backoff; other error statuses raise
    :class:`AsaasApiError` with the provider's error items.
    """

    def __init__(self, api_key: str, base_url: str, timeout: int = API_TIMEOUT_SECONDS):
        """
        Initialize the Asaas client.

        Args:
            api_key: Asaas API key
            base_url: API base URL (sandbox or production, including /v3)
            timeout: Per-request timeout in seconds (default: 30)
        """
        if not api_key:
            raise ValueError("ASAAS_API_KEY must be set in environment or passed as parameter")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def create_customer(
        self,
        name: str,
        email: str,
        external_reference: str,
        cpf_cnpj: Optional[str] = None,
    ) -> dict[str, Any]:
        body = {"name": name, "email": email, "externalReference": external_reference}
        if cpf_cnpj:
            body["cpfCnpj"] = cpf_cnpj
        return self._request("POST", "/customers", body=body)

    def list_customers_by_external_reference(self, external_reference: str) -> list[dict[str, Any]]:
        response = self._request(
            "GET",
            f"/customers?externalReference={quote(external_reference, safe='')}&limit=10",
        )
        return response.get("data") or []

    def create_checkout(
        self,
        customer: str,
        name: str,
        description: str,
        value: float,
        success_url: str,
        cancel_url: str,
        external_reference: str,
    ) -> dict[str, Any]:
        """Create a hosted checkout for a monthly recurring credit-card charge."""
        return self._request(
            "POST",
            "/checkouts",
            body={
                "customer": customer,
                "name": name,
                "description": description,
                "value": value,
                "billingTypes": ["CREDIT_CARD"],
                "chargeTypes": ["RECURRENT"],
                "subscriptionCycle": "MONTHLY",
                "maxInstallmentCount": 1,
                "successUrl": success_url,
                "cancelUrl": cancel_url,
                "externalReference": external_reference,
            },
        )

    def get_subscription(self, subscription_id: str) -> dict[str, Any]:
        return self._request("GET", f"/subscriptions/{quote(subscription_id, safe='')}")

    def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        return self._request("DELETE", f"/subscriptions/{quote(subscription_id, safe='')}")

    def list_subscription_payments(self, subscription_id: str) -> list[dict[str, Any]]:
        response = self._request(
            "GET", f"/payments?subscription={quote(subscription_id, safe='')}&limit=100"
        )
        return response.get("data") or []

    @retry_with_backoff(
        max_retries=2,
        initial_delay=1.0,
        backoff_factor=2.0,
        exceptions=(requests.exceptions.ConnectionError, requests.exceptions.Timeout, TransientHTTPError),
    )
    def _request(
        self, method: str, path: str, body: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """
        Send one request and decode the JSON answer.

        Raises:
            AsaasApiError: On a non-retryable error status
            TransientHTTPError: On 429/5xx after the retries are used up
            requests.exceptions.RequestException: On network errors
        """
        url = f"{self.base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "access_token": self.api_key,
        }

        logger.debug("Making Asaas API call", extra={"method": method, "path": path})

        response = requests.request(
            method, url, headers=headers, json=body, timeout=self.timeout
        )

        if is_transient_status(response.status_code):
            logger.warning(
                "Asaas API temporarily unavailable",
                extra={"status": response.status_code, "path": path},
            )
            raise TransientHTTPError(
                response.status_code, f"Asaas request failed ({response.status_code})"
            )

        if not response.ok:
            try:
                error_body = response.json()
            except ValueError:
                error_body = {}
            details = error_body.get("errors") if isinstance(error_body, dict) else None
            logger.error(
                "Asaas API error %s",
                response.status_code,
                extra={"path": path, "errors": details},
            )
            raise AsaasApiError(
                response.status_code,
                details if isinstance(details, list) else [],
                f"Asaas request failed ({response.status_code})",
            )

        return response.json()
