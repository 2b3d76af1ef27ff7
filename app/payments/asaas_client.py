"""
Asaas Client - thin wrapper over the Asaas v3 REST API.

Only the endpoints the billing flow needs: customers, subscriptions,
payments and PIX QR codes. Reads are retried on network failures;
writes are sent exactly once.

Uso:
    client = AsaasClient(api_key="...", sandbox=True)
    sub = client.create_subscription(customer="cus_1", billing_type="PIX", ...)
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from app.core.exceptions import ProviderError
from app.payments.base import read_retry
from app.utils.enums import Provider

logger = logging.getLogger(__name__)

PRODUCTION_URL = "https://api.asaas.com/v3"
SANDBOX_URL = "https://api-sandbox.asaas.com/v3"


class AsaasError(ProviderError):
    """Asaas answered with an error status."""

    def __init__(self, message=None, status_code=None, detail=None):
        super().__init__(message, provider=Provider.ASAAS, detail=detail)
        self.http_status = status_code


class AsaasNetworkError(AsaasError):
    """Asaas could not be reached (connection, timeout, 5xx)."""


class AsaasClient:
    def __init__(
        self,
        api_key: str,
        sandbox: bool = False,
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = SANDBOX_URL if sandbox else PRODUCTION_URL
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "access_token": api_key or "",
                "Content-Type": "application/json",
                "User-Agent": "jobboard-billing",
            }
        )

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, json=json, params=params, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise AsaasNetworkError(detail=f"{method} {path}: {e}")

        if response.status_code >= 500:
            raise AsaasNetworkError(
                status_code=response.status_code,
                detail=f"{method} {path} -> {response.status_code}: {response.text}",
            )
        if response.status_code >= 400:
            raise AsaasError(
                status_code=response.status_code,
                detail=f"{method} {path} -> {response.status_code}: {response.text}",
            )
        if not response.content:
            return {}
        return response.json()

    # ── Customers ──

    def create_customer(
        self,
        name: str,
        email: str,
        cpf_cnpj: str,
        phone: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "name": name,
            "email": email,
            "cpfCnpj": cpf_cnpj,
            "notificationDisabled": True,
        }
        if phone:
            payload["phone"] = phone
        return self._request("POST", "/customers", json=payload)

    # ── Subscriptions ──

    def create_subscription(
        self,
        customer: str,
        billing_type: str,
        value: float,
        next_due_date: str,
        cycle: str,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "customer": customer,
            "billingType": billing_type,
            "value": value,
            "nextDueDate": next_due_date,
            "cycle": cycle,
        }
        if description:
            payload["description"] = description
        return self._request("POST", "/subscriptions", json=payload)

    @read_retry(AsaasNetworkError)
    def get_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/subscriptions/{subscription_id}")

    def delete_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/subscriptions/{subscription_id}")

    @read_retry(AsaasNetworkError)
    def list_subscription_payments(self, subscription_id: str) -> List[Dict[str, Any]]:
        result = self._request("GET", f"/subscriptions/{subscription_id}/payments")
        return result.get("data", [])

    # ── Payments ──

    @read_retry(AsaasNetworkError)
    def get_payment(self, payment_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/payments/{payment_id}")

    @read_retry(AsaasNetworkError)
    def get_pix_qr_code(self, payment_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/payments/{payment_id}/pixQrCode")
