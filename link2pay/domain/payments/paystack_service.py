"""Paystack service - Integration with the Paystack REST API"""

import logging
from typing import Optional

import httpx

from ...config import PAYSTACK_BASE_URL, PAYSTACK_SECRET_KEY

logger = logging.getLogger(__name__)

STANDARD_PLAN = {"name": "Link2Pay Standard Plan", "plan_code": "link2pay-standard", "amount": 9500}
BETA_PLAN = {"name": "Link2Pay Beta Plan", "plan_code": "link2pay-beta50", "amount": 5000}


class PaystackError(Exception):
    """Raised when a Paystack API call fails"""

    pass


class PaystackClient:
    """Thin async wrapper over the Paystack endpoints Link2Pay uses"""

    def __init__(self, secret_key: Optional[str] = None, base_url: str = PAYSTACK_BASE_URL):
        self.secret_key = secret_key or PAYSTACK_SECRET_KEY
        self.base_url = base_url

    def is_available(self) -> bool:
        return bool(self.secret_key)

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        if not self.secret_key:
            raise PaystackError("Paystack secret key not configured")

        try:
            async with httpx.AsyncClient(base_url=self.base_url) as client:
                response = await client.request(
                    method,
                    path,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.secret_key}",
                        "Content-Type": "application/json",
                    },
                    timeout=15.0,
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Paystack {method} {path} failed: {str(e)}")
            raise PaystackError(f"Paystack request failed: {str(e)}") from e

        try:
            body = response.json()
        except ValueError:
            body = {"status": False, "message": response.text[:200]}

        if not response.is_success or not body.get("status"):
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.error(f"❌ Paystack {method} {path} error: {message}")
            raise PaystackError(message)

        return body.get("data") or {}

    async def create_customer(self, email: str, first_name: str, last_name: str, user_id: str) -> dict:
        return await self._request(
            "POST",
            "/customer",
            {
                "email": email,
                "first_name": first_name,
                "last_name": last_name,
                "metadata": {"user_id": user_id},
            },
        )

    async def create_plan(self, name: str, amount: int, plan_code: Optional[str] = None) -> dict:
        """Create a monthly ZAR plan. An existing plan with the same code is not an error."""
        payload = {"name": name, "interval": "monthly", "amount": amount, "currency": "ZAR"}
        if plan_code:
            payload["plan_code"] = plan_code
        try:
            return await self._request("POST", "/plan", payload)
        except PaystackError as e:
            if "already exists" in str(e).lower():
                logger.info(f"ℹ️ Paystack plan {plan_code or name} already exists")
                return {"plan_code": plan_code, "name": name, "amount": amount}
            raise

    async def list_plans(self) -> list[dict]:
        data = await self._request("GET", "/plan")
        return data if isinstance(data, list) else []

    async def create_subscription(
        self,
        customer: str,
        plan: str,
        start_date: Optional[str] = None,
        authorization: Optional[str] = None,
    ) -> dict:
        payload = {"customer": customer, "plan": plan}
        if start_date:
            payload["start_date"] = start_date
        if authorization:
            payload["authorization"] = authorization
        return await self._request("POST", "/subscription", payload)

    async def initialize_transaction(
        self, email: str, amount: int, callback_url: str, metadata: dict
    ) -> dict:
        return await self._request(
            "POST",
            "/transaction/initialize",
            {
                "email": email,
                "amount": amount,
                "currency": "ZAR",
                "callback_url": callback_url,
                "metadata": metadata,
            },
        )


paystack_client = PaystackClient()
