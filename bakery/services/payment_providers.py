# bakery/services/payment_providers.py
"""Mobile-money / card payment gateways.

Each provider turns the gateway's own vocabulary into ``ProviderResult``
with one of our ``PaymentStatus`` values. Anything that goes wrong while
talking to a gateway is raised as ``PaymentProviderError``; calls are
bounded by ``Config.PAYMENT_TIMEOUT_SECONDS``.
"""
import asyncio
import hashlib
import hmac
import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple, Union
import aiohttp
from ..config import Config
from ..errors import PaymentProviderError, WebhookSignatureError
from ..models.order import PaymentStatus

logger = logging.getLogger(__name__)


@dataclass
class InitiationRequest:
    order_id: str
    order_number: str
    amount: Decimal
    currency: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    description: Optional[str] = None
    callback_url: Optional[str] = None
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class InitiationResult:
    transaction_id: str
    checkout_url: Optional[str] = None
    checkout_token: Optional[str] = None


@dataclass
class ProviderResult:
    transaction_id: str
    status: PaymentStatus
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    failure_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def _json_amount(amount: Decimal) -> Union[int, float]:
    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def _decimal_or_none(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _load_body(body: Union[bytes, str, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(body, dict):
        return body
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


class PaymentProvider(ABC):
    """Contract every gateway implements"""

    name = "provider"

    def __init__(self, timeout: Optional[float] = None, session_factory=None):
        self.timeout = aiohttp.ClientTimeout(total=timeout or Config.PAYMENT_TIMEOUT_SECONDS)
        self.session_factory = session_factory or aiohttp.ClientSession

    @abstractmethod
    async def initiate(self, request: InitiationRequest) -> InitiationResult:
        """Open a checkout; raises PaymentProviderError when refused"""

    @abstractmethod
    async def verify(self, transaction_id: str) -> ProviderResult:
        """Ask the gateway for the current state of a transaction"""

    @abstractmethod
    async def parse_webhook(self, body: Union[bytes, str, Dict[str, Any]],
                            signature: Optional[str] = None) -> ProviderResult:
        """Authenticate a callback and re-verify it against the gateway"""

    async def _request(self, method: str, url: str, **kwargs) -> Tuple[int, Dict[str, Any]]:
        try:
            async with self.session_factory(timeout=self.timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        data = {}
                    return response.status, data if isinstance(data, dict) else {}
        except asyncio.TimeoutError as e:
            logger.error(f"{self.name}: {method} {url} timed out")
            raise PaymentProviderError(self.name, "payment service timed out") from e
        except aiohttp.ClientError as e:
            logger.error(f"{self.name}: {method} {url} failed: {e}")
            raise PaymentProviderError(self.name, "could not reach payment service") from e


class PaydunyaProvider(PaymentProvider):
    """PayDunya checkout invoices (Orange Money, Moov, MTN, cards)"""

    name = "PayDunya"

    def __init__(self, master_key: str, private_key: str, token: str,
                 sandbox: bool = True, **kwargs):
        super().__init__(**kwargs)
        self.master_key = master_key
        self.private_key = private_key
        self.token = token
        self.base_url = (
            "https://app.paydunya.com/sandbox-api/v1" if sandbox
            else "https://app.paydunya.com/api/v1"
        )

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "PAYDUNYA-MASTER-KEY": self.master_key,
            "PAYDUNYA-PRIVATE-KEY": self.private_key,
            "PAYDUNYA-TOKEN": self.token,
        }

    async def initiate(self, request: InitiationRequest) -> InitiationResult:
        status, data = await self._request("POST", f"{self.base_url}/checkout-invoice/create", headers=self._headers, json={
            "invoice": {
                "total_amount": _json_amount(request.amount),
                "description": request.description or f"Order {request.order_number}",
            },
            "store": {
                "name": Config.STORE_NAME,
                "website_url": Config.APP_URL,
            },
            "custom_data": {
                "order_id": request.order_id,
                "order_number": request.order_number,
                **request.metadata,
            },
            "actions": {
                "cancel_url": request.cancel_url,
                "return_url": request.return_url,
                "callback_url": request.callback_url,
            },
        })

        if status >= 400 or data.get("response_code") != "00":
            reason = data.get("response_text") or f"checkout refused (HTTP {status})"
            raise PaymentProviderError(self.name, reason)

        return InitiationResult(
            transaction_id=data["token"],
            checkout_url=data.get("response_text"),
            checkout_token=data["token"],
        )

    async def verify(self, transaction_id: str) -> ProviderResult:
        status, data = await self._request(
            "GET",
            f"{self.base_url}/checkout-invoice/confirm/{transaction_id}",
            headers=self._headers,
        )
        if status >= 400:
            raise PaymentProviderError(self.name, data.get("response_text") or f"HTTP {status}")

        state = (data.get("status") or "").lower()
        if state == "completed":
            mapped = PaymentStatus.COMPLETED
        elif state in ("cancelled", "failed"):
            mapped = PaymentStatus.FAILED
        else:
            mapped = PaymentStatus.PENDING

        invoice = data.get("invoice") or {}
        return ProviderResult(
            transaction_id=transaction_id,
            status=mapped,
            amount=_decimal_or_none(invoice.get("total_amount")),
            currency=Config.CURRENCY,
            failure_reason=f"Payment {state}" if mapped == PaymentStatus.FAILED else None,
            paid_at=datetime.now(timezone.utc) if mapped == PaymentStatus.COMPLETED else None,
            metadata=data.get("custom_data") or {},
        )

    async def parse_webhook(self, body, signature=None) -> ProviderResult:
        payload = _load_body(body)
        data = payload.get("data") or payload

        # PayDunya signs callbacks with the SHA-512 of the master key
        expected = hashlib.sha512(self.master_key.encode()).hexdigest()
        received = data.get("hash") or signature or ""
        if not hmac.compare_digest(str(received), expected):
            raise WebhookSignatureError(self.name)

        token = (data.get("invoice") or {}).get("token") or data.get("token")
        if not token:
            raise PaymentProviderError(self.name, "transaction token missing from webhook")

        return await self.verify(token)


class FlutterwaveProvider(PaymentProvider):
    """Flutterwave standard checkout with mobile-money options"""

    name = "Flutterwave"
    base_url = "https://api.flutterwave.com/v3"

    def __init__(self, secret_key: str, webhook_hash: str, **kwargs):
        super().__init__(**kwargs)
        self.secret_key = secret_key
        self.webhook_hash = webhook_hash

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.secret_key}",
        }

    async def initiate(self, request: InitiationRequest) -> InitiationResult:
        tx_ref = f"TX-{uuid.uuid4().hex[:20]}"
        status, data = await self._request("POST", f"{self.base_url}/payments", headers=self._headers, json={
            "tx_ref": tx_ref,
            "amount": _json_amount(request.amount),
            "currency": request.currency,
            "redirect_url": request.return_url,
            "payment_options": "mobilemoneyfranco,mobilemoneyghana,card",
            "customer": {
                "email": request.customer_email or f"{request.customer_phone}@customers.invalid",
                "phonenumber": request.customer_phone,
                "name": request.customer_name,
            },
            "customizations": {
                "title": Config.STORE_NAME,
                "description": request.description or f"Order {request.order_number}",
            },
            "meta": {
                "order_id": request.order_id,
                "order_number": request.order_number,
                **request.metadata,
            },
        })

        if status >= 400 or data.get("status") != "success":
            raise PaymentProviderError(self.name, data.get("message") or f"checkout refused (HTTP {status})")

        return InitiationResult(
            transaction_id=tx_ref,
            checkout_url=(data.get("data") or {}).get("link"),
            checkout_token=tx_ref,
        )

    async def verify(self, transaction_id: str) -> ProviderResult:
        status, data = await self._request(
            "GET",
            f"{self.base_url}/transactions/verify_by_reference",
            headers=self._headers,
            params={"tx_ref": transaction_id},
        )
        if status >= 400 or data.get("status") != "success":
            raise PaymentProviderError(self.name, data.get("message") or f"HTTP {status}")

        tx = data.get("data") or {}
        state = (tx.get("status") or "").lower()
        if state == "successful":
            mapped = PaymentStatus.COMPLETED
        elif state in ("failed", "cancelled"):
            mapped = PaymentStatus.FAILED
        else:
            mapped = PaymentStatus.PENDING

        paid_at = None
        if mapped == PaymentStatus.COMPLETED:
            try:
                paid_at = datetime.fromisoformat(str(tx.get("created_at", "")).replace("Z", "+00:00"))
            except ValueError:
                paid_at = datetime.now(timezone.utc)

        return ProviderResult(
            transaction_id=tx.get("tx_ref") or transaction_id,
            status=mapped,
            amount=_decimal_or_none(tx.get("amount")),
            currency=tx.get("currency"),
            failure_reason=(tx.get("processor_response") or f"Payment {state}")
            if mapped == PaymentStatus.FAILED else None,
            paid_at=paid_at,
            metadata=tx.get("meta") or {},
        )

    async def parse_webhook(self, body, signature=None) -> ProviderResult:
        # Flutterwave echoes the secret hash configured on the dashboard
        if not self.webhook_hash or not signature or not hmac.compare_digest(signature, self.webhook_hash):
            raise WebhookSignatureError(self.name)

        payload = _load_body(body)
        tx_ref = (payload.get("data") or {}).get("tx_ref") or payload.get("txRef")
        if not tx_ref:
            raise PaymentProviderError(self.name, "transaction reference missing from webhook")

        # Never trust the callback body, ask the API
        return await self.verify(tx_ref)


def get_payment_provider(name: Optional[str] = None, **kwargs) -> PaymentProvider:
    """Build the gateway selected by configuration"""
    provider = (name or Config.PAYMENT_PROVIDER).lower()

    if provider == "paydunya":
        return PaydunyaProvider(
            master_key=Config.PAYDUNYA_MASTER_KEY,
            private_key=Config.PAYDUNYA_PRIVATE_KEY,
            token=Config.PAYDUNYA_TOKEN,
            sandbox=Config.PAYMENT_SANDBOX,
            **kwargs
        )
    if provider == "flutterwave":
        return FlutterwaveProvider(
            secret_key=Config.FLUTTERWAVE_SECRET_KEY,
            webhook_hash=Config.FLUTTERWAVE_WEBHOOK_HASH,
            **kwargs
        )
    raise ValueError(f"Unsupported payment provider: {provider}")
