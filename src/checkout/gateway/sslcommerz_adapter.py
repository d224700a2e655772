"""SSLCommerz gateway adapter (production).

Talks to the SSLCommerz v4 APIs over HTTPS with httpx:

- session init:        POST /gwprocess/v4/api.php
- order validation:    GET  /validator/api/validationserverAPI.php
- transaction query:   GET  /validator/api/merchantTransIDvalidationAPI.php?tran_id=...
- refund initiation:   GET  /validator/api/merchantTransIDvalidationAPI.php?refund_amount=...

Transport failures and unreadable responses raise ``GatewayUnavailable``.
"""

import httpx
import structlog

from checkout.config import GatewaySettings
from checkout.gateway.port import (
    SUCCESS_STATUSES,
    GatewayUnavailable,
    PaymentGateway,
    RefundResult,
    SessionRequest,
    SessionResult,
    TransactionStatus,
    ValidationResult,
)
from checkout.shared.money import format_taka, to_paisa

logger = structlog.get_logger(__name__)

INIT_PATH = "/gwprocess/v4/api.php"
VALIDATION_PATH = "/validator/api/validationserverAPI.php"
TRANSACTION_PATH = "/validator/api/merchantTransIDvalidationAPI.php"

DEFAULT_POSTCODE = "1000"
DEFAULT_CATEGORY = "Beverages"


def _amount(value) -> int | None:
    if value in (None, ""):
        return None
    try:
        return to_paisa(value)
    except ValueError:
        return None


class SSLCommerzGateway(PaymentGateway):
    def __init__(self, settings: GatewaySettings, client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._client = client or httpx.Client(
            base_url=settings.base_url,
            timeout=httpx.Timeout(settings.timeout),
        )

    def close(self) -> None:
        self._client.close()

    @property
    def _credentials(self) -> dict:
        return {"store_id": self.settings.store_id, "store_passwd": self.settings.store_password}

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            logger.error("SSLCommerz request failed", path=path, error=str(exc))
            raise GatewayUnavailable(f"SSLCommerz request to {path} failed: {exc}") from exc
        except ValueError as exc:
            logger.error("SSLCommerz returned an unreadable response", path=path, error=str(exc))
            raise GatewayUnavailable(f"SSLCommerz returned an unreadable response for {path}") from exc

        if not isinstance(data, dict):
            logger.error("SSLCommerz returned an unexpected response", path=path, body_type=type(data).__name__)
            raise GatewayUnavailable(f"SSLCommerz returned an unreadable response for {path}")
        return data

    # -------------------------------------------------------------------
    # PaymentGateway
    # -------------------------------------------------------------------
    def init_session(self, request: SessionRequest) -> SessionResult:
        postcode = request.customer_postcode or DEFAULT_POSTCODE
        form = {
            **self._credentials,
            "total_amount": format_taka(request.amount),
            "currency": "BDT",
            "tran_id": request.tran_id,
            "success_url": request.success_url,
            "fail_url": request.fail_url,
            "cancel_url": request.cancel_url,
            "ipn_url": request.ipn_url,
            "cus_name": request.customer_name,
            "cus_email": request.customer_email,
            "cus_phone": request.customer_phone,
            "cus_add1": request.customer_address,
            "cus_city": request.customer_city,
            "cus_postcode": postcode,
            "cus_country": "Bangladesh",
            "shipping_method": "Courier",
            "ship_name": request.customer_name,
            "ship_add1": request.customer_address,
            "ship_city": request.customer_city,
            "ship_postcode": postcode,
            "ship_country": "Bangladesh",
            "product_name": ", ".join(request.product_names)[:256] or "Paaniyo order",
            "product_category": request.product_category or DEFAULT_CATEGORY,
            "product_profile": "physical-goods",
            "value_a": request.order_id,
            "value_b": "paaniyo",
            "emi_option": "0",
        }
        data = self._request("POST", INIT_PATH, data=form)

        if data.get("status") == "SUCCESS" and data.get("GatewayPageURL"):
            return SessionResult(
                success=True,
                session_key=data.get("sessionkey"),
                gateway_url=data["GatewayPageURL"],
            )
        return SessionResult(
            success=False,
            failure_reason=data.get("failedreason") or "Payment initialization failed",
        )

    def validate(self, val_id: str) -> ValidationResult:
        data = self._request(
            "GET",
            VALIDATION_PATH,
            params={"val_id": val_id, **self._credentials, "v": "1", "format": "json"},
        )
        return ValidationResult(
            status=str(data.get("status", "")),
            tran_id=data.get("tran_id"),
            val_id=data.get("val_id"),
            amount=_amount(data.get("amount")),
            bank_tran_id=data.get("bank_tran_id"),
            card_type=data.get("card_type"),
            raw=data,
        )

    def query_transaction(self, tran_id: str) -> TransactionStatus:
        data = self._request(
            "GET",
            TRANSACTION_PATH,
            params={"tran_id": tran_id, **self._credentials, "format": "json"},
        )
        elements = [el for el in data.get("element") or [] if isinstance(el, dict)]
        if not elements:
            return TransactionStatus(tran_id=tran_id)
        # A retried tran_id can hold failed attempts next to the captured one
        for element in elements:
            if element.get("status") in SUCCESS_STATUSES:
                return TransactionStatus(tran_id=tran_id, status=element["status"])
        return TransactionStatus(tran_id=tran_id, status=str(elements[0].get("status", "")))

    def refund(self, bank_tran_id: str, amount: int, reason: str, reference: str) -> RefundResult:
        data = self._request(
            "GET",
            TRANSACTION_PATH,
            params={
                "refund_amount": format_taka(amount),
                "refund_remarks": reason,
                "bank_tran_id": bank_tran_id,
                "refe_id": reference,
                **self._credentials,
                "format": "json",
            },
        )
        status = str(data.get("status", ""))
        if data.get("APIConnect") == "DONE" and status in ("success", "processing"):
            return RefundResult(success=True, status=status, refund_ref_id=data.get("refund_ref_id"))
        return RefundResult(success=False, status=status, failure_reason=data.get("errorReason") or "Refund rejected")
