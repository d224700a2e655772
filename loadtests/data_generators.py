"""Faker-based IPN payload generators for Locust load test scenarios.

Payloads are signed exactly as the gateway signs them, with the store
password the server under test is configured with (the fake gateway's
default unless SSL_STORE_PASSWORD is set).
"""

import os
import random
import uuid

from checkout.gateway.signature import sign_payload
from faker import Faker

fake = Faker()

STORE_PASSWORD = os.getenv("SSL_STORE_PASSWORD", "qwerty")

SIGNED_KEYS = ("tran_id", "val_id", "amount", "card_type", "status", "bank_tran_id")

CARD_TYPES = ("VISA-Dutch Bangla", "MASTER-City Bank", "BKASH-BKash", "NAGAD-Nagad")


def seeded_tran_ids() -> list[str]:
    """Transaction ids of orders seeded in PAYMENT_INITIATED before the run.

    Read from PAANIYO_LOADTEST_TRAN_IDS (comma separated).
    """
    raw = os.getenv("PAANIYO_LOADTEST_TRAN_IDS", "")
    return [tran_id.strip() for tran_id in raw.split(",") if tran_id.strip()]


def unknown_tran_id() -> str:
    return f"paaniyo_{uuid.uuid4()}_{random.randint(10**17, 10**18)}"


def ipn_payload(tran_id: str, status: str = "VALID", amount: str | None = None) -> dict:
    """Signed IPN form for ``tran_id``."""
    payload = {
        "tran_id": tran_id,
        "val_id": f"{fake.date_time_this_year():%y%m%d%H%M}{random.randint(100000, 999999)}",
        "amount": amount or f"{random.randint(100, 10000)}.00",
        "card_type": random.choice(CARD_TYPES),
        "status": status,
        "bank_tran_id": fake.bothify("##########??##").upper(),
    }
    return sign_payload(payload, STORE_PASSWORD, keys=SIGNED_KEYS)


def forged_ipn_payload(tran_id: str) -> dict:
    """IPN form whose signature does not match its content."""
    payload = ipn_payload(tran_id)
    payload["amount"] = "1.00"
    return payload
