"""Settlement load test scenarios.

Two users hammer the IPN endpoint the way a misbehaving or hostile network
would:

- DuplicateDeliveryUser replays signed success notifications for seeded
  transactions. Every response must be 200 (success or duplicate) or a 400
  rejection when the fake gateway has no validation on file; a transaction may
  answer "success" only once across the whole run.
- ForgedNotificationUser sends unknown transactions and forged signatures,
  which must all be refused without touching any order.
"""

import random

from locust import HttpUser, between, task

from loadtests.data_generators import forged_ipn_payload, ipn_payload, seeded_tran_ids, unknown_tran_id
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import DeliveryTally

_ACCEPTED = {"success", "duplicate", "failed", "cancelled"}

TALLY = DeliveryTally()


class DuplicateDeliveryUser(HttpUser):
    wait_time = between(0.05, 0.2)

    def on_start(self):
        self.tran_ids = seeded_tran_ids()

    @task(5)
    def replay_success(self):
        if not self.tran_ids:
            return
        tran_id = random.choice(self.tran_ids)
        with self.client.post(
            "/pay/ipn",
            data=ipn_payload(tran_id),
            catch_response=True,
            name="POST /pay/ipn (replay)",
        ) as resp:
            if resp.status_code == 200 and resp.json().get("status") in _ACCEPTED:
                TALLY.record(tran_id, resp.json()["status"])
            elif resp.status_code == 400:
                TALLY.record(tran_id, "rejected")
            else:
                resp.failure(f"Replay failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task(1)
    def poll_status(self):
        if not self.tran_ids:
            return
        tran_id = random.choice(self.tran_ids)
        with self.client.get(
            "/pay/ipn",
            params={"tran_id": tran_id},
            catch_response=True,
            name="GET /pay/ipn",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Status poll failed: {resp.status_code}: {extract_error_detail(resp)}")


class ForgedNotificationUser(HttpUser):
    wait_time = between(0.05, 0.2)

    @task(3)
    def unknown_transaction(self):
        with self.client.post(
            "/pay/ipn",
            data=ipn_payload(unknown_tran_id()),
            catch_response=True,
            name="POST /pay/ipn (unknown)",
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Unknown tran_id not refused: {resp.status_code}")

    @task(2)
    def forged_signature(self):
        tran_ids = seeded_tran_ids() or [unknown_tran_id()]
        with self.client.post(
            "/pay/ipn",
            data=forged_ipn_payload(random.choice(tran_ids)),
            catch_response=True,
            name="POST /pay/ipn (forged)",
        ) as resp:
            if resp.status_code == 400:
                resp.success()
            else:
                resp.failure(f"Forged notification not refused: {resp.status_code}")
