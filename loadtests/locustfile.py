"""Paaniyo Checkout Load Testing: locust entry point.

Replays gateway notifications against a running checkout server started with
the fake gateway (PAANIYO_GATEWAY=fake). Orders to replay against are seeded
beforehand and passed in PAANIYO_LOADTEST_TRAN_IDS.

Usage:
    # All scenarios (web UI):
    locust -f loadtests/locustfile.py

    # Duplicate delivery only:
    PAANIYO_LOADTEST_TRAN_IDS=paaniyo_<id>_<ns>,... \
        locust -f loadtests/locustfile.py DuplicateDeliveryUser

    # Headless (CI mode):
    locust -f loadtests/locustfile.py --headless -u 50 -r 5 -t 120s --csv=results/loadtest
"""

import logging
import time

from locust import events

# Import all user classes so Locust discovers them
from loadtests.helpers.response import extract_error_detail
from loadtests.scenarios.settlement import TALLY, DuplicateDeliveryUser, ForgedNotificationUser  # noqa: F401

logger = logging.getLogger("loadtest")


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request.

    Rejections the scenarios expect (400/404 on forged notifications) are
    logged too; they read as "Invalid signature" or "Order not found".
    """
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 400:
        detail = extract_error_detail(response)
        logger.info("[%s] %s %s: %s", response.status_code, request_type, name, detail)


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    """Log a marker when load test begins."""
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    print()


@events.test_stop.add_listener
def on_test_stop(**_kwargs):
    """Print replay outcomes and flag any transaction settled twice."""
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    if TALLY.deliveries:
        print(f"[LOADTEST] Replayed notifications: {TALLY.deliveries}")
        for outcome, count in sorted(TALLY.outcomes.items()):
            print(f"  {outcome}: {count}")
    if TALLY.double_settled:
        logger.error("[LOADTEST] Settled more than once: %s", ", ".join(sorted(TALLY.double_settled)))
    print()
