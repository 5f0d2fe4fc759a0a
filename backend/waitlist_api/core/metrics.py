"""
Prometheus metrics for the waitlist engine, exposed at /metrics.
"""

from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

waitlist_enrollments = Counter(
    'waitlist_enrollments_total',
    'Entrants added to a waitlist',
    ['event_type']  # tournament, league
)

waitlist_enrollment_retries = Counter(
    'waitlist_enrollment_retries_total',
    'Enrollments retried after losing a position/rank race'
)

waitlist_promotions = Counter(
    'waitlist_promotions_total',
    'Entrants promoted off a waitlist',
    ['event_type']
)

waitlist_offer_transitions = Counter(
    'waitlist_offer_transitions_total',
    'Spot offers leaving the spot_offered state',
    ['outcome']  # accepted, declined, expired, expired_on_accept
)

waitlist_offers_swept = Counter(
    'waitlist_offers_swept_total',
    'Offers expired by the periodic sweep'
)

notification_failures = Counter(
    'notification_failures_total',
    'Waitlist notifications that could not be delivered'
)

cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_enrollment(event_type: str):
    waitlist_enrollments.labels(event_type=event_type).inc()


def record_promotion(event_type: str):
    waitlist_promotions.labels(event_type=event_type).inc()


def record_offer_transition(outcome: str):
    """Outcome: accepted, declined, expired, expired_on_accept"""
    waitlist_offer_transitions.labels(outcome=outcome).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
