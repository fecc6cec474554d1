"""Prometheus metrics for garage occupancy and reservations."""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry, generate_latest

# Private registry, served by get_metrics()
REGISTRY = CollectorRegistry()

# Confidence of the vehicle assigned to each spot
DETECTION_CONFIDENCE = Histogram(
    "garage_detection_confidence",
    "Confidence score of vehicles assigned to spots",
    ["spot_number"],
    buckets=(0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
    registry=REGISTRY,
)

# Detection latency histogram (in seconds), vision calls included
DETECTION_LATENCY = Histogram(
    "garage_detection_latency_seconds",
    "Time taken by the detection pipeline for one image",
    buckets=(0.25, 0.5, 1.0, 2.0, 3.0, 5.0, 10.0, 20.0, 30.0),
    registry=REGISTRY,
)

RECONCILIATIONS = Counter(
    "garage_reconciliations_total",
    "Number of reconciliation passes by source",
    ["source"],
    registry=REGISTRY,
)

RESERVATION_ACTIONS = Counter(
    "garage_reservation_actions_total",
    "Reservation actions by action and outcome",
    ["action", "outcome"],
    registry=REGISTRY,
)

COMPENSATING_WRITES = Counter(
    "garage_compensating_writes_total",
    "Reservations written back from detections",
    ["kind", "outcome"],
    registry=REGISTRY,
)

# Reconciled occupancy per spot
SPOT_STATUS = Gauge(
    "garage_spot_occupied",
    "Reconciled occupancy of a spot (1=occupied, 0=free)",
    ["spot_number"],
    registry=REGISTRY,
)

TOTAL_SPOTS = Gauge(
    "garage_spots_total",
    "Spots in the garage grid",
    registry=REGISTRY,
)

AVAILABLE_SPOTS = Gauge(
    "garage_spots_available",
    "Spots currently free",
    registry=REGISTRY,
)

OCCUPIED_SPOTS = Gauge(
    "garage_spots_occupied",
    "Spots currently occupied",
    registry=REGISTRY,
)


def record_detection_confidence(spot_number: str, confidence: float) -> None:
    """Observe the confidence of the vehicle seen in a spot."""
    DETECTION_CONFIDENCE.labels(spot_number=spot_number).observe(confidence)


def record_detection_latency(latency_seconds: float) -> None:
    """Record detection pipeline latency."""
    DETECTION_LATENCY.observe(latency_seconds)


def record_reconciliation(source: str) -> None:
    RECONCILIATIONS.labels(source=source).inc()


def record_reservation_action(action: str, outcome: str) -> None:
    RESERVATION_ACTIONS.labels(action=action, outcome=outcome).inc()


def record_compensating_write(kind: str, outcome: str) -> None:
    COMPENSATING_WRITES.labels(kind=kind, outcome=outcome).inc()


def update_spot_status(spot_number: str, is_occupied: bool) -> None:
    """Set the per-spot occupancy gauge."""
    SPOT_STATUS.labels(spot_number=spot_number).set(1 if is_occupied else 0)


def update_spot_counts(total: int, available: int, occupied: int) -> None:
    """Set the garage-wide count gauges."""
    TOTAL_SPOTS.set(total)
    AVAILABLE_SPOTS.set(available)
    OCCUPIED_SPOTS.set(occupied)


def get_metrics() -> bytes:
    """Render the registry in Prometheus text format."""
    return generate_latest(REGISTRY)
