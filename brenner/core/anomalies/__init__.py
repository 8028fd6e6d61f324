from .schema import (
    can_spawn_hypothesis,
    create_anomaly,
    defer_anomaly,
    generate_anomaly_id,
    is_valid_anomaly_id,
    link_spawned_hypothesis,
    reactivate_anomaly,
    resolve_anomaly,
    validate_anomaly,
)
from .storage import AnomalyStorage

__all__ = [
    "AnomalyStorage",
    "can_spawn_hypothesis",
    "create_anomaly",
    "defer_anomaly",
    "generate_anomaly_id",
    "is_valid_anomaly_id",
    "link_spawned_hypothesis",
    "reactivate_anomaly",
    "resolve_anomaly",
    "validate_anomaly",
]
