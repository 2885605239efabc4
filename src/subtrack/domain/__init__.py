"""Domain layer for subtrack application."""

_SERVICES = {
    "SubscriptionService": "subtrack.domain.subscription",
    "UsageMatcher": "subtrack.domain.usage",
    "RecommendationService": "subtrack.domain.recommendation",
    "NotificationService": "subtrack.domain.notification",
    "SubscriptionSweeper": "subtrack.domain.sweep",
}

__all__ = list(_SERVICES)


# Import services lazily: the database layer imports domain.entities, and the
# services import the database layer
def __getattr__(name):
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
