"""Backend package initialization.

Models are loaded on-demand by `load_all_models()`, which the Alembic
environment and the schema-building test fixtures call.
"""

__version__ = '1.0.0'

_models_loaded = False


def load_all_models():
    """Register all database models on the shared metadata.

    It's idempotent - calling multiple times has no effect after the first call.
    """
    global _models_loaded
    if _models_loaded:
        return

    from backend.src.billing.subscriptions.model import EntitlementModel  # noqa: F401

    _models_loaded = True

