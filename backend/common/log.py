"""Logging setup for the billing service.

Every module logs through ``logging.getLogger(__name__)``; this only
configures the handlers and levels once at application start.
"""

from logging.config import dictConfig

from backend.core.conf import settings


def setup_logging(level: str | None = None) -> None:
    """Configure console logging for the app and uvicorn."""
    level = (level or settings.LOG_STD_LEVEL).upper()

    dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': settings.LOG_FORMAT,
            },
        },
        'handlers': {
            'console': {
                'level': level,
                'class': 'logging.StreamHandler',
                'formatter': 'standard',
            },
        },
        'loggers': {
            '': {
                'handlers': ['console'],
                'level': level,
                'propagate': True,
            },
            'uvicorn': {
                'handlers': ['console'],
                'level': level,
                'propagate': False,
            },
            'uvicorn.access': {
                'handlers': ['console'],
                'level': level,
                'propagate': False,
            },
            # Stripe's client logs every request at INFO
            'stripe': {
                'level': 'WARNING',
            },
        },
    })
