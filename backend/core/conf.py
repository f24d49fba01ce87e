from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.core.path_conf import BASE_PATH


class Settings(BaseSettings):
    """Global settings"""

    model_config = SettingsConfigDict(
        env_file=f'{BASE_PATH}/.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=True,
    )

    # .env environment
    ENVIRONMENT: Literal['dev', 'prod'] = 'dev'

    # FastAPI
    FASTAPI_API_V1_PATH: str = '/api/v1'
    FASTAPI_TITLE: str = 'AircrewShuffleBilling'
    FASTAPI_DESCRIPTION: str = 'Subscription lifecycle synchronization'
    FASTAPI_DOCS_URL: str | None = '/docs'
    FASTAPI_OPENAPI_URL: str | None = '/openapi'

    # .env database
    DATABASE_URL: str = f'sqlite+aiosqlite:///{BASE_PATH}/billing.db'

    # Database
    DATABASE_ECHO: bool = False

    # .env Stripe
    STRIPE_SECRET_KEY: str = ''
    STRIPE_WEBHOOK_SECRET: str = ''

    # Stripe
    STRIPE_API_VERSION: str | None = None
    STRIPE_WEBHOOK_TOLERANCE: int = 300  # 5 minutes
    STRIPE_PRICE_IDS: dict[str, str] = {
        'pro': 'price_1S6z12GdegbWxtcAQ7q4cnXK',
    }

    # Checkout redirects
    APP_BASE_URL: str = 'http://localhost:5173'
    CHECKOUT_SUCCESS_PATH: str = '/dashboard?subscription=success&session_id={CHECKOUT_SESSION_ID}'
    CHECKOUT_CANCEL_PATH: str = '/subscription?subscription=cancelled'

    # CORS
    CORS_ALLOWED_ORIGINS: list[str] = [  # no trailing slash
        'http://127.0.0.1:8000',
        'http://localhost:5173',
    ]

    # Logging
    LOG_STD_LEVEL: str = 'INFO'
    LOG_FORMAT: str = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'

    @model_validator(mode='before')
    @classmethod
    def check_env(cls, values: dict) -> dict:
        if values.get('ENVIRONMENT') == 'prod':
            # Disable docs in production
            values['FASTAPI_DOCS_URL'] = None
            values['FASTAPI_OPENAPI_URL'] = None
        return values

    @property
    def checkout_success_url(self) -> str:
        return f'{self.APP_BASE_URL.rstrip("/")}{self.CHECKOUT_SUCCESS_PATH}'

    @property
    def checkout_cancel_url(self) -> str:
        return f'{self.APP_BASE_URL.rstrip("/")}{self.CHECKOUT_CANCEL_PATH}'


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance"""
    return Settings()


settings = get_settings()
