"""
Configuration loader for environment variables.
"""

import os
from dotenv import load_dotenv

# Load .env from project root
load_dotenv()


class Config:
    """Application configuration from environment variables."""

    # PostgreSQL
    POSTGRES_HOST = os.getenv('POSTGRES_HOST', 'localhost')
    POSTGRES_PORT = os.getenv('POSTGRES_PORT', '5432')
    POSTGRES_DATABASE = os.getenv('POSTGRES_DATABASE', 'forecastgraph')
    POSTGRES_USER = os.getenv('POSTGRES_USER')
    POSTGRES_PASSWORD = os.getenv('POSTGRES_PASSWORD')

    # Full URL override (e.g. sqlite:///forecast.db for local runs)
    DATABASE_URL = os.getenv('DATABASE_URL')

    # Calculation engine
    FORECAST_MAX_MONTHS = int(os.getenv('FORECAST_MAX_MONTHS', '120'))
    SEED_GROWTH_MODE = os.getenv('SEED_GROWTH_MODE', 'percentage')
    VALUE_SOURCE_POLICY = os.getenv('VALUE_SOURCE_POLICY', 'bound_data')
    INCLUDE_ALL_NODES = os.getenv('INCLUDE_ALL_NODES', 'false').lower() in ('1', 'true', 'yes')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def get_postgres_url(cls):
        """Get SQLAlchemy PostgreSQL connection URL."""
        return (
            f"postgresql://{cls.POSTGRES_USER}:{cls.POSTGRES_PASSWORD}"
            f"@{cls.POSTGRES_HOST}:{cls.POSTGRES_PORT}/{cls.POSTGRES_DATABASE}"
        )

    @classmethod
    def get_database_url(cls):
        """Get the SQLAlchemy URL, preferring DATABASE_URL when set."""
        return cls.DATABASE_URL or cls.get_postgres_url()
