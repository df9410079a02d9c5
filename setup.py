# setup.py
from setuptools import find_packages, setup

setup(
    name="users-api",
    version="0.1.0",
    packages=find_packages(include=["users_api", "users_api.*"]),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg>=0.29",
        "alembic>=1.13",
        "psycopg[binary]>=3.1",
        "structlog>=24.1",
        "sentry-sdk>=1.40",
        "limits>=3.7",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
)
