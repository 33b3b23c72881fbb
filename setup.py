"""Setup script for the RelayDesk package."""

from setuptools import setup, find_packages

setup(
    name="relaydesk",
    version="0.1.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.29",
        "pydantic>=2.6",
        "pydantic-settings>=2.2",
        "structlog>=24.1",
        "prometheus-client>=0.20",
        "httpx>=0.27",
        "redis>=5.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    description="RelayDesk - request lifecycle and conversational session engine",
    author="RelayDesk Team",
)
