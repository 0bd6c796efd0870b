"""
Setup script for Community Feed - multi-source social feed aggregator.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="community-feed",
    version="1.0.0",
    description="Topic-filtered feed aggregation across Bluesky, Nostr and Mastodon",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["feed_agent", "feed_agent.*", "api", "api.*"]),
    python_requires=">=3.11",
    install_requires=[
        # HTTP and WebSocket client
        "aiohttp>=3.9.0",

        # Data validation
        "pydantic>=2.5.0",

        # Content processing
        "beautifulsoup4>=4.12.0",
        "bech32>=1.2.0",
        "tldextract>=5.0.0",

        # Optional shared result cache
        "redis>=5.0.1",

        # API server
        "fastapi>=0.109.0",
        "uvicorn[standard]>=0.27.0",

        # Monitoring and observability
        "prometheus-client>=0.19.0",

        # Utilities
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.26.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "community-feed=feed_agent.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    ],
    include_package_data=True,
    zip_safe=False,
)
