"""
Setup script for pgsearchpath.

The version is read from the VERSION file at the repository root.
"""

from pathlib import Path
from setuptools import find_packages, setup

here = Path(__file__).parent

# Read version from VERSION file
version = (here / "VERSION").read_text().strip()

setup(
    name="pgsearchpath",
    version=version,
    description=(
        "PostgreSQL search_path selection for SQLAlchemy schema handles, "
        "persisting across reconnects"
    ),
    python_requires=">=3.9",
    packages=find_packages(include=["pgsearchpath", "pgsearchpath.*"]),
    install_requires=[
        "SQLAlchemy>=2.0",
        "psycopg2-binary>=2.9",
        "structlog>=23.1",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "hypothesis>=6.80",
        ],
    },
)
