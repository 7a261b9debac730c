#!/usr/bin/env python
"""Setup configuration for the Patient Lifecycle & Compliance Engine."""

from setuptools import find_packages, setup

setup(
    name="patient-compliance",
    version="0.1.0",
    description="Patient lifecycle, duplicate detection and LGPD compliance engine",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy>=2.0.23",
        "structlog>=23.2.0",
        "cryptography>=41.0.0",
        "reportlab>=4.0.0",
        "defusedxml>=0.7.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
)
