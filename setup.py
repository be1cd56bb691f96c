#!/usr/bin/env python3
"""
Setup script for the Arcus bridge client
"""

from setuptools import setup, find_namespace_packages

setup(
    name="arcus-bridge",
    version="0.0.1",
    description="Correlated request/response client for the Arcus gateway bus",
    packages=find_namespace_packages(include=["bridge", "bridge.*", "shared", "shared.*"]),
    install_requires=[
        "websockets>=15.0",
        "httpx>=0.27",
        "typer>=0.15",
        "rich>=13.9",
        "PyYAML>=6.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.4",
            "pytest-asyncio>=1.2",
        ],
    },
    python_requires=">=3.10",
    entry_points={
        'console_scripts': [
            'arcus-bridge=bridge.cli:main',
        ],
    },
)
