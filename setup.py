#!/usr/bin/env python3
"""
Setup script for agentloop
"""

from setuptools import setup, find_packages
import os

# Read the README file
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Get version from environment or default
version = os.getenv("VERSION", "0.1.0")

setup(
    name="agentloop",
    version=version,
    author="agentloop contributors",
    description="Runtime for tool-using, composable agents with plugin interception",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    python_requires=">=3.10",
    install_requires=[
        "docstring-parser>=0.15,<1.0",
        "opentelemetry-api>=1.30.0,<2.0.0",
        "pydantic>=2.4.0,<3.0.0",
        "typing-extensions>=4.13.2,<5.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.0.0,<9.0.0",
            "pytest-asyncio>=1.0.0,<2.0.0",
            "pytest-cov>=4.0.0",
            "mypy>=1.15.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
        ],
        "test": [
            "pytest>=8.0.0,<9.0.0",
            "pytest-asyncio>=1.0.0,<2.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    include_package_data=True,
    keywords=[
        "agents",
        "llm",
        "tools",
        "plugins",
        "multi-agent",
    ],
    zip_safe=False,
)
