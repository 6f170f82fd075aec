#!/usr/bin/env python3
"""
Basket Ledger - Package Setup

Install with: pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name="basket-ledger",
    version="1.0.0",
    description="Position accounting, trading and staking for basket tokens",
    author="Basket Ledger",
    python_requires=">=3.8",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[],
    extras_require={
        "dev": ["pytest>=7.0.0"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
