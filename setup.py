#!/usr/bin/env python
"""
BSF Farm Data Platform Setup
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="bsf-farm",
    version="2.0.0",
    description="Relational schema and data tooling for a Black Soldier Fly farm",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pytest-asyncio>=0.23.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
        ],
        "mysql": [
            "aiomysql>=0.2.0",
            "pymysql>=1.1.0",
        ],
        "postgres-sync": [
            "psycopg2-binary>=2.9.9",
        ],
    },
    entry_points={
        "console_scripts": [
            "bsf-farm=bsf_farm.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
    keywords=[
        "black-soldier-fly",
        "insect-farming",
        "sqlalchemy",
        "postgresql",
        "mysql",
        "sqlite",
        "data-pipeline",
    ],
)
