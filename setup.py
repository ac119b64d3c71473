"""Setup script for the pgproxy package.

The build system is declared in pyproject.toml; package metadata lives here.
"""

import re
from setuptools import setup, find_packages

# Read the long description from README.md
with open("README.md", encoding="utf-8") as f:
    long_description = f.read()

# Read requirements from requirements.txt
with open("requirements.txt") as f:
    requirements = [line for line in f.read().splitlines() if line and not line.startswith("#")]

# Extract version from the package to ensure consistency
def get_version():
    with open("pgproxy/__init__.py", encoding="utf-8") as f:
        content = f.read()
    version_match = re.search(r'__version__ = "([^"]+)"', content)
    if version_match:
        return version_match.group(1)
    raise RuntimeError("Unable to find version in pgproxy/__init__.py")

setup(
    name="pgproxy",
    version=get_version(),
    description="Synchronize local JavaScript functions with PL/v8 procedures on PostgreSQL and call them through a proxy",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["pgproxy", "pgproxy.*"]),
    install_requires=requirements,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
    ],
    python_requires=">=3.9",
    keywords="postgresql, plv8, stored procedures, proxy, async",
    extras_require={
        "test": [
            "pytest>=7.3.1",
            "pytest-asyncio>=0.21.0",
        ],
        "dev": [
            "pytest>=7.3.1",
            "pytest-asyncio>=0.21.0",
            "flake8>=6.1.0",
            "black>=23.7.0",
            "isort>=5.12.0",
            "mypy>=1.5.1"
        ],
    },
)
