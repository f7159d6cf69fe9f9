"""Setup script for rollscan."""

from setuptools import setup, find_packages

setup(
    name="rollscan",
    version="0.1.0",
    description="Chunked, credential-rotating OCR extraction of voters from electoral roll PDFs",
    author="rollscan Team",
    python_requires=">=3.10",
    package_dir={"": "src", "config": "config"},
    packages=find_packages(where="src") + ["config"],
    install_requires=[
        "pydantic>=2.6.0",
        "pydantic-settings>=2.1.0",
        "openai>=1.12.0",
        "pymupdf>=1.24.0",
        "tenacity>=8.2.0",
        "structlog>=24.1.0",
        "click>=8.1.0",
        "rich>=13.7.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "rollscan=rollscan.cli.commands:cli",
        ],
    },
)
