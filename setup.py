"""
Setup script for the UK filing compliance client.
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read README file
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="uk-filing-client",
    version="1.0.0",
    description="Client for UK annual accounts, confirmation statement and CT600 filings, with an Airflow batch submitter",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Compliance Engineering Team",
    author_email="compliance-engineering@company.com",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "apache-airflow>=2.8.0",
        "reportlab>=4.0.7",
        "weasyprint>=60.2",
        "pydantic>=2.5.2",
        "jinja2>=3.1.2",
        "pandas>=2.1.4",
        "jsonschema>=4.20.0",
        "python-dateutil>=2.8.2",
        "requests>=2.31.0",
        "watchdog>=3.0.0"
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-mock>=3.12.0",
            "pytest-cov>=4.1.0",
            "black>=23.12.1",
            "flake8>=6.1.0",
            "mypy>=1.8.0"
        ],
    },
    entry_points={
        "console_scripts": [
            "setup-filing-client=config.environment_setup:main",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Office/Business :: Financial :: Accounting",
    ],
)
