"""
Setup script for edge-trainer.

Edge Trainer runs a guided daily influence-training session: check-in,
lesson, recall check, roleplay, debrief and field mission. Completed sessions
are journaled to a local ledger that feeds concept selection and spaced
review.

The 'edge' command inspects the ledger and schedule and can start the API.
"""

from setuptools import find_packages, setup

setup(
    name="edge-trainer",
    version="0.1.0",
    description="Daily influence-training session engine with spaced review",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["edge", "edge.*"]),
    py_modules=["config", "main"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # API
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP / generative service
        "httpx>=0.25.0",
        "anthropic>=0.40.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "edge=edge.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Framework :: FastAPI",
        "Intended Audience :: End Users/Desktop",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="training spaced-repetition roleplay fastapi cli",
)
