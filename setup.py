"""
Setup script for course-builder.

Course Builder is the ordering engine behind the course authoring surface
of the learning-content hub. It serves three roles:

1. Ordering Engine - Merge confirmed and draft sections/activities, apply moves
2. Sync Dispatcher - Push batched sequence updates and reconcile on failure
3. CLI - Inspect and reorder a course outline from the terminal

The 'course-builder' command is the entry point.
"""

from setuptools import find_namespace_packages, setup

setup(
    name="course-builder",
    version="1.0.0",
    description="Section/activity ordering engine for the course builder",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Course Builder",
    packages=find_namespace_packages(include=["src", "src.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "course-builder=src.cli.course_cli:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="learning course-builder ordering lms",
)
