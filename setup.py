"""setuptools setup for TimesheetTimer.

Install for development:
    pip install -e ".[test]"
"""

from setuptools import setup, find_packages

setup(
    name="TimesheetTimer",
    version="0.1.0",
    packages=find_packages(include=["timesheettimer", "timesheettimer.*"]),
    python_requires=">=3.10",
    install_requires=[
        "PyQt6",
        "SQLAlchemy>=2.0",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["timesheettimer=timesheettimer.__main__:main"],
    },
)
