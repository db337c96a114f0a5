"""
Setup script for the ComplianceGuard screening engine.
"""

from pathlib import Path

from setuptools import setup, find_packages

HERE = Path(__file__).parent


def read_requirements(name="requirements.txt"):
    path = HERE / name
    if not path.exists():
        return []
    lines = (line.strip() for line in path.read_text(encoding="utf-8").splitlines())
    return [line for line in lines if line and not line.startswith("#")]


setup(
    name="compliance-guard",
    version="1.0.0",
    author="ComplianceGuard Team",
    description="Sanctions screening engine with fuzzy matching across multiple restricted-party lists",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    install_requires=read_requirements(),
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "compliance-guard=main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "Programming Language :: Python :: 3",
        "Topic :: Office/Business :: Financial",
    ],
)
