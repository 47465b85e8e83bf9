"""Setup script for calendar_lite: day-timeline layout and reminder scheduling."""

from pathlib import Path

from setuptools import find_packages, setup

HERE = Path(__file__).parent


def _read_requirements() -> tuple[list[str], list[str]]:
    """Split requirements.txt into runtime and test requirements.

    Lines after a ``# Testing`` comment, and any pytest package, are test-only.
    """
    runtime: list[str] = []
    testing: list[str] = []
    path = HERE / "requirements.txt"
    if not path.exists():
        return runtime, testing

    target = runtime
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.lower().startswith("# testing"):
            target = testing
            continue
        if not line or line.startswith("#"):
            continue
        (testing if "pytest" in line else target).append(line)
    return runtime, testing


readme = HERE / "README.md"
install_requires, test_requires = _read_requirements()

setup(
    name="calendar_lite",
    version="0.1.0",
    description="Day-timeline event layout and persisted reminders for a personal calendar",
    long_description=readme.read_text(encoding="utf-8") if readme.exists() else "",
    long_description_content_type="text/markdown",
    author="calendar_lite developers",
    packages=find_packages(include=["calendar_lite", "calendar_lite.*"]),
    include_package_data=True,
    install_requires=install_requires,
    extras_require={
        "dev": test_requires + ["black>=23.0.0", "isort>=5.12.0", "mypy>=1.0.0"],
        "test": test_requires,
    },
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Framework :: AsyncIO",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
    ],
    keywords="calendar timeline layout reminders notifications scheduler async",
    entry_points={
        "console_scripts": [
            "calendar-lite=calendar_lite.__main__:main",
        ],
    },
    zip_safe=False,
)
