[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dumpmask"
version = "0.1.0"
description = "Mask e-mail addresses and phone numbers in SQL dumps, streaming from stdin to stdout"
requires-python = ">=3.10"
dependencies = []
keywords = ["sql", "dump", "mysql", "masking", "anonymization", "pii"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: Security",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dumpmask = "dumpmask.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["dumpmask"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
