[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "memkv"
version = "0.1.0"
description = "An in-memory key-value database engine with Redis-compatible hash, list, key and expiry commands"
requires-python = ">=3.10"
dependencies = []
keywords = ["key-value", "in-memory", "database", "redis", "resp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["memkv"]

[tool.hatch.build.targets.sdist]
include = ["memkv", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
