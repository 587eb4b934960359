[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "simtime"
version = "0.1.0"
description = "Deterministic simulated clock, timers, sleeps, timeouts and intervals for simulation testing"
requires-python = ">=3.10"
dependencies = []
keywords = ["simulation", "deterministic", "testing", "clock", "timer", "interval"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["simtime"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
