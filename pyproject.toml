[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bladeagent"
version = "0.1.0"
description = "Compute blade agent: linear fan curve, LED blink patterns, identify and critical modes, and the smart fan unit serial protocol"
requires-python = ">=3.11"
keywords = ["compute-blade", "fan-control", "led", "serial", "emc2101", "hardware"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: No Input/Output (Daemon)",
    "Framework :: AsyncIO",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
    "Typing :: Typed",
]
dependencies = [
    "pyserial",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
compute-blade-agent = "bladeagent.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["bladeagent"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
