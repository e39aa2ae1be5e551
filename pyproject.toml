[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "muxio"
version = "0.3.0a0"
description = "Toolkit for layered stream multiplexing and schema-less RPC communication"
requires-python = ">=3.10"
dependencies = [
    "websockets>=13.0",
]
keywords = ["multiplexing", "rpc", "framing", "streams", "websocket"]
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
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Framework :: AsyncIO",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
muxio-demo = "muxio.demo.app:main"

[tool.hatch.build.targets.wheel]
packages = ["muxio"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
