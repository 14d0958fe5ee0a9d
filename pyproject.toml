[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "daekit"
version = "0.1.0"
description = "Traffic sniffing, routing rules and outbound dialer selection for transparent proxies"
requires-python = ">=3.10"
dependencies = []
keywords = ["proxy", "sniffing", "tls", "sni", "http", "routing", "dialer", "latency"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["daekit"]

[tool.hatch.build.targets.sdist]
include = ["daekit", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
