[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "werver"
version = "0.1.0"
description = "A small threaded HTTP server with prefix routing and templated HTML pages"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "server", "routing", "thread-pool", "templates", "dice"]
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
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["werver"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
