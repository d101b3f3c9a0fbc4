[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dhtcount"
version = "0.1.0"
description = "Word frequency counting over a hash-partitioned table, with word look-ups from a query file"
requires-python = ">=3.10"
dependencies = []
keywords = ["word count", "hash partitioning", "text indexing", "word frequency", "queue pair"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Indexing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dhtcount = "dhtcount.cli:main"
dhtcount-nocma-server = "dhtcount.nocma:server_main"
dhtcount-nocma-client = "dhtcount.nocma:client_main"
dhtcount-cma-server = "dhtcount.cma:server_main"
dhtcount-cma-client = "dhtcount.cma:client_main"
dhtcount-mesh = "dhtcount.mesh:main"
dhtcount-pair = "dhtcount.pair:main"

[tool.hatch.build.targets.wheel]
packages = ["dhtcount"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
