[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chronikdb"
version = "0.1.0"
description = "Script, outpoint and mempool indexes for a UTXO blockchain on an in-memory ordered key-value store"
requires-python = ">=3.10"
dependencies = []
keywords = ["blockchain", "index", "utxo", "mempool", "key-value", "merge-operator"]
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
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["chronikdb"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
