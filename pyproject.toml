[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "datalake"
version = "0.1.0"
description = "Typed resource models for a data lake: model schemas, storages, claims and storage bindings"
requires-python = ">=3.10"
dependencies = []
keywords = ["data lake", "object storage", "schema", "kubernetes", "resource model"]
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
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["datalake"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
