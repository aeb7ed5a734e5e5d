[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mysqlpool"
version = "0.1.0"
description = "Read/write MySQL connection pools with a chainable query builder"
requires-python = ">=3.10"
keywords = ["mysql", "pool", "query builder", "database", "sql"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Front-Ends",
]
dependencies = [
    "pymysql",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["mysqlpool"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
