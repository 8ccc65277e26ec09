[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "echolab"
version = "1.0.0"
description = "Small TCP echo servers, clients and concurrency building blocks for exploring network programming patterns"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "tcp",
    "echo",
    "asyncio",
    "tls",
    "thread-pool",
    "master-worker",
    "snowflake",
    "uuid",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: System :: Networking",
    "Topic :: Internet",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "cryptography",
]

[project.scripts]
echolab-coroutine = "echolab.coroutine:main"
echolab-tasks = "echolab.tasks:main"
echolab-echo-server = "echolab.echo:main_server"
echolab-echo-client = "echolab.echo:main_client"
echolab-resolve = "echolab.resolver:main"
echolab-ssl-server = "echolab.ssl_server:main"
echolab-master-worker = "echolab.master_worker:main"
echolab-per-client-server = "echolab.threaded_servers:main_per_client"
echolab-pool-server = "echolab.threaded_servers:main_pool"

[tool.setuptools.packages.find]
include = ["echolab*"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
