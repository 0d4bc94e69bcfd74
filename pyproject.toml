[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flowgate"
version = "0.1.0"
description = "Building blocks for a layer 4 TCP and UDP load-balancing proxy: balancers, a backend registry, a TCP listener and a UDP relay"
requires-python = ">=3.11"
keywords = [
    "proxy",
    "load-balancer",
    "tcp",
    "udp",
    "round-robin",
    "least-connections",
    "asyncio",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: System :: Networking",
]
dependencies = [
    "pyyaml",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
flowgate = "flowgate.app:main"

[tool.hatch.build.targets.wheel]
packages = ["flowgate"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
