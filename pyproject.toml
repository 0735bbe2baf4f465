[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "spongetcp"
version = "0.1.0"
description = "Flow-controlled byte streams, stream reassembly, ARP-backed network interfaces and a longest-prefix-match IPv4 router"
requires-python = ">=3.10"
dependencies = []
keywords = ["ip", "arp", "ethernet", "router", "byte-stream", "reassembly", "networking"]
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
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
spongetcp-network-simulator = "spongetcp.network_simulator:main"
spongetcp-tcp-native = "spongetcp.tcp_native:main"
spongetcp-webget = "spongetcp.webget:main"

[tool.hatch.build.targets.wheel]
packages = ["spongetcp"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
