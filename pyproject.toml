[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "loadshear"
version = "1.0.0"
description = "Building blocks for a TCP/UDP load generator: payload templating, shard metrics, message handler interface and file resolution"
requires-python = ">=3.10"
dependencies = []
keywords = ["load-testing", "traffic-generation", "tcp", "udp", "metrics", "payload"]
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
    "Topic :: Software Development :: Testing :: Traffic Generation",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["loadshear"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
