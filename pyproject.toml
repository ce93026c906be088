[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "iodine"
version = "0.1.0"
description = "Building blocks for tunnelling IPv4 over DNS: tun devices, a user address table and DNS header handling"
requires-python = ">=3.10"
dependencies = []
keywords = ["dns", "tunnel", "tun", "utun", "networking"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Operating System :: POSIX :: BSD",
    "Operating System :: MacOS",
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

[tool.hatch.build.targets.wheel]
packages = ["iodine"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
