[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ebscloud"
version = "0.1.0"
description = "EBS volume, attachment and snapshot management over an injectable EC2 client"
requires-python = ">=3.10"
dependencies = []
keywords = ["ebs", "ec2", "volumes", "snapshots", "block-storage", "metrics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ebscloud"]

[tool.pytest.ini_options]
addopts = "-ra"
