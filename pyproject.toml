[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fargate"
version = "0.1.0"
description = "Helpers for managing containers on AWS Fargate: ECS services, tasks, task definitions, load balancers and docker-compose files"
requires-python = ">=3.10"
keywords = ["aws", "fargate", "ecs", "elbv2", "docker-compose", "containers"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["fargate"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
