"""Tools for running containers on AWS Fargate: ECS, EC2, ELBv2, service discovery, STS and docker-compose files."""

__version__ = "0.1.0"