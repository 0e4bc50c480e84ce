"""ECS clusters, services, tasks and task definitions."""