# fargate

A Python library for working with containers on AWS Fargate. It wraps the
ECS, EC2, Elastic Load Balancing (v2), Cloud Map service discovery and STS
APIs in small operations that return dataclasses, and reads and writes
`docker-compose.yml` files.

The AWS clients are passed in by you: any object whose methods take the API
fields as keyword arguments and return plain dictionaries works, for example
a boto3 client or a test double. The package itself does not depend on boto3.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `fargate.dockercompose` – `read(file)` loads a compose file by running
  `docker-compose -f <file> config` (so `docker-compose` must be on the
  `PATH`); `unmarshal_compose_yaml` parses YAML using either the short
  (`"80:8080/tcp"`) or the long port syntax; `new(file)` gives an empty
  `ComposeFile`, to which `add_service` adds services; `yaml()` and `write()`
  produce and save the YAML.
- `fargate.ec2` – `SDKClient(client)`: default subnets, the `fargate-default`
  security group (look up, create, open to all ingress), the VPC of a subnet,
  and network interfaces with a public address.
- `fargate.ecs.task_definition` – `TaskDefinitionClient(svc, cluster_name)`
  registers task definitions and new revisions with a changed image, CPU,
  memory, environment variables or secrets; described task definitions are
  cached per client. Module functions `get_revision_number`,
  `get_task_family`, `get_task_definition_arn`, `sort_env_vars` and
  `resolve_revision_number` (absolute revisions or deltas such as `+1`,
  `-10`; returns `""` when the result is invalid or not positive).
- `fargate.ecs.task` – `TaskClient` runs, lists, describes and stops tasks and
  groups them by the name they were started under; `determine_eni_details`
  finds a task's network interface and subnet.
- `fargate.ecs.service` – `ECS(svc, cluster_name)`, which also carries all
  task and task definition operations, creates clusters and services, scales,
  restarts, updates, destroys and describes services, and waits for them to
  become stable.
- `fargate.elbv2.load_balancer` and `fargate.elbv2.target_group` –
  `LoadBalancerOperations` and `TargetGroupOperations`.
- `fargate.elbv2.listener` – `SDKClient(client)`, which combines the load
  balancer and target group operations with listeners and routing rules
  (`HOST` and `PATH` rules; new rules get the listener's highest priority
  plus 10).
- `fargate.servicediscovery` – `ServiceDiscovery(svc)` looks up namespaces and
  registry services.
- `fargate.sts` – `STS(svc).get_caller_identity()`.

## Errors

Most failed calls are raised as `fargate.aws.OperationError`, whose `cause`
holds the underlying exception. A few operations let the client's exception
through unchanged (`create_load_balancer`, `create_target_group`,
`create_listener`, `describe_listeners`, `create_cluster`,
`authorize_all_security_group_ingress`), and a few ignore failures of the
final call (`modify_listener_default_action`, `add_rule_to_listener`,
`delete_target_group`). A client can report a service error code by raising
`fargate.aws.ApiError`; the code `InvalidGroup.NotFound` makes
`get_default_security_group_id` return `""`, and `ServiceNotFoundException`
gives `restart_service` a "Service ... not found" error.

## Example

```python
from fargate import dockercompose
from fargate.ecs.task_definition import resolve_revision_number, get_task_family

arn = "arn:aws:ecs:us-east-1:000000000000:task-definition/my-app-dev:50"
print(get_task_family(arn))                # my-app-dev
print(resolve_revision_number(arn, "-1"))  # 49

compose = dockercompose.unmarshal_compose_yaml(b"""
services:
  web:
    image: my-service:0.1.0
    ports:
      - "80:8080/tcp"
""")
print(compose.services["web"].ports[0].target)  # 8080
```

## What it does not do

This is a library only: there is no command-line tool. It does not create AWS
sessions, clients or credentials, and it does not talk to CloudWatch Logs,
ACM, IAM or Route 53.