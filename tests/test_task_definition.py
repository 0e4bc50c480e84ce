import copy

import pytest

from fargate.aws import OperationError
from fargate.ecs.task_definition import (
    CreateTaskDefinitionInput,
    EnvVar,
    Secret,
    TaskDefinitionClient,
    get_revision_number,
    get_task_definition_arn,
    get_task_family,
    resolve_revision_number,
    sort_env_vars,
)

ARN = "arn:aws:ecs:us-east-1:000000000000:task-definition/my-app-dev:25"
NEW_ARN = "arn:aws:ecs:us-east-1:000000000000:task-definition/new:26"


class FakeECS:
    def __init__(self, task_definition=None, tags=None, fail=False):
        self.task_definition = task_definition
        self.tags = tags
        self.fail = fail
        self.describe_calls = []
        self.register_calls = []

    def describe_task_definition(self, **kwargs):
        self.describe_calls.append(kwargs)
        if self.fail:
            raise RuntimeError("boom")
        resp = {"taskDefinition": copy.deepcopy(self.task_definition)}
        if self.tags is not None:
            resp["tags"] = copy.deepcopy(self.tags)
        return resp

    def register_task_definition(self, **kwargs):
        self.register_calls.append(kwargs)
        if self.fail:
            raise RuntimeError("boom")
        return {
            "taskDefinition": {
                "taskDefinitionArn": NEW_ARN,
                "family": kwargs.get("family"),
                "revision": 26,
            }
        }


def base_task_definition():
    return {
        "family": "my-app-dev",
        "cpu": "256",
        "memory": "512",
        "networkMode": "awsvpc",
        "requiresCompatibilities": ["FARGATE"],
        "taskRoleArn": "role",
        "containerDefinitions": [
            {
                "name": "web",
                "image": "app:1",
                "environment": [
                    {"name": "PORT", "value": "8080"},
                    {"name": "MODE", "value": "dev"},
                ],
                "secrets": [{"name": "DB", "valueFrom": "arn:ssm:db"}],
            }
        ],
    }


@pytest.fixture
def fake():
    return FakeECS(base_task_definition(), tags=[{"key": "team", "value": "a"}])


@pytest.fixture
def client(fake):
    return TaskDefinitionClient(fake, "my-app-dev")


def test_sort_env_vars():
    result = sort_env_vars(
        [
            EnvVar(key="PORT", value="8080"),
            EnvVar(key="ENVIRONMENT", value="prod"),
            EnvVar(key="PRODUCT", value="my-app-prod"),
            EnvVar(key="ENABLE_LOGGING", value="false"),
            EnvVar(key="HEALTHCHECK", value="/hc"),
        ]
    )
    assert [v.key for v in result] == [
        "ENABLE_LOGGING",
        "ENVIRONMENT",
        "HEALTHCHECK",
        "PORT",
        "PRODUCT",
    ]


@pytest.mark.parametrize(
    "arn,expected",
    [
        ("arn:aws:ecs:us-east-1:000000000000:task-definition/my-app-dev:25", "my-app-dev"),
        ("arn:aws:ecs:us-east-1:000000000000:task-definition/app-prod:2", "app-prod"),
    ],
)
def test_get_task_family(arn, expected):
    assert get_task_family(arn) == expected


@pytest.mark.parametrize("expr", ["12", "37", "38"])
def test_resolve_revision_number_absolute(expr):
    assert resolve_revision_number(ARN, expr) == expr


@pytest.mark.parametrize("expr,expected", [("-1", "49"), ("-10", "40")])
def test_resolve_revision_number_negative(expr, expected):
    arn = "arn:aws:ecs:us-east-1:000000000000:task-definition/my-app-dev:50"
    assert resolve_revision_number(arn, expr) == expected


@pytest.mark.parametrize("expr,expected", [("+1", "21"), ("+33", "53")])
def test_resolve_revision_number_positive(expr, expected):
    arn = "arn:aws:ecs:us-east-1:000000000000:task-definition/my-app-dev:20"
    assert resolve_revision_number(arn, expr) == expected


@pytest.mark.parametrize(
    "arn,expected",
    [
        ("arn:aws:ecs:us-east-1:000000000000:task-definition/my-app-dev:5", "5"),
        ("arn:aws:ecs:us-east-1:000000000000:task-definition/my-app-dev:12", "12"),
    ],
)
def test_resolve_revision_number_no_input(arn, expected):
    assert resolve_revision_number(arn, "") == expected


@pytest.mark.parametrize("expr", ["q", "-10"])
def test_resolve_revision_number_invalid(expr):
    arn = "arn:aws:ecs:us-east-1:000000000000:task-definition/my-app-dev:2"
    assert resolve_revision_number(arn, expr) == ""


def test_resolve_revision_number_bad_arn():
    assert resolve_revision_number("arn:task-definition/app:latest", "+1") == ""


def test_get_revision_number():
    assert get_revision_number(ARN) == "25"


def test_get_task_definition_arn_round_trip():
    arn = get_task_definition_arn("us-east-1", "000000000000", "my-app-dev", "25")
    assert arn == ARN
    assert get_task_family(arn) == "my-app-dev"


def test_input_environment_and_secrets():
    params = CreateTaskDefinitionInput(
        env_vars=[EnvVar("A", "1")], secret_vars=[Secret("S", "arn:ssm:s")]
    )
    assert params.environment() == [{"name": "A", "value": "1"}]
    assert params.secrets() == [{"name": "S", "valueFrom": "arn:ssm:s"}]


def test_create_task_definition(client, fake):
    params = CreateTaskDefinitionInput(
        cpu="256",
        memory="512",
        image="app:1",
        name="web",
        type="service",
        port=8080,
        log_group_name="/fargate/service/web",
        log_region="us-east-1",
        env_vars=[EnvVar("A", "1")],
    )
    arn = client.create_task_definition(params)
    assert arn == NEW_ARN
    request = fake.register_calls[0]
    assert request["family"] == "service_web"
    assert request["networkMode"] == "awsvpc"
    assert request["requiresCompatibilities"] == ["FARGATE"]
    container = request["containerDefinitions"][0]
    assert container["portMappings"] == [{"containerPort": 8080}]
    assert container["logConfiguration"]["options"]["awslogs-stream-prefix"] == "fargate"
    assert container["environment"] == [{"name": "A", "value": "1"}]
    assert "secrets" not in container
    assert "tags" not in request


def test_create_task_definition_without_port(client, fake):
    arn = client.create_task_definition(CreateTaskDefinitionInput(name="job", type="task"))
    assert arn == NEW_ARN
    assert "portMappings" not in fake.register_calls[0]["containerDefinitions"][0]
    assert fake.register_calls[0]["family"] == "task_job"


def test_create_task_definition_error():
    client = TaskDefinitionClient(FakeECS(fail=True), "c")
    with pytest.raises(OperationError, match="Couldn't register ECS task definition"):
        client.create_task_definition(CreateTaskDefinitionInput())


def test_describe_task_definition_is_cached(client, fake):
    first = client.describe_task_definition(ARN)
    second = client.describe_task_definition(ARN)
    assert first is second
    assert fake.describe_calls == [{"taskDefinition": ARN, "include": ["TAGS"]}]


def test_describe_task_definition_error():
    client = TaskDefinitionClient(FakeECS(fail=True), "c")
    with pytest.raises(OperationError, match="Could not describe ECS task definition"):
        client.describe_task_definition(ARN)


def test_update_image_keeps_tags(client, fake):
    arn = client.update_task_definition_image(ARN, "app:2")
    assert arn == NEW_ARN
    request = fake.register_calls[0]
    assert request["containerDefinitions"][0]["image"] == "app:2"
    assert request["tags"] == [{"key": "team", "value": "a"}]
    assert request["family"] == "my-app-dev"
    assert "volumes" not in request


def test_update_image_and_env_vars_append(client, fake):
    arn = client.update_task_definition_image_and_env_vars(
        ARN, "", [EnvVar("NEW", "x")], False, [Secret("KEY", "arn:ssm:k")]
    )
    assert arn == NEW_ARN
    container = fake.register_calls[0]["containerDefinitions"][0]
    assert container["image"] == "app:1"
    assert [e["name"] for e in container["environment"]] == ["PORT", "MODE", "NEW"]
    assert [s["name"] for s in container["secrets"]] == ["DB", "KEY"]


def test_update_image_and_env_vars_replace(client, fake):
    arn = client.update_task_definition_image_and_env_vars(
        ARN, "app:3", [EnvVar("ONLY", "1")], True, []
    )
    assert arn == NEW_ARN
    container = fake.register_calls[0]["containerDefinitions"][0]
    assert container["image"] == "app:3"
    assert container["environment"] == [{"name": "ONLY", "value": "1"}]
    assert container["secrets"] == [{"name": "DB", "valueFrom": "arn:ssm:db"}]


def test_add_env_vars_overrides_same_name(client, fake):
    arn = client.add_env_vars_to_task_definition(
        ARN, [EnvVar("PORT", "9090")], [Secret("DB", "arn:ssm:other")]
    )
    assert arn == NEW_ARN
    container = fake.register_calls[0]["containerDefinitions"][0]
    assert container["environment"] == [
        {"name": "PORT", "value": "9090"},
        {"name": "MODE", "value": "dev"},
    ]
    assert container["secrets"] == [{"name": "DB", "valueFrom": "arn:ssm:other"}]


def test_remove_env_vars(client, fake):
    arn = client.remove_env_vars_from_task_definition(ARN, ["PORT", "DB"])
    assert arn == NEW_ARN
    container = fake.register_calls[0]["containerDefinitions"][0]
    assert container["environment"] == [{"name": "MODE", "value": "dev"}]
    assert container["secrets"] == []


def test_get_env_and_secret_vars(client):
    assert client.get_env_vars_from_task_definition(ARN) == [
        EnvVar("PORT", "8080"),
        EnvVar("MODE", "dev"),
    ]
    assert client.get_secret_vars_from_task_definition(ARN) == [EnvVar("DB", "arn:ssm:db")]


def test_update_cpu_and_memory(client, fake):
    arn = client.update_task_definition_cpu_and_memory(ARN, "1024", "")
    assert arn == NEW_ARN
    request = fake.register_calls[0]
    assert request["cpu"] == "1024"
    assert request["memory"] == "512"
    assert client.get_cpu_and_memory_from_task_definition(ARN) == ("1024", "512")


def test_register_error(fake):
    client = TaskDefinitionClient(fake, "c")
    client.describe_task_definition(ARN)
    fake.fail = True
    with pytest.raises(OperationError, match="Could not register ECS task definition"):
        client.update_task_definition_image(ARN, "app:2")