from datetime import datetime, timezone

import pytest

from fargate.aws import ApiError, OperationError
from fargate.ecs.service import ECS, CreateServiceInput, Event, Service
from fargate.ecs.task_definition import EnvVar

TD_ARN = "arn:aws:ecs:us-east-1:000000000000:task-definition/my-app-dev:25"
OLD_TD_ARN = "arn:aws:ecs:us-east-1:000000000000:task-definition/my-app-dev:24"


class FakeEcs:
    def __init__(self, services=None, pages=None, fail=None):
        self.services = services or []
        self.pages = pages or []
        self.fail = fail
        self.calls = []

    def _record(self, name, kwargs):
        self.calls.append((name, kwargs))
        if isinstance(self.fail, dict) and name in self.fail:
            raise self.fail[name]

    def create_cluster(self, **kwargs):
        self._record("create_cluster", kwargs)
        return {"cluster": {"clusterArn": "arn:cluster/" + kwargs["clusterName"]}}

    def create_service(self, **kwargs):
        self._record("create_service", kwargs)
        return {}

    def update_service(self, **kwargs):
        self._record("update_service", kwargs)
        return {}

    def delete_service(self, **kwargs):
        self._record("delete_service", kwargs)
        return {}

    def list_services(self, **kwargs):
        self._record("list_services", kwargs)
        index = int(kwargs.get("nextToken", "0"))
        page = dict(self.pages[index])
        if index + 1 < len(self.pages):
            page["nextToken"] = str(index + 1)
        return page

    def describe_services(self, **kwargs):
        self._record("describe_services", kwargs)
        wanted = set(kwargs["services"])
        return {"services": [s for s in self.services if s["serviceName"] in wanted]}

    def describe_task_definition(self, **kwargs):
        self._record("describe_task_definition", kwargs)
        arn = kwargs["taskDefinition"]
        return {
            "taskDefinition": {
                "cpu": "256",
                "memory": "512",
                "taskRoleArn": "arn:role",
                "containerDefinitions": [
                    {
                        "image": "web:" + arn.split(":")[-1],
                        "environment": [{"name": "PORT", "value": "8080"}],
                        "secrets": [{"name": "QUX", "valueFrom": "arn:param"}],
                    }
                ],
            }
        }


def _raw_service(name):
    created = datetime(2020, 1, 1, tzinfo=timezone.utc)
    return {
        "serviceName": name,
        "desiredCount": 2,
        "pendingCount": 0,
        "runningCount": 2,
        "status": "ACTIVE",
        "taskDefinition": TD_ARN,
        "networkConfiguration": {
            "awsvpcConfiguration": {"subnets": ["subnet-1"], "securityGroups": ["sg-1"]}
        },
        "loadBalancers": [{"targetGroupArn": "arn:tg"}],
        "serviceRegistries": [{"registryArn": "arn:reg", "port": 80}],
        "events": [{"createdAt": created, "message": "steady"}],
        "deployments": [
            {"status": "PRIMARY", "desiredCount": 2, "taskDefinition": TD_ARN, "createdAt": created},
            {"status": "ACTIVE", "desiredCount": 0, "taskDefinition": OLD_TD_ARN},
        ],
    }


def test_add_event_and_deployment_append():
    service = Service()
    event = Event(message="hello")
    service.add_event(event)
    assert service.events == [event]


def test_create_cluster_returns_arn():
    svc = FakeEcs()
    assert ECS(svc, "my-app-dev").create_cluster() == "arn:cluster/my-app-dev"


def test_create_service_with_load_balancer():
    svc = FakeEcs()
    ECS(svc, "cluster").create_service(
        CreateServiceInput(
            cluster="cluster",
            desired_count=1,
            name="web",
            port=8080,
            security_group_ids=["sg-1"],
            subnet_ids=["subnet-1"],
            target_group_arn="arn:tg",
            task_definition_arn=TD_ARN,
        )
    )
    _, kwargs = svc.calls[0]
    assert kwargs["loadBalancers"] == [
        {"targetGroupArn": "arn:tg", "containerPort": 8080, "containerName": "web"}
    ]
    assert kwargs["launchType"] == "FARGATE"


def test_create_service_without_port_has_no_load_balancer():
    svc = FakeEcs()
    ECS(svc, "cluster").create_service(
        CreateServiceInput(name="web", target_group_arn="arn:tg", task_definition_arn=TD_ARN)
    )
    assert "loadBalancers" not in svc.calls[0][1]


def test_create_service_error():
    svc = FakeEcs(fail={"create_service": RuntimeError("boom")})
    with pytest.raises(OperationError, match="Couldn't create ECS service"):
        ECS(svc, "cluster").create_service(CreateServiceInput(name="web"))


def test_describe_service_maps_fields():
    svc = FakeEcs(services=[_raw_service("web")])
    service = ECS(svc, "cluster").describe_service("web")
    assert service.name == "web"
    assert service.desired_count == 2
    assert service.subnet_ids == ["subnet-1"]
    assert service.security_group_ids == ["sg-1"]
    assert service.target_group_arn == "arn:tg"
    assert service.cpu == "256"
    assert service.image == "web:25"
    assert service.env_vars == [EnvVar(key="PORT", value="8080")]
    assert service.secret_vars == [EnvVar(key="QUX", value="arn:param")]
    assert service.service_registries[0].registry_arn == "arn:reg"
    assert [e.message for e in service.events] == ["steady"]
    assert [(d.id, d.image) for d in service.deployments] == [("25", "web:25"), ("24", "web:24")]


def test_task_definition_is_described_once_per_arn():
    svc = FakeEcs(services=[_raw_service("web")])
    ECS(svc, "cluster").describe_service("web")
    described = [c[1]["taskDefinition"] for c in svc.calls if c[0] == "describe_task_definition"]
    assert sorted(described) == sorted({TD_ARN, OLD_TD_ARN})


def test_describe_service_not_found():
    svc = FakeEcs()
    with pytest.raises(OperationError, match="Could not find missing"):
        ECS(svc, "cluster").describe_service("missing")


def test_get_desired_count():
    svc = FakeEcs(services=[_raw_service("web")])
    assert ECS(svc, "cluster").get_desired_count("web") == 2


def test_list_services_follows_pages():
    svc = FakeEcs(
        services=[_raw_service("a"), _raw_service("b")],
        pages=[{"serviceArns": ["a"]}, {"serviceArns": []}, {"serviceArns": ["b"]}],
    )
    names = [s.name for s in ECS(svc, "cluster").list_services()]
    assert names == ["a", "b"]


def test_set_desired_count_request():
    svc = FakeEcs()
    ECS(svc, "cluster").set_desired_count("web", 3)
    assert svc.calls == [
        ("update_service", {"cluster": "cluster", "service": "web", "desiredCount": 3})
    ]


def test_restart_service_not_found():
    svc = FakeEcs(fail={"update_service": ApiError("ServiceNotFoundException", "gone")})
    with pytest.raises(OperationError, match="Service web not found"):
        ECS(svc, "cluster").restart_service("web")


def test_restart_service_other_error():
    svc = FakeEcs(fail={"update_service": RuntimeError("boom")})
    with pytest.raises(OperationError, match="Could not restart service"):
        ECS(svc, "cluster").restart_service("web")


def test_destroy_service_error():
    svc = FakeEcs(fail={"delete_service": RuntimeError("boom")})
    with pytest.raises(OperationError, match="Could not destroy ECS service"):
        ECS(svc, "cluster").destroy_service("web")