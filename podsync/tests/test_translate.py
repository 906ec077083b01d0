"""
Tests for the default translator and readiness gate merger.
"""

from kubernetes import client

from podsync.core.constants import (
    HOSTS_REWRITE_CONTAINER_NAME,
    HOSTS_REWRITTEN_ANNOTATION,
    MANAGED_BY_LABEL,
    NAME_ANNOTATION,
    NAMESPACE_LABEL,
    UID_ANNOTATION,
)
from podsync.translate import DefaultPodTranslator, ReadinessGateMerger, safe_concat_name
from podsync.tests.fakes import FakeCluster, make_pod


def _translator(virtual=None, **kwargs):
    return DefaultPodTranslator(virtual or FakeCluster(), target_namespace="host", suffix="t1", **kwargs)


def test_safe_concat_name_short():
    assert safe_concat_name("web-0", "x", "tenant-a", "x", "t1") == "web-0-x-tenant-a-x-t1"


def test_safe_concat_name_long_is_bounded_and_stable():
    long_name = "a" * 60
    first = safe_concat_name(long_name, "x", "tenant-a", "x", "t1")
    second = safe_concat_name(long_name, "x", "tenant-a", "x", "t1")
    other = safe_concat_name(long_name, "x", "tenant-b", "x", "t1")

    assert len(first) == 63
    assert first == second
    assert first != other


def test_physical_name():
    assert _translator().physical_name("tenant-a", "web-0") == ("host", "web-0-x-tenant-a-x-t1")


def test_translate_sets_identity_and_drops_virtual_only_fields():
    vpod = make_pod(
        service_account_name="builder",
        ephemeral_containers=[client.V1EphemeralContainer(name="dbg", image="busybox")],
        status=client.V1PodStatus(phase="Running"),
    )
    ppod = _translator().translate(vpod)

    assert ppod.metadata.namespace == "host"
    assert ppod.metadata.name == "web-0-x-tenant-a-x-t1"
    assert ppod.metadata.uid is None
    assert ppod.metadata.labels[MANAGED_BY_LABEL] == "t1"
    assert ppod.metadata.labels[NAMESPACE_LABEL] == "tenant-a"
    assert ppod.metadata.annotations[NAME_ANNOTATION] == "web-0"
    assert ppod.metadata.annotations[UID_ANNOTATION] == "uid-virtual"
    assert ppod.status is None
    assert ppod.spec.hostname == "web-0"
    assert ppod.spec.service_account_name is None
    assert ppod.spec.automount_service_account_token is False
    assert ppod.spec.ephemeral_containers is None

    # the virtual object is not modified
    assert vpod.metadata.name == "web-0"
    assert vpod.spec.service_account_name == "builder"


def test_translate_injects_service_env_and_resolves_self_references():
    virtual = FakeCluster()
    virtual.add_service("default", "kubernetes", "10.0.0.1")
    virtual.add_service("tenant-a", "redis", "10.0.0.30", ports=[client.V1ServicePort(port=6379)])
    virtual.add_service("tenant-a", "headless", "None", ports=[client.V1ServicePort(port=80)])
    vpod = make_pod(containers=[
        client.V1Container(
            name="app",
            image="app:1",
            env=[
                client.V1EnvVar(name="REDIS_SERVICE_HOST", value="override"),
                client.V1EnvVar(
                    name="POD_NAME",
                    value_from=client.V1EnvVarSource(field_ref=client.V1ObjectFieldSelector(field_path="metadata.name")),
                ),
                client.V1EnvVar(
                    name="NODE",
                    value_from=client.V1EnvVarSource(field_ref=client.V1ObjectFieldSelector(field_path="spec.nodeName")),
                ),
            ],
        ),
    ])

    ppod = _translator(virtual).translate(vpod)
    env = {e.name: e for e in ppod.spec.containers[0].env}

    assert env["REDIS_SERVICE_HOST"].value == "override"
    assert env["REDIS_SERVICE_PORT"].value == "6379"
    assert env["KUBERNETES_SERVICE_PORT_HTTPS"].value == "443"
    assert env["POD_NAME"].value == "web-0"
    assert env["NODE"].value_from.field_ref.field_path == "spec.nodeName"
    assert not any(name.startswith("HEADLESS_") for name in env)


def test_service_links_disabled_keeps_kubernetes_service():
    services = [
        client.V1Service(
            metadata=client.V1ObjectMeta(name="db"),
            spec=client.V1ServiceSpec(cluster_ip="10.0.0.5", ports=[client.V1ServicePort(port=5432)]),
        ),
    ]
    env = _translator().translate_services_to_env(False, services, "10.0.0.1")
    assert "DB_SERVICE_HOST" not in env
    assert env["KUBERNETES_SERVICE_HOST"] == "10.0.0.1"


def test_hosts_rewrite_added_for_subdomain():
    ppod = _translator().translate(make_pod(subdomain="web"))

    assert ppod.spec.init_containers[0].name == HOSTS_REWRITE_CONTAINER_NAME
    assert ppod.metadata.annotations[HOSTS_REWRITTEN_ANNOTATION] == "true"
    mounts = ppod.spec.containers[0].volume_mounts
    assert [(m.mount_path, m.sub_path) for m in mounts] == [("/etc/hosts", "hosts")]


def test_hosts_rewrite_disabled():
    ppod = _translator(rewrite_hosts=False).translate(make_pod(subdomain="web"))
    assert ppod.spec.init_containers is None
    assert HOSTS_REWRITTEN_ANNOTATION not in ppod.metadata.annotations


def test_translate_update_none_when_in_sync():
    translator = _translator()
    vpod = make_pod()
    ppod = translator.translate(vpod)
    assert translator.translate_update(ppod, vpod) is None


def test_translate_update_carries_mutable_fields():
    translator = _translator()
    vpod = make_pod()
    ppod = translator.translate(vpod)

    vpod.spec.containers[0].image = "nginx:1.26"
    vpod.spec.active_deadline_seconds = 600
    vpod.spec.tolerations = [client.V1Toleration(key="spot", operator="Exists")]
    vpod.metadata.annotations = {"team": "web"}

    updated = translator.translate_update(ppod, vpod)

    assert updated is not ppod
    assert updated.spec.containers[0].image == "nginx:1.26"
    assert updated.spec.active_deadline_seconds == 600
    assert [t.key for t in updated.spec.tolerations] == ["spot"]
    assert updated.metadata.annotations["team"] == "web"
    assert ppod.spec.containers[0].image == "nginx:1.25"


def test_translate_update_keeps_hosts_annotation():
    translator = _translator()
    vpod = make_pod(subdomain="web")
    ppod = translator.translate(vpod)
    assert translator.translate_update(ppod, vpod) is None


def test_readiness_gate_merger_noop_without_gates():
    physical = FakeCluster()
    ppod = make_pod(namespace="host")
    assert ReadinessGateMerger(physical).update_conditions(ppod, make_pod()) is False
    assert physical.calls == []


def test_readiness_gate_merger_updates_changed_condition():
    physical = FakeCluster()
    ppod = physical.add_pod(make_pod(
        namespace="host",
        status=client.V1PodStatus(conditions=[
            client.V1PodCondition(type="Ready", status="False"),
            client.V1PodCondition(type="example.com/gate", status="False"),
        ]),
    ))
    vpod = make_pod(
        readiness_gates=[client.V1PodReadinessGate(condition_type="example.com/gate")],
        status=client.V1PodStatus(conditions=[client.V1PodCondition(type="example.com/gate", status="True")]),
    )

    assert ReadinessGateMerger(physical).update_conditions(ppod, vpod) is True

    conditions = {c.type: c.status for c in physical.pods[("host", "web-0")].status.conditions}
    assert conditions == {"Ready": "False", "example.com/gate": "True"}


def test_readiness_gate_merger_skips_unset_gate():
    physical = FakeCluster()
    ppod = make_pod(namespace="host")
    vpod = make_pod(readiness_gates=[client.V1PodReadinessGate(condition_type="example.com/gate")])

    assert ReadinessGateMerger(physical).update_conditions(ppod, vpod) is False
    assert ppod.status is None
