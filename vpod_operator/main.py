import os
from typing import Optional

import kopf
import kubernetes

from podsync import PodSyncer
from podsync.logging_config import get_logger, setup_logging
from podsync.translate import DefaultPodTranslator, PodSecurityValidator

from .clients import KubeClusterClient, new_api_client
from .config import SyncerConfig
from .controller import PodController
from .events import KubeEventRecorder
from .metrics import start_metrics_server

controller: Optional[PodController] = None


def build_controller(cfg: SyncerConfig) -> PodController:
    """Wire clients, translator and syncer for one tenant."""
    virtual_api = new_api_client(cfg.virtual_kubeconfig)
    physical_api = new_api_client(cfg.physical_kubeconfig)
    virtual_client = KubeClusterClient(virtual_api, name="virtual")
    physical_client = KubeClusterClient(physical_api, name="physical")
    recorder = KubeEventRecorder(virtual_api)

    translator = DefaultPodTranslator(
        virtual_client,
        target_namespace=cfg.target_namespace,
        suffix=cfg.name,
        rewrite_hosts=cfg.rewrite_hosts,
    )
    validator = None
    if cfg.pod_security_standard:
        validator = PodSecurityValidator(cfg.pod_security_standard, recorder=recorder)

    syncer = PodSyncer(
        virtual_client=virtual_client,
        physical_client=physical_client,
        translator=translator,
        recorder=recorder,
        virtual_logs_path=cfg.virtual_logs_path,
        tolerations=cfg.parsed_tolerations(),
        node_selector=cfg.parsed_node_selector(),
        enable_scheduler=cfg.enable_scheduler,
        security_validator=validator,
    )
    return PodController(
        syncer,
        target_namespace=cfg.target_namespace,
        workers=cfg.workers,
        physical_list_func=physical_client.core_api.list_namespaced_pod,
        resync_seconds=cfg.resync_seconds,
    )


@kopf.on.login()
def _login(**kwargs):
    # kopf watches the virtual API server
    kubeconfig = os.getenv("PODSYNC_VIRTUAL_KUBECONFIG")
    if kubeconfig:
        kubernetes.config.load_kube_config(config_file=kubeconfig)
    else:
        try:
            kubernetes.config.load_incluster_config()
        except kubernetes.config.ConfigException:
            kubernetes.config.load_kube_config()
    return kopf.login_via_client(**kwargs)


@kopf.on.startup()
def _startup(settings: kopf.OperatorSettings, **_):
    global controller

    setup_logging()

    metrics_enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    metrics_port = int(os.getenv("METRICS_PORT", "8080"))
    start_metrics_server(enabled=metrics_enabled, port=metrics_port)

    # kopf would post its own log lines as events on every pod
    settings.posting.enabled = False

    cfg = SyncerConfig.from_env()
    controller = build_controller(cfg)
    controller.start()

    logger = get_logger(__name__)
    logger.info("Operator startup complete", extra={
        "target_namespace": cfg.target_namespace,
        "workers": cfg.workers,
        "metrics_enabled": metrics_enabled,
        "metrics_port": metrics_port,
    })


@kopf.on.cleanup()
def _cleanup(**_):
    if controller is not None:
        controller.stop()


@kopf.on.event('', 'v1', 'pods')
def pod_event(event, name, namespace, **_):
    if controller is None:
        return
    controller.on_virtual_pod(namespace, name, deleted=(event.get("type") == "DELETED"))


@kopf.on.update('', 'v1', 'namespaces', field='metadata.labels')
def namespace_labels_changed(name, old, new, **_):
    if controller is None:
        return
    count = controller.on_namespace_labels(name, old, new)
    get_logger(__name__).debug(f"namespace {name} labels changed, enqueued {count} pods")
