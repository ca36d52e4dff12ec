"""Builders for the driver workloads, the CSIDriver and the security context constraints."""

from __future__ import annotations

import os
from typing import Any

from ..constants import (
    APP_MANILA_CSI,
    CA_CERT_CONFIG_MAP_NAME,
    CA_CERT_MOUNT_PATH,
    DRIVER_NAMESPACE,
    LABEL_APP,
    MANILA_CSI_DRIVER_NAME,
    SCC_NAME,
)
from .common import object_meta
from .rbac import (
    CONTROLLER_PLUGIN_LABELS,
    CONTROLLER_PLUGIN_NAME,
    NFS_NODE_PLUGIN_LABELS,
    NFS_NODE_PLUGIN_NAME,
    NODE_PLUGIN_LABELS,
    NODE_PLUGIN_NAME,
)

MANILA_CSI_IMAGE = os.getenv("MANILA_CSI_IMAGE", "quay.io/openshift/origin-csi-driver-manila:latest")
NFS_CSI_IMAGE = os.getenv("NFS_CSI_IMAGE", "quay.io/openshift/origin-csi-driver-nfs:latest")
CSI_PROVISIONER_IMAGE = os.getenv("CSI_PROVISIONER_IMAGE", "quay.io/openshift/origin-csi-external-provisioner:latest")
CSI_SNAPSHOTTER_IMAGE = os.getenv("CSI_SNAPSHOTTER_IMAGE", "quay.io/openshift/origin-csi-external-snapshotter:latest")
CSI_NODE_DRIVER_REGISTRAR_IMAGE = os.getenv(
    "CSI_NODE_DRIVER_REGISTRAR_IMAGE", "quay.io/openshift/origin-csi-node-driver-registrar:latest"
)

KUBELET_DIR = "/var/lib/kubelet"
PLUGINS_DIR = f"{KUBELET_DIR}/plugins"
MANILA_PLUGIN_DIR = f"{PLUGINS_DIR}/{MANILA_CSI_DRIVER_NAME}"
NFS_PLUGIN_DIR = f"{PLUGINS_DIR}/csi-nfsplugin"


def _host_path_volume(name: str, path: str, type_: str = "DirectoryOrCreate") -> dict[str, Any]:
    return {"name": name, "hostPath": {"path": path, "type": type_}}


def _mount(name: str, path: str, **extra: Any) -> dict[str, Any]:
    return {"name": name, "mountPath": path, **extra}


def _env(name: str, value: str) -> dict[str, str]:
    return {"name": name, "value": value}


def _ca_cert_volume() -> dict[str, Any]:
    return {"name": "cacert", "configMap": {"name": CA_CERT_CONFIG_MAP_NAME, "optional": True}}


def _node_driver_registrar(plugin_dir: str) -> dict[str, Any]:
    return {
        "name": "node-driver-registrar",
        "image": CSI_NODE_DRIVER_REGISTRAR_IMAGE,
        "args": [
            "--v=5",
            "--csi-address=/csi/csi.sock",
            f"--kubelet-registration-path={plugin_dir}/csi.sock",
        ],
        "lifecycle": {
            "preStop": {"exec": {"command": ["/bin/sh", "-c", "rm -rf /registration/*.sock"]}}
        },
        "env": [{"name": "KUBE_NODE_NAME", "valueFrom": {"fieldRef": {"fieldPath": "spec.nodeName"}}}],
        "volumeMounts": [
            _mount("plugin-dir", "/csi"),
            _mount("registration-dir", "/registration"),
        ],
    }


def _daemon_set(name: str, labels: dict[str, str], containers: list[dict[str, Any]], volumes: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": object_meta(name, DRIVER_NAMESPACE, labels),
        "spec": {
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "serviceAccountName": name,
                    "hostNetwork": True,
                    "dnsPolicy": "ClusterFirstWithHostNet",
                    "priorityClassName": "system-node-critical",
                    "tolerations": [{"operator": "Exists"}],
                    "containers": containers,
                    "volumes": volumes,
                },
            },
        },
    }


def build_security_context_constraints() -> dict[str, Any]:
    """Build the SCC allowing the node plugins to run privileged."""
    return {
        "apiVersion": "security.openshift.io/v1",
        "kind": "SecurityContextConstraints",
        "metadata": object_meta(SCC_NAME, labels={LABEL_APP: APP_MANILA_CSI}),
        "allowHostDirVolumePlugin": True,
        "allowHostIPC": True,
        "allowHostNetwork": True,
        "allowHostPID": True,
        "allowHostPorts": True,
        "allowPrivilegeEscalation": True,
        "allowPrivilegedContainer": True,
        "allowedCapabilities": ["*"],
        "fsGroup": {"type": "RunAsAny"},
        "readOnlyRootFilesystem": False,
        "runAsUser": {"type": "RunAsAny"},
        "seLinuxContext": {"type": "RunAsAny"},
        "supplementalGroups": {"type": "RunAsAny"},
        "volumes": ["*"],
        "users": [
            f"system:serviceaccount:{DRIVER_NAMESPACE}:{CONTROLLER_PLUGIN_NAME}",
            f"system:serviceaccount:{DRIVER_NAMESPACE}:{NODE_PLUGIN_NAME}",
            f"system:serviceaccount:{DRIVER_NAMESPACE}:{NFS_NODE_PLUGIN_NAME}",
        ],
    }


def build_nfs_node_plugin_daemon_set() -> dict[str, Any]:
    """Build the DaemonSet running the NFS node plugin Manila delegates mounts to."""
    containers = [
        _node_driver_registrar(NFS_PLUGIN_DIR),
        {
            "name": "nfs",
            "image": NFS_CSI_IMAGE,
            "args": ["--nodeid=$(NODE_ID)", "--endpoint=unix://plugin/csi.sock"],
            "env": [{"name": "NODE_ID", "valueFrom": {"fieldRef": {"fieldPath": "spec.nodeName"}}}],
            "securityContext": {"privileged": True, "capabilities": {"add": ["SYS_ADMIN"]}, "allowPrivilegeEscalation": True},
            "volumeMounts": [
                _mount("plugin-dir", "/plugin"),
                _mount("pods-mount-dir", f"{KUBELET_DIR}/pods", mountPropagation="Bidirectional"),
            ],
        },
    ]
    volumes = [
        _host_path_volume("plugin-dir", NFS_PLUGIN_DIR),
        _host_path_volume("registration-dir", f"{KUBELET_DIR}/plugins_registry", "Directory"),
        _host_path_volume("pods-mount-dir", f"{KUBELET_DIR}/pods", "Directory"),
    ]
    return _daemon_set(NFS_NODE_PLUGIN_NAME, NFS_NODE_PLUGIN_LABELS, containers, volumes)


def build_csi_driver() -> dict[str, Any]:
    """Build the CSIDriver registration of the Manila driver."""
    return {
        "apiVersion": "storage.k8s.io/v1",
        "kind": "CSIDriver",
        "metadata": object_meta(MANILA_CSI_DRIVER_NAME, labels={LABEL_APP: APP_MANILA_CSI}),
        "spec": {"attachRequired": False, "podInfoOnMount": False},
    }


def build_controller_plugin_deployment() -> dict[str, Any]:
    """Build the Deployment running the Manila controller plugin with its sidecars."""
    socket_dir = "/var/lib/csi/sockets/pluginproxy"
    containers = [
        {
            "name": "csi-provisioner",
            "image": CSI_PROVISIONER_IMAGE,
            "args": ["--v=5", "--csi-address=$(ADDRESS)"],
            "env": [_env("ADDRESS", f"unix://{socket_dir}/csi.sock")],
            "volumeMounts": [_mount("plugin-dir", socket_dir)],
        },
        {
            "name": "csi-snapshotter",
            "image": CSI_SNAPSHOTTER_IMAGE,
            "args": ["--v=5", "--csi-address=$(ADDRESS)"],
            "env": [_env("ADDRESS", f"unix://{socket_dir}/csi.sock")],
            "volumeMounts": [_mount("plugin-dir", socket_dir)],
        },
        {
            "name": "csi-manila-plugin",
            "image": MANILA_CSI_IMAGE,
            "command": ["/bin/sh", "-c"],
            "args": [
                "/usr/bin/manila-csi-plugin"
                " --nodeid=$(NODE_ID)"
                " --endpoint=$(CSI_ENDPOINT)"
                " --drivername=$(DRIVER_NAME)"
                " --share-protocol-selector=$(MANILA_SHARE_PROTO)"
                " --fwdendpoint=$(FWD_CSI_ENDPOINT)"
            ],
            "env": [
                _env("DRIVER_NAME", MANILA_CSI_DRIVER_NAME),
                {"name": "NODE_ID", "valueFrom": {"fieldRef": {"fieldPath": "spec.nodeName"}}},
                _env("CSI_ENDPOINT", f"unix://{socket_dir}/csi.sock"),
                _env("FWD_CSI_ENDPOINT", f"unix://{NFS_PLUGIN_DIR}/csi.sock"),
                _env("MANILA_SHARE_PROTO", "NFS"),
            ],
            "volumeMounts": [
                _mount("plugin-dir", socket_dir),
                _mount("fwd-plugin-dir", NFS_PLUGIN_DIR),
                _mount("cacert", CA_CERT_MOUNT_PATH, readOnly=True),
            ],
        },
    ]
    volumes = [
        {"name": "plugin-dir", "emptyDir": {}},
        _host_path_volume("fwd-plugin-dir", NFS_PLUGIN_DIR),
        _ca_cert_volume(),
    ]
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": object_meta(CONTROLLER_PLUGIN_NAME, DRIVER_NAMESPACE, CONTROLLER_PLUGIN_LABELS),
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": dict(CONTROLLER_PLUGIN_LABELS)},
            "template": {
                "metadata": {"labels": dict(CONTROLLER_PLUGIN_LABELS)},
                "spec": {
                    "serviceAccountName": CONTROLLER_PLUGIN_NAME,
                    "priorityClassName": "system-cluster-critical",
                    "nodeSelector": {"node-role.kubernetes.io/master": ""},
                    "tolerations": [{"key": "node-role.kubernetes.io/master", "operator": "Exists", "effect": "NoSchedule"}],
                    "containers": containers,
                    "volumes": volumes,
                },
            },
        },
    }


def build_node_plugin_daemon_set() -> dict[str, Any]:
    """Build the DaemonSet running the Manila node plugin."""
    containers = [
        _node_driver_registrar(MANILA_PLUGIN_DIR),
        {
            "name": "csi-manila-plugin",
            "image": MANILA_CSI_IMAGE,
            "command": ["/bin/sh", "-c"],
            "args": [
                "/usr/bin/manila-csi-plugin"
                " --nodeid=$(NODE_ID)"
                " --endpoint=$(CSI_ENDPOINT)"
                " --drivername=$(DRIVER_NAME)"
                " --share-protocol-selector=$(MANILA_SHARE_PROTO)"
                " --fwdendpoint=$(FWD_CSI_ENDPOINT)"
            ],
            "env": [
                _env("DRIVER_NAME", MANILA_CSI_DRIVER_NAME),
                {"name": "NODE_ID", "valueFrom": {"fieldRef": {"fieldPath": "spec.nodeName"}}},
                _env("CSI_ENDPOINT", "unix:///csi/csi.sock"),
                _env("FWD_CSI_ENDPOINT", f"unix://{NFS_PLUGIN_DIR}/csi.sock"),
                _env("MANILA_SHARE_PROTO", "NFS"),
            ],
            "securityContext": {"privileged": True, "capabilities": {"add": ["SYS_ADMIN"]}, "allowPrivilegeEscalation": True},
            "volumeMounts": [
                _mount("plugin-dir", "/csi"),
                _mount("fwd-plugin-dir", NFS_PLUGIN_DIR),
                _mount("pod-mounts", f"{KUBELET_DIR}/pods", mountPropagation="Bidirectional"),
                _mount("cacert", CA_CERT_MOUNT_PATH, readOnly=True),
            ],
        },
    ]
    volumes = [
        _host_path_volume("registration-dir", f"{KUBELET_DIR}/plugins_registry", "Directory"),
        _host_path_volume("plugin-dir", MANILA_PLUGIN_DIR),
        _host_path_volume("fwd-plugin-dir", NFS_PLUGIN_DIR),
        _host_path_volume("pod-mounts", f"{KUBELET_DIR}/pods", "Directory"),
        _ca_cert_volume(),
    ]
    return _daemon_set(NODE_PLUGIN_NAME, NODE_PLUGIN_LABELS, containers, volumes)

