# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/talos/nodes.py

from __future__ import annotations

from typing import Any, Dict, List

from stackgen.talos.models import ZFS_EXTENSION, NodeSpec, WorkerSpec, WorkerStorage
from stackgen.utils.merge import deep_merge

LONGHORN_PATH = "/var/lib/longhorn"
ZFS_KEY_DIR = "/var/lib/zfs-keys"

LONGHORN_LABELS = {
    "node.longhorn.io/create-default-disk": "config",
    "stackgen.io/longhorn": "enabled",
}
ZFS_POOL_LABEL = "stackgen.io/zfs-pools"


def node_labels(key: str, node: NodeSpec) -> Dict[str, str]:
    labels: Dict[str, str] = {}
    if node.region:
        labels["topology.kubernetes.io/region"] = node.region
    if node.zone:
        labels["topology.kubernetes.io/zone"] = node.zone
    if node.hostname:
        labels["kubernetes.io/hostname"] = node.hostname
    if node.arch:
        labels["kubernetes.io/arch"] = node.arch
    if node.os:
        labels["kubernetes.io/os"] = node.os
    # caller labels win
    labels.update(node.labels)
    return labels


def _bind_mount(path: str) -> Dict[str, Any]:
    return {
        "destination": path,
        "type": "bind",
        "source": path,
        "options": ["bind", "rshared", "rw"],
    }


def worker_storage_patch(storage: WorkerStorage) -> Dict[str, Any]:
    machine: Dict[str, Any] = {}
    labels: Dict[str, str] = {}

    if storage.enabled:
        labels.update(LONGHORN_LABELS)
        machine["sysctls"] = {"vm.nr_hugepages": str(storage.hugepages)}

    if storage.pools:
        labels[ZFS_POOL_LABEL] = "enabled"

    mounts: List[Dict[str, Any]] = []
    if storage.disk:
        mounts.append(_bind_mount(LONGHORN_PATH))
        machine["disks"] = [
            {"device": storage.disk, "partitions": [{"mountpoint": LONGHORN_PATH}]},
        ]
    if storage.pools:
        mounts.append(_bind_mount(ZFS_KEY_DIR))

    if labels:
        machine["nodeLabels"] = labels
    if mounts:
        machine["kubelet"] = {"extraMounts": mounts}

    return {"machine": machine} if machine else {}


def node_patch(key: str, node: NodeSpec, *, installer_image: str) -> Dict[str, Any]:
    machine: Dict[str, Any] = {
        "network": {
            "hostname": node.display_name(key),
            "interfaces": [{"interface": node.interface, "dhcp": node.dhcp}],
        },
        "install": {
            "disk": node.install_disk,
            "wipe": node.install_wipe,
            "image": installer_image,
        },
        "nodeLabels": node_labels(key, node),
    }
    if ZFS_EXTENSION in node.extensions:
        machine["kernel"] = {"modules": [{"name": "zfs"}]}

    patch = {"machine": machine}
    if isinstance(node, WorkerSpec):
        storage = worker_storage_patch(node.storage)
        if storage:
            # storage labels sit under the caller's labels
            labels = dict(storage["machine"].pop("nodeLabels", {}))
            labels.update(machine["nodeLabels"])
            patch = deep_merge(patch, storage)
            patch["machine"]["nodeLabels"] = labels
    return patch
