# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/talos/cluster.py

from __future__ import annotations

import logging
from typing import Any, Dict, List

from stackgen.talos.models import (
    CONTROLPLANE,
    DEFAULT_CNI,
    CniSpec,
    KubePrismSpec,
    TailscaleSpec,
    TalosConfig,
)
from stackgen.utils.merge import dig, merge_patches

log = logging.getLogger("stackgen")

MESH_NAMESERVERS = ["100.100.100.100", "1.1.1.1"]
MESH_KERNEL_MODULE = "tun"
KUBEPRISM_LABEL = "stackgen.io/kubeprism"

KUBELET_IMAGE = "ghcr.io/siderolabs/kubelet"
K8S_REGISTRY = "registry.k8s.io"
CONTROLPLANE_COMPONENTS = ("apiserver", "controller-manager", "scheduler")
# image component -> cluster config key
COMPONENT_KEYS = {
    "apiserver": "apiServer",
    "controller-manager": "controllerManager",
    "scheduler": "scheduler",
    "proxy": "proxy",
}

GATEWAY_API_MANIFESTS = [
    "https://github.com/kubernetes-sigs/gateway-api/releases/download/{version}/standard-install.yaml",
    "https://raw.githubusercontent.com/kubernetes-sigs/gateway-api/{version}/config/crd/experimental/gateway.networking.k8s.io_tlsroutes.yaml",
]


def _enabled(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "strict")
    return value is True


def skeleton(cfg: TalosConfig, *, role: str, sans: List[str]) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "machine": {
            "certSANs": list(sans),
            "features": {
                "hostDNS": {"enabled": True, "forwardKubeDNSToHost": True},
            },
        },
        "cluster": {
            "clusterName": cfg.cluster_name,
            "controlPlane": {"endpoint": cfg.endpoint},
            "network": {
                "cni": {"name": DEFAULT_CNI},
                "podSubnets": [cfg.pod_cidr],
                "serviceSubnets": [cfg.service_cidr],
            },
        },
    }
    if role == CONTROLPLANE:
        doc["cluster"]["apiServer"] = {"certSANs": list(sans)}
    if cfg.kubernetes_version:
        pin_kubernetes_version(doc, cfg.kubernetes_version, role=role)
    return doc


def pin_kubernetes_version(doc: Dict[str, Any], version: str, *, role: str) -> None:
    """Kubelet, kube-proxy and (control plane only) control-plane component images."""
    doc["machine"]["kubelet"] = {"image": f"{KUBELET_IMAGE}:{version}"}
    cluster = doc["cluster"]
    components = ("proxy",) + (CONTROLPLANE_COMPONENTS if role == CONTROLPLANE else ())
    for component in components:
        key = COMPONENT_KEYS[component]
        cluster.setdefault(key, {})["image"] = f"{K8S_REGISTRY}/kube-{component}:{version}"


def cni_override(cni: CniSpec) -> Dict[str, Any]:
    """
    Cluster settings for a CNI installed outside Talos.

    Only keys switched on in the CNI values appear; anything missing
    inherits the skeleton default.
    """
    if cni.kind == DEFAULT_CNI:
        return {}

    cluster: Dict[str, Any] = {"network": {"cni": {"name": "none"}}}
    override: Dict[str, Any] = {"cluster": cluster}

    if _enabled(dig(cni.values, "kubeProxyReplacement")):
        cluster["proxy"] = {"disabled": True}

    if _enabled(dig(cni.values, "bpf", "masquerade")):
        override["machine"] = {"features": {"hostDNS": {"forwardKubeDNSToHost": False}}}

    if _enabled(dig(cni.values, "gatewayAPI", "enabled")):
        cluster["extraManifests"] = [
            url.format(version=cni.gateway_api_version) for url in GATEWAY_API_MANIFESTS
        ]

    log.debug("cni override for %s: %s", cni.kind, override)
    return override


def mesh_patch(tailscale: TailscaleSpec) -> Dict[str, Any]:
    network: Dict[str, Any] = {"nameservers": list(MESH_NAMESERVERS)}
    if tailscale.domain:
        network["searchDomains"] = [tailscale.domain]
    return {
        "machine": {
            "network": network,
            "kernel": {"modules": [{"name": MESH_KERNEL_MODULE}]},
        }
    }


def kubeprism_patch(kubeprism: KubePrismSpec) -> Dict[str, Any]:
    return {
        "machine": {
            "features": {
                "kubePrism": {"enabled": kubeprism.enabled, "port": kubeprism.port},
            },
            "nodeLabels": {
                KUBEPRISM_LABEL: "enabled" if kubeprism.enabled else "disabled",
            },
        }
    }


def role_patches(cfg: TalosConfig, role: str) -> List[Dict[str, Any]]:
    """Patches applied on top of the skeleton, in merge order."""
    patches: List[Dict[str, Any]] = []
    override = cni_override(cfg.cni)
    if override:
        patches.append(override)
    patches.append(mesh_patch(cfg.tailscale))
    patches.append(kubeprism_patch(cfg.kubeprism))
    patches.extend(cfg.extra_patches)
    patches.extend(cfg.controlplane_patches if role == CONTROLPLANE else cfg.worker_patches)
    return patches


def compose_base(cfg: TalosConfig, *, role: str, sans: List[str]) -> Dict[str, Any]:
    return merge_patches(skeleton(cfg, role=role, sans=sans), role_patches(cfg, role))
