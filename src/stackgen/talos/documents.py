# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/talos/documents.py

from __future__ import annotations

from typing import Any, Dict, List, Optional

from stackgen.talos.models import (
    DEFAULT_CNI,
    TAILSCALE_EXTENSION,
    NodeSpec,
    TailscaleSpec,
    TalosConfig,
)
from stackgen.utils.merge import deep_merge


def extension_service_config(key: str, node: NodeSpec, tailscale: TailscaleSpec) -> Optional[Dict[str, Any]]:
    """ExtensionServiceConfig for the tailscale system extension, if the node runs it."""
    if TAILSCALE_EXTENSION not in node.extensions:
        return None

    env: List[str] = []
    if tailscale.auth_key:
        env.append(f"TS_AUTHKEY={tailscale.auth_key}")
    env.append(f"TS_HOSTNAME={node.display_name(key)}")
    if tailscale.advertise_routes:
        env.append(f"TS_ROUTES={','.join(tailscale.advertise_routes)}")
    if tailscale.extra_args:
        env.append(f"TS_EXTRA_ARGS={' '.join(tailscale.extra_args)}")

    return {
        "apiVersion": "v1alpha1",
        "kind": "ExtensionServiceConfig",
        "name": "tailscale",
        "environment": env,
    }


def client_configuration(cfg: TalosConfig) -> Dict[str, Any]:
    context: Dict[str, Any] = {
        "endpoints": [n.address for n in cfg.controlplanes.values()],
        "nodes": [n.address for n in cfg.controlplanes.values()]
        + [n.address for n in cfg.workers.values()],
    }
    if cfg.client:
        context.update({"ca": cfg.client.ca, "crt": cfg.client.crt, "key": cfg.client.key})

    return {
        "context": cfg.cluster_name,
        "contexts": {cfg.cluster_name: context},
    }


def _cilium_defaults(cfg: TalosConfig) -> Dict[str, Any]:
    # Settings Talos needs regardless of what the caller enables
    values: Dict[str, Any] = {
        "ipam": {"mode": "kubernetes"},
        "securityContext": {
            "capabilities": {
                "ciliumAgent": [
                    "CHOWN", "KILL", "NET_ADMIN", "NET_RAW", "IPC_LOCK", "SYS_ADMIN",
                    "SYS_RESOURCE", "DAC_OVERRIDE", "FOWNER", "SETGID", "SETUID",
                ],
                "cleanCiliumState": ["NET_ADMIN", "SYS_ADMIN", "SYS_RESOURCE"],
            },
        },
        "cgroup": {
            "autoMount": {"enabled": False},
            "hostRoot": "/sys/fs/cgroup",
        },
    }
    if cfg.kubeprism.enabled:
        values["k8sServiceHost"] = "localhost"
        values["k8sServicePort"] = cfg.kubeprism.port
    return values


def cni_values(cfg: TalosConfig) -> Optional[Dict[str, Any]]:
    if cfg.cni.kind == DEFAULT_CNI:
        return None
    if cfg.cni.kind == "cilium":
        return deep_merge(_cilium_defaults(cfg), cfg.cni.values)
    return dict(cfg.cni.values)
