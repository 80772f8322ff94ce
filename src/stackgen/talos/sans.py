# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/talos/sans.py

from __future__ import annotations

from typing import Iterable, List, Optional

from stackgen.talos.models import NodeSpec, TalosConfig

LOOPBACK_SANS = ["127.0.0.1", "::1", "localhost"]

# Values callers use for "no address yet"
PLACEHOLDERS = {"", "0.0.0.0", "::", "-", "none"}


def is_placeholder(value: Optional[str]) -> bool:
    return value is None or value.strip().lower() in PLACEHOLDERS


def _node_sans(node: NodeSpec, domain: Optional[str]) -> List[str]:
    out: List[str] = []
    for addr in (node.mesh_ipv4, node.mesh_ipv6):
        if not is_placeholder(addr):
            out.append(addr.strip())
    if domain and node.hostname:
        out.append(f"{node.hostname}.{domain}")
    return out


def san_nodes(cfg: TalosConfig) -> Iterable[NodeSpec]:
    # KubePrism runs on every node, so workers need to be valid API names too
    yield from cfg.controlplanes.values()
    if cfg.kubeprism.enabled:
        yield from cfg.workers.values()


def compose_cert_sans(cfg: TalosConfig) -> List[str]:
    """
    Caller SANs first, then mesh addresses/hostnames, then loopback.

    Duplicates are kept; talosctl tolerates them.
    """
    sans: List[str] = list(cfg.cert_sans)
    domain = cfg.tailscale.domain
    for node in san_nodes(cfg):
        sans.extend(_node_sans(node, domain))
    sans.extend(LOOPBACK_SANS)
    return sans
