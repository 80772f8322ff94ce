# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/talos/composer.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from stackgen.observers.dispatcher import EventBus
from stackgen.observers.events import RenderStarted, RenderSummary, new_ctx
from stackgen.talos.cluster import compose_base
from stackgen.talos.documents import client_configuration, cni_values, extension_service_config
from stackgen.talos.models import CONTROLPLANE, WORKER, NodeSpec, TalosConfig
from stackgen.talos.nodes import node_patch
from stackgen.talos.sans import compose_cert_sans
from stackgen.talos.schematics import (
    ContentHashResolver,
    NodeRef,
    SchematicKey,
    SchematicResolver,
    group_schematics,
    installer_image,
    resolve_schematics,
)
from stackgen.talos.storage import pool_scripts
from stackgen.templating import TemplateRenderer
from stackgen.utils.artifacts import Artifact
from stackgen.utils.serialize import dump_yaml

log = logging.getLogger("stackgen")

ROLE_DIRS = {CONTROLPLANE: "controlplanes", WORKER: "workers"}


@dataclass(frozen=True)
class NodeDocuments:
    ref: NodeRef
    installer_image: str
    patch: Dict[str, Any]
    extension_services: Optional[Dict[str, Any]] = None
    pool_script: Optional[str] = None


@dataclass(frozen=True)
class SchematicRequest:
    key: SchematicKey
    schematic_id: str
    nodes: Tuple[NodeRef, ...]


@dataclass(frozen=True)
class TalosBundle:
    sans: List[str]
    bases: Dict[str, Dict[str, Any]]
    nodes: Dict[NodeRef, NodeDocuments]
    schematics: List[SchematicRequest]
    client_config: Dict[str, Any]
    cni_values: Optional[Dict[str, Any]] = None

    def node(self, role: str, key: str) -> NodeDocuments:
        return self.nodes[NodeRef(role, key)]

    def artifacts(self) -> List[Artifact]:
        out: List[Artifact] = []
        for ref, docs in self.nodes.items():
            base_dir = f"talos/{ROLE_DIRS[ref.role]}/{ref.key}"
            out.append(Artifact(f"{base_dir}/base.yaml", dump_yaml(self.bases[ref.role])))
            out.append(Artifact(f"{base_dir}/patch.yaml", dump_yaml(docs.patch)))
            if docs.extension_services:
                out.append(Artifact(f"{base_dir}/extension-services.yaml", dump_yaml(docs.extension_services)))
            if docs.pool_script:
                out.append(Artifact(f"{base_dir}/zfs-setup.sh", docs.pool_script, executable=True))

        out.append(Artifact("talos/talosconfig", dump_yaml(self.client_config)))
        if self.cni_values is not None:
            out.append(Artifact("talos/cni-values.yaml", dump_yaml(self.cni_values)))
        out.append(
            Artifact(
                "talos/schematics.yaml",
                dump_yaml(
                    {
                        "schematics": [
                            {
                                "id": s.schematic_id,
                                "schematic": s.key.schematic(),
                                "nodes": [str(r) for r in s.nodes],
                            }
                            for s in self.schematics
                        ]
                    }
                ),
            )
        )
        return out


def iter_nodes(cfg: TalosConfig) -> Iterator[Tuple[NodeRef, NodeSpec]]:
    for key, node in cfg.controlplanes.items():
        yield NodeRef(CONTROLPLANE, key), node
    for key, node in cfg.workers.items():
        yield NodeRef(WORKER, key), node


def render_talos(
    cfg: TalosConfig,
    *,
    resolver: Optional[SchematicResolver] = None,
    renderer: Optional[TemplateRenderer] = None,
    bus: Optional[EventBus] = None,
    ctx: Optional[Dict[str, Any]] = None,
) -> TalosBundle:
    """
    Compose every Talos document for the cluster:

      1. SAN list and one base document per role
      2. one schematic build request per distinct extension/overlay set
      3. per-node patch, extension service and ZFS setup documents
      4. talosconfig and (non-default CNI only) CNI values
    """
    resolver = resolver or ContentHashResolver()
    ctx = ctx or new_ctx(env="dev", context="talos")
    if bus:
        bus.emit(RenderStarted(composer="talos", **ctx))

    try:
        sans = compose_cert_sans(cfg)
        bases = {role: compose_base(cfg, role=role, sans=sans) for role in (CONTROLPLANE, WORKER)}

        nodes = list(iter_nodes(cfg))
        groups = group_schematics(nodes)
        ids = resolve_schematics(groups, resolver, bus=bus, ctx=ctx)
        by_ref = {ref: key for key, refs in groups.items() for ref in refs}

        scripts = pool_scripts(cfg.workers, renderer=renderer)

        documents: Dict[NodeRef, NodeDocuments] = {}
        for ref, node in nodes:
            image = installer_image(
                registry=cfg.image_registry,
                platform=node.platform,
                schematic_id=ids[by_ref[ref]],
                version=cfg.talos_version,
            )
            documents[ref] = NodeDocuments(
                ref=ref,
                installer_image=image,
                patch=node_patch(ref.key, node, installer_image=image),
                extension_services=extension_service_config(ref.key, node, cfg.tailscale),
                pool_script=scripts.get(ref.key) if ref.role == WORKER else None,
            )
            log.debug("node %s -> %s", ref, image)

        bundle = TalosBundle(
            sans=sans,
            bases=bases,
            nodes=documents,
            schematics=[
                SchematicRequest(key=key, schematic_id=ids[key], nodes=tuple(refs))
                for key, refs in groups.items()
            ],
            client_config=client_configuration(cfg),
            cni_values=cni_values(cfg),
        )
    except Exception as e:
        if bus:
            bus.emit(RenderSummary(composer="talos", documents=0, status="FAILED", error=str(e), **ctx))
        raise

    log.info(
        "talos %s: %d nodes, %d schematic(s)",
        cfg.cluster_name, len(documents), len(bundle.schematics),
    )
    if bus:
        bus.emit(RenderSummary(composer="talos", documents=len(bundle.artifacts()), status="OK", **ctx))
    return bundle
