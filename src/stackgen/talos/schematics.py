# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/talos/schematics.py

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

import requests
import yaml

from stackgen.errors import FactoryError
from stackgen.observers.dispatcher import EventBus
from stackgen.observers.events import SchematicResolved
from stackgen.talos.models import NodeSpec

log = logging.getLogger("stackgen")

DEFAULT_FACTORY_URL = "https://factory.talos.dev"
DEFAULT_INSTALLER = "installer"

# Talos >= 1.10 publishes a platform-specific installer per cloud/platform
PLATFORM_INSTALLERS = {
    platform: f"{platform}-installer"
    for platform in (
        "metal",
        "nocloud",
        "aws",
        "gcp",
        "azure",
        "hcloud",
        "vmware",
        "openstack",
        "digital-ocean",
        "oracle",
        "equinixMetal",
    )
}


@dataclass(frozen=True)
class NodeRef:
    role: str
    key: str

    def __str__(self) -> str:
        return f"{self.role}/{self.key}"


@dataclass(frozen=True, order=True)
class SchematicKey:
    """
    Canonical identity of a schematic build request.

    Held as a tuple rather than a joined string so an extension name can
    never collide with a delimiter.
    """
    extensions: Tuple[str, ...]
    overlay: Optional[Tuple[str, str]] = None

    @classmethod
    def from_node(cls, node: NodeSpec) -> "SchematicKey":
        overlay = (node.overlay.image, node.overlay.name) if node.overlay else None
        return cls(extensions=tuple(sorted(set(node.extensions))), overlay=overlay)

    def schematic(self) -> Dict[str, Any]:
        """The image factory schematic body."""
        doc: Dict[str, Any] = {}
        if self.overlay:
            doc["overlay"] = {"image": self.overlay[0], "name": self.overlay[1]}
        doc["customization"] = {
            "systemExtensions": {"officialExtensions": list(self.extensions)},
        }
        return doc

    def overlay_label(self) -> Optional[str]:
        return f"{self.overlay[0]}:{self.overlay[1]}" if self.overlay else None


class SchematicResolver(Protocol):
    def resolve(self, schematic: Dict[str, Any]) -> str: ...


class ContentHashResolver:
    """
    Offline resolver: sha256 over the canonical YAML of the schematic.

    Deterministic across runs, but only the factory's own id is accepted
    by factory.talos.dev; use FactoryClient for images you intend to pull.
    """

    def resolve(self, schematic: Dict[str, Any]) -> str:
        canonical = yaml.safe_dump(schematic, sort_keys=True)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class FactoryClient:
    """Submits schematics to a Talos image factory and returns their ids."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_FACTORY_URL,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def resolve(self, schematic: Dict[str, Any]) -> str:
        url = f"{self.base_url}/schematics"
        body = yaml.safe_dump(schematic, sort_keys=False)
        log.debug("POST %s\n%s", url, body)

        try:
            r = self.session.post(
                url,
                data=body.encode("utf-8"),
                headers={"Content-Type": "application/yaml"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise FactoryError(f"Image factory request to {url} failed: {e}") from e

        if r.status_code not in (200, 201):
            raise FactoryError(f"Image factory rejected schematic: {r.status_code} {r.text}")

        try:
            return r.json()["id"]
        except (ValueError, KeyError) as e:
            raise FactoryError(f"Unexpected image factory response: {r.text}") from e


def group_schematics(nodes: Iterable[Tuple[NodeRef, NodeSpec]]) -> Dict[SchematicKey, List[NodeRef]]:
    """Group nodes by schematic key, keeping first-seen key order."""
    groups: Dict[SchematicKey, List[NodeRef]] = {}
    for ref, node in nodes:
        groups.setdefault(SchematicKey.from_node(node), []).append(ref)
    return groups


def resolve_schematics(
    groups: Dict[SchematicKey, List[NodeRef]],
    resolver: SchematicResolver,
    *,
    bus: Optional[EventBus] = None,
    ctx: Optional[Dict[str, Any]] = None,
) -> Dict[SchematicKey, str]:
    """One resolver call per distinct key, never per node."""
    ids: Dict[SchematicKey, str] = {}
    for key, refs in groups.items():
        schematic_id = resolver.resolve(key.schematic())
        ids[key] = schematic_id
        log.info(
            "schematic %s: extensions=%s overlay=%s nodes=%s",
            schematic_id, ",".join(key.extensions), key.overlay_label(), ",".join(map(str, refs)),
        )
        if bus and ctx is not None:
            bus.emit(
                SchematicResolved(
                    schematic_id=schematic_id,
                    extensions=list(key.extensions),
                    overlay=key.overlay_label(),
                    nodes=[str(r) for r in refs],
                    **ctx,
                )
            )
    return ids


def installer_type(platform: Optional[str]) -> str:
    return PLATFORM_INSTALLERS.get(platform or "", DEFAULT_INSTALLER)


def installer_image(*, registry: str, platform: Optional[str], schematic_id: str, version: str) -> str:
    return f"{registry.rstrip('/')}/{installer_type(platform)}/{schematic_id}:{version}"
