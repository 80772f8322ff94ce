# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/talos/models.py
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

TAILSCALE_EXTENSION = "siderolabs/tailscale"
ZFS_EXTENSION = "siderolabs/zfs"
DEFAULT_EXTENSIONS = [TAILSCALE_EXTENSION]

DEFAULT_CNI = "flannel"


class Overlay(BaseModel):
    """Hardware overlay, e.g. siderolabs/sbc-raspberrypi + rpi_generic."""
    image: str
    name: str


class NodeSpec(BaseModel):
    address: str                         # reachable address (talosctl endpoint / node)
    mesh_ipv4: Optional[str] = None      # tailnet 100.x address
    mesh_ipv6: Optional[str] = None      # tailnet fd7a:... address

    install_disk: str
    install_wipe: bool = False

    hostname: Optional[str] = None
    interface: str = "eth0"
    dhcp: bool = True
    platform: str = "metal"
    arch: Optional[str] = None
    os: Optional[str] = None
    region: Optional[str] = None
    zone: Optional[str] = None

    extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS), min_length=1)
    overlay: Optional[Overlay] = None
    labels: Dict[str, str] = Field(default_factory=dict)

    def display_name(self, key: str) -> str:
        return self.hostname or key


class ZfsPool(BaseModel):
    name: str
    vdevs: List[str] = Field(min_length=1)
    topology: Literal["", "mirror", "raidz", "raidz2", "raidz3"] = ""
    properties: Dict[str, str] = Field(default_factory=dict)
    encrypted: bool = True


class WorkerStorage(BaseModel):
    enabled: bool = False                # Longhorn
    disk: Optional[str] = None           # dedicated Longhorn disk
    pools: List[ZfsPool] = Field(default_factory=list)
    hugepages: int = 1024


class WorkerSpec(NodeSpec):
    storage: WorkerStorage = Field(default_factory=WorkerStorage)


class CniSpec(BaseModel):
    name: str = DEFAULT_CNI
    # Helm values for the CNI chart; also drives the cluster overrides
    values: Dict[str, Any] = Field(default_factory=dict)
    gateway_api_version: str = "v1.2.1"

    @property
    def kind(self) -> str:
        return self.name.strip().lower()


class TailscaleSpec(BaseModel):
    tailnet: Optional[str] = None        # "tail1234" or "tail1234.ts.net"
    auth_key: Optional[str] = None
    extra_args: List[str] = Field(default_factory=list)
    advertise_routes: List[str] = Field(default_factory=list)

    @property
    def domain(self) -> Optional[str]:
        if not self.tailnet:
            return None
        if self.tailnet.endswith(".ts.net"):
            return self.tailnet
        return f"{self.tailnet}.ts.net"


class KubePrismSpec(BaseModel):
    enabled: bool = True
    port: int = 7445


class ClientSecrets(BaseModel):
    ca: str
    crt: str
    key: str


class TalosConfig(BaseModel):
    cluster_name: str
    endpoint: str                        # https://<vip or host>:6443
    talos_version: str = "v1.10.3"
    kubernetes_version: Optional[str] = None

    pod_cidr: str = "10.244.0.0/16"
    service_cidr: str = "10.96.0.0/12"

    cni: CniSpec = Field(default_factory=CniSpec)
    tailscale: TailscaleSpec = Field(default_factory=TailscaleSpec)
    kubeprism: KubePrismSpec = Field(default_factory=KubePrismSpec)

    cert_sans: List[str] = Field(default_factory=list)

    extra_patches: List[Dict[str, Any]] = Field(default_factory=list)
    controlplane_patches: List[Dict[str, Any]] = Field(default_factory=list)
    worker_patches: List[Dict[str, Any]] = Field(default_factory=list)

    controlplanes: Dict[str, NodeSpec]
    workers: Dict[str, WorkerSpec] = Field(default_factory=dict)

    image_registry: str = "factory.talos.dev"
    client: Optional[ClientSecrets] = None


CONTROLPLANE = "controlplane"
WORKER = "worker"
