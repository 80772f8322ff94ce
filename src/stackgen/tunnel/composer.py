# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/tunnel/composer.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from stackgen.observers.dispatcher import EventBus
from stackgen.observers.events import RenderStarted, RenderSummary, new_ctx
from stackgen.tunnel.models import DnsRecordSpec, IngressRule, OriginRequest, TunnelConfig
from stackgen.utils.artifacts import Artifact
from stackgen.utils.serialize import dump_json, dump_yaml

log = logging.getLogger("stackgen")

TUNNEL_CNAME_SUFFIX = "cfargotunnel.com"
AUTO_TTL = 1

# OriginRequest field -> cloudflared config key
_ORIGIN_KEYS = {
    "connect_timeout": "connectTimeout",
    "tls_timeout": "tlsTimeout",
    "keep_alive_timeout": "keepAliveTimeout",
    "no_tls_verify": "noTLSVerify",
    "http_host_header": "httpHostHeader",
    "origin_server_name": "originServerName",
    "disable_chunked_encoding": "disableChunkedEncoding",
    "http2_origin": "http2Origin",
}


def _origin_request(origin: Optional[OriginRequest]) -> Dict[str, Any]:
    if origin is None:
        return {}
    out: Dict[str, Any] = {}
    for field, key in _ORIGIN_KEYS.items():
        value = getattr(origin, field)
        if value is not None:
            out[key] = value
    return out


def ingress_rule(rule: IngressRule) -> Dict[str, Any]:
    out: Dict[str, Any] = {"hostname": rule.hostname, "service": rule.service}
    if rule.path:
        out["path"] = rule.path
    origin = _origin_request(rule.origin_request)
    if origin:
        out["originRequest"] = origin
    return out


def compose_ingress(rules: Sequence[IngressRule], default_service: str) -> List[Dict[str, Any]]:
    """
    Resolve user rules in order and append the catch-all rule.

    cloudflared requires the last rule to match everything, so the
    default service is appended even when the user list already ends
    with something that looks like a catch-all.
    """
    resolved = [ingress_rule(r) for r in rules]
    resolved.append({"service": default_service})
    return resolved


def compose_dns_records(
    records: Mapping[str, Optional[DnsRecordSpec]],
    *,
    tunnel_id: str,
    tunnel_name: str,
) -> List[Dict[str, Any]]:
    target = f"{tunnel_id}.{TUNNEL_CNAME_SUFFIX}"
    out: List[Dict[str, Any]] = []
    for name, spec in records.items():
        spec = spec or DnsRecordSpec()
        out.append(
            {
                "name": name,
                "type": "CNAME",
                "content": target,
                "proxied": True if spec.proxied is None else spec.proxied,
                "ttl": AUTO_TTL if spec.ttl is None else spec.ttl,
                "comment": spec.comment or f"Cloudflare tunnel {tunnel_name} ({name}), managed by stackgen",
            }
        )
    return out


def compose_cloudflared_config(cfg: TunnelConfig) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "tunnel": cfg.tunnel_id,
        "credentials-file": cfg.credentials_file,
    }
    if cfg.warp_routing:
        doc["warp-routing"] = {"enabled": True}
    doc["ingress"] = compose_ingress(cfg.ingress, cfg.default_service)
    return doc


def compose_credentials(cfg: TunnelConfig) -> Optional[Dict[str, str]]:
    if not cfg.tunnel_secret:
        return None
    return {
        "AccountTag": cfg.account_id,
        "TunnelID": cfg.tunnel_id,
        "TunnelSecret": cfg.tunnel_secret,
    }


@dataclass(frozen=True)
class TunnelBundle:
    config: Dict[str, Any]
    dns_records: List[Dict[str, Any]]
    credentials: Optional[Dict[str, str]]

    @property
    def ingress(self) -> List[Dict[str, Any]]:
        return self.config["ingress"]

    def artifacts(self) -> List[Artifact]:
        out = [
            Artifact("tunnel/config.yml", dump_yaml(self.config)),
            Artifact("tunnel/dns-records.yaml", dump_yaml({"records": self.dns_records})),
        ]
        if self.credentials:
            out.append(Artifact("tunnel/credentials.json", dump_json(self.credentials)))
        return out


def render_tunnel(
    cfg: TunnelConfig,
    *,
    bus: Optional[EventBus] = None,
    ctx: Optional[Dict[str, Any]] = None,
) -> TunnelBundle:
    ctx = ctx or new_ctx(env="dev", context="tunnel")
    if bus:
        bus.emit(RenderStarted(composer="tunnel", **ctx))

    bundle = TunnelBundle(
        config=compose_cloudflared_config(cfg),
        dns_records=compose_dns_records(cfg.dns_records, tunnel_id=cfg.tunnel_id, tunnel_name=cfg.name),
        credentials=compose_credentials(cfg),
    )
    log.debug(
        "tunnel %s: %d ingress rules, %d dns records",
        cfg.name, len(bundle.ingress), len(bundle.dns_records),
    )

    if bus:
        bus.emit(RenderSummary(composer="tunnel", documents=len(bundle.artifacts()), status="OK", **ctx))
    return bundle
