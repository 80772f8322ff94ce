# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/tunnel/models.py

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class OriginRequest(BaseModel):
    """Origin-connection tuning for a single ingress rule."""
    connect_timeout: Optional[str] = None     # e.g. "30s"
    tls_timeout: Optional[str] = None
    keep_alive_timeout: Optional[str] = None
    no_tls_verify: Optional[bool] = None
    http_host_header: Optional[str] = None
    origin_server_name: Optional[str] = None
    disable_chunked_encoding: Optional[bool] = None
    http2_origin: Optional[bool] = None


class IngressRule(BaseModel):
    hostname: str
    service: str                              # http://svc.ns:80, tcp://..., http_status:404
    path: Optional[str] = None
    origin_request: Optional[OriginRequest] = None


class DnsRecordSpec(BaseModel):
    # All optional; unset fields fall back to tunnel defaults
    proxied: Optional[bool] = None
    ttl: Optional[int] = None
    comment: Optional[str] = None


class TunnelConfig(BaseModel):
    name: str
    account_id: str
    tunnel_id: str
    tunnel_secret: Optional[str] = None       # base64, 32+ bytes
    credentials_file: str = "/etc/cloudflared/credentials.json"
    default_service: str = "http_status:404"
    warp_routing: bool = False
    ingress: List[IngressRule] = Field(default_factory=list)
    dns_records: Dict[str, Optional[DnsRecordSpec]] = Field(default_factory=dict)
