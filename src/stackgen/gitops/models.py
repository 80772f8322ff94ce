# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/gitops/models.py

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


class GitOpsConfig(BaseModel):
    """Flux Operator bootstrap parameters."""

    github_owner: str
    repository: str
    branch: str = "main"
    path: str = "clusters/main"

    github_token: str
    sops_age_key: str

    namespace: str = "flux-system"
    extra_components: List[str] = Field(default_factory=list)

    cert_manager_version: str = "v1.16.2"
    operator_version: Optional[str] = None    # latest when unset
    flux_version: str = "2.x"
    flux_registry: str = "ghcr.io/fluxcd"


class InstallStep(BaseModel):
    name: str
    kind: Literal["helm", "manifest"]
    manifest: Dict[str, Any]
    dependencies: List[str] = Field(default_factory=list)
