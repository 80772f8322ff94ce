# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/config/models.py

from typing import List, Literal, Optional
from pydantic import BaseModel

from stackgen.gitops.models import GitOpsConfig
from stackgen.talos.models import TalosConfig
from stackgen.tunnel.models import TunnelConfig

SECTIONS = ("tunnel", "talos", "gitops")


class StackConfig(BaseModel):
    environment: Literal["dev", "staging", "prod"] = "dev"
    output_dir: Optional[str] = None

    tunnel: Optional[TunnelConfig] = None
    talos: Optional[TalosConfig] = None
    gitops: Optional[GitOpsConfig] = None

    # Helper method
    def present_sections(self) -> List[str]:
        """Names of the composer sections defined in this stack file, in render order."""
        return [s for s in SECTIONS if getattr(self, s) is not None]
