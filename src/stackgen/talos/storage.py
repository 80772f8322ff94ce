# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/talos/storage.py

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from stackgen.talos.models import WorkerSpec, ZfsPool
from stackgen.talos.nodes import ZFS_KEY_DIR
from stackgen.templating import TemplateRenderer

log = logging.getLogger("stackgen")

POOL_SCRIPT_TEMPLATE = "zfs-pool-setup.sh.j2"


def _pool_context(pool: ZfsPool) -> Dict[str, object]:
    return {
        "name": pool.name,
        "topology": pool.topology,
        "vdevs": pool.vdevs,
        "properties": sorted(pool.properties.items()),
        "encrypted": pool.encrypted,
    }


def render_pool_script(
    node_name: str,
    pools: list[ZfsPool],
    *,
    renderer: Optional[TemplateRenderer] = None,
) -> str:
    renderer = renderer or TemplateRenderer()
    return renderer.render(
        POOL_SCRIPT_TEMPLATE,
        {
            "node_name": node_name,
            "key_dir": ZFS_KEY_DIR,
            "pools": [_pool_context(p) for p in pools],
        },
    )


def pool_scripts(
    workers: Mapping[str, WorkerSpec],
    *,
    renderer: Optional[TemplateRenderer] = None,
) -> Dict[str, str]:
    """One setup script per worker that defines at least one pool."""
    renderer = renderer or TemplateRenderer()
    scripts: Dict[str, str] = {}
    for key, node in workers.items():
        if not node.storage.pools:
            continue
        scripts[key] = render_pool_script(node.display_name(key), node.storage.pools, renderer=renderer)
        log.debug("zfs setup script for %s: %d pool(s)", key, len(node.storage.pools))
    return scripts
