# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/utils/artifacts.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from stackgen.observers.dispatcher import EventBus
from stackgen.observers.events import ArtifactWritten

log = logging.getLogger("stackgen")


@dataclass(frozen=True)
class Artifact:
    """A generated file, addressed relative to the output directory."""
    path: str
    content: str
    executable: bool = False


@dataclass(frozen=True)
class WrittenArtifact:
    name: str
    path: Path


def write_artifacts(
    artifacts: Iterable[Artifact],
    *,
    dst_dir: Path,
    bus: Optional[EventBus] = None,
    ctx: Optional[Dict[str, Any]] = None,
) -> List[WrittenArtifact]:
    written: List[WrittenArtifact] = []

    for art in artifacts:
        out_path = dst_dir / art.path
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(art.content, encoding="utf-8")
        if art.executable:
            out_path.chmod(0o755)

        log.debug("wrote %s (%d bytes)", out_path, len(art.content))
        if bus and ctx is not None:
            bus.emit(ArtifactWritten(path=art.path, bytes=len(art.content.encode("utf-8")), **ctx))

        written.append(WrittenArtifact(name=art.path, path=out_path))

    return written
