# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/observers/logger.py
from __future__ import annotations
import logging
from .events import BaseEvent, PlanFailed, RenderSummary


class LoggerObserver:
    """Forwards events to a stdlib logger; failures are logged at ERROR."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        etype = event.__class__.__name__
        msg = ", ".join(f"{k}={v}" for k, v in d.items() if k not in ("ts", "run_id", "env") and v is not None)

        failed = isinstance(event, PlanFailed) or (
            isinstance(event, RenderSummary) and event.status != "OK"
        )
        level = logging.ERROR if failed else logging.INFO
        self.logger.log(level, "[EVENT] %s: %s", etype, msg)
