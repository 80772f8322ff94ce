# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/talos/__init__.py

from .composer import render_talos

__all__ = ["render_talos"]
