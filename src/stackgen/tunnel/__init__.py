# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/tunnel/__init__.py

from .composer import render_tunnel

__all__ = ["render_tunnel"]
