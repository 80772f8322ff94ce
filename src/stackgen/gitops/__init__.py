# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/gitops/__init__.py

from .composer import render_gitops

__all__ = ["render_gitops"]
