# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/errors.py
class StackgenError(RuntimeError):
    """Base class for stackgen failures."""

class TemplateError(StackgenError):
    """Raised when a bundled template cannot be found."""

class FactoryError(StackgenError):
    """Raised when the Talos image factory rejects a schematic."""

class ConfigError(StackgenError):
    """Raised when a stack or secrets file is not a YAML mapping."""
