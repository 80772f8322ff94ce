# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from typing import Iterator

from stackgen.errors import ConfigError
from .models import StackConfig

log = logging.getLogger("stackgen")

SECRETS_ENV = "STACKGEN_SECRETS_FILE"
SECRETS_NAME = "secrets.yaml"


def _fill(base: dict, override: dict) -> dict:
    """
    New dict with non-empty *override* values laid over *base*.
    An empty string or null in *override* keeps the base value.
    """
    out = dict(base)
    for key, value in override.items():
        if isinstance(out.get(key), dict) and isinstance(value, dict):
            out[key] = _fill(out[key], value)
        elif value not in (None, ""):
            out[key] = value
    return out


def _overlay_secrets(data: dict, secrets: dict, source: Path) -> dict:
    """
    Overlay secrets section by section. A section the stack file does not
    define is skipped, so a shared secrets file cannot switch on a
    half-filled composer.
    """
    out = dict(data)
    for section, values in secrets.items():
        if not isinstance(values, dict):
            log.warning("%s: ignoring non-mapping secrets entry '%s'", source, section)
            continue
        if not isinstance(out.get(section), dict):
            log.debug("%s: stack file has no '%s' section, skipping its secrets", source, section)
            continue
        out[section] = _fill(out[section], values)
    return out


def _secrets_candidates(config_path: Path) -> Iterator[Path]:
    workspace = os.environ.get("WORKSPACE_ROOT")
    if workspace:
        yield Path(workspace) / "cloud-config" / SECRETS_NAME
    yield config_path.parent / SECRETS_NAME


def _find_secrets_file(config_path: Path) -> Path | None:
    explicit = os.environ.get(SECRETS_ENV)
    if explicit:
        # an explicit file that is missing disables discovery
        if Path(explicit).is_file():
            return Path(explicit)
        log.warning("%s=%s does not exist, skipping secrets", SECRETS_ENV, explicit)
        return None

    for candidate in _secrets_candidates(config_path):
        if candidate.is_file() and candidate.resolve() != config_path.resolve():
            return candidate
    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML mapping, expanding ${ENV_VAR} references first."""
    doc = yaml.safe_load(os.path.expandvars(path.read_text())) or {}
    if not isinstance(doc, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level, got {type(doc).__name__}")
    return doc


def load_config(path: str | Path) -> StackConfig:
    """
    Load and validate a stack file.

    Secrets (tunnel secret, tailscale auth key, github token, age key)
    may live in a separate secrets.yaml with the same section layout. It is
    looked up via ``STACKGEN_SECRETS_FILE``, then
    ``$WORKSPACE_ROOT/cloud-config/secrets.yaml``, then next to the stack
    file, and only fills sections the stack file already has.
    ``${ENV_VAR}`` references in either file are expanded at load time.
    """
    path = Path(path)
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        data = _overlay_secrets(data, _load_yaml(secrets_path), secrets_path)
    else:
        log.debug("No secrets file found for %s", path)

    return StackConfig.model_validate(data)
