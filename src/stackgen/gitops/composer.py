# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/stackgen/gitops/composer.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

from stackgen.gitops.models import GitOpsConfig, InstallStep
from stackgen.gitops.planner import plan_steps
from stackgen.observers.dispatcher import EventBus
from stackgen.observers.events import RenderStarted, RenderSummary, new_ctx
from stackgen.templating import TemplateRenderer
from stackgen.utils.artifacts import Artifact
from stackgen.utils.serialize import dump_yaml

log = logging.getLogger("stackgen")

BASE_COMPONENTS = [
    "source-controller",
    "kustomize-controller",
    "helm-controller",
    "notification-controller",
]
SYNC_INTERVAL = "1m"

SOPS_SECRET = "sops-age"
GIT_SECRET = "flux-system"
FLUX_OPERATOR_CHART = "oci://ghcr.io/controlplaneio-fluxcd/charts/flux-operator"

BOOTSTRAP_TEMPLATE = "bootstrap.sh.j2"


def repository_url(cfg: GitOpsConfig) -> str:
    return f"https://github.com/{cfg.github_owner}/{cfg.repository}.git"


def decryption_patch() -> str:
    """JSON6902 patch enabling SOPS decryption on the root Kustomization."""
    ops = [
        {
            "op": "add",
            "path": "/spec/decryption",
            "value": {"provider": "sops", "secretRef": {"name": SOPS_SECRET}},
        }
    ]
    return yaml.safe_dump(ops, sort_keys=False)


def compose_instance(cfg: GitOpsConfig) -> Dict[str, Any]:
    return {
        "apiVersion": "fluxcd.controlplane.io/v1",
        "kind": "FluxInstance",
        "metadata": {
            "name": "flux",
            "namespace": cfg.namespace,
            "annotations": {
                "fluxcd.controlplane.io/reconcileEvery": "1h",
                "fluxcd.controlplane.io/reconcileTimeout": "5m",
            },
        },
        "spec": {
            "distribution": {"version": cfg.flux_version, "registry": cfg.flux_registry},
            "components": BASE_COMPONENTS + list(cfg.extra_components),
            "cluster": {"type": "kubernetes", "networkPolicy": True, "domain": "cluster.local"},
            "sync": {
                "kind": "GitRepository",
                "url": repository_url(cfg),
                "ref": f"refs/heads/{cfg.branch}",
                "path": cfg.path,
                "pullSecret": GIT_SECRET,
                "interval": SYNC_INTERVAL,
            },
            "kustomize": {
                "patches": [
                    {
                        "target": {"kind": "Kustomization", "name": "flux-system"},
                        "patch": decryption_patch(),
                    }
                ]
            },
        },
    }


def _secret(name: str, namespace: str, data: Dict[str, str]) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "type": "Opaque",
        "stringData": data,
    }


def bootstrap_steps(cfg: GitOpsConfig) -> List[InstallStep]:
    cert_manager: Dict[str, Any] = {
        "release": "cert-manager",
        "namespace": "cert-manager",
        "repo": "https://charts.jetstack.io",
        "chart": "cert-manager",
        "version": cfg.cert_manager_version,
        "createNamespace": True,
        "values": {"crds": {"enabled": True}},
    }
    operator: Dict[str, Any] = {
        "release": "flux-operator",
        "namespace": cfg.namespace,
        "chart": FLUX_OPERATOR_CHART,
        "createNamespace": True,
        "values": {},
    }
    if cfg.operator_version:
        operator["version"] = cfg.operator_version

    return [
        InstallStep(name="cert-manager", kind="helm", manifest=cert_manager),
        InstallStep(name="flux-operator", kind="helm", manifest=operator, dependencies=["cert-manager"]),
        InstallStep(
            name="sops-age-secret",
            kind="manifest",
            manifest=_secret(SOPS_SECRET, cfg.namespace, {"age.agekey": cfg.sops_age_key}),
        ),
        InstallStep(
            name="git-credentials-secret",
            kind="manifest",
            manifest=_secret(GIT_SECRET, cfg.namespace, {"username": "git", "password": cfg.github_token}),
        ),
        InstallStep(
            name="flux-instance",
            kind="manifest",
            manifest=compose_instance(cfg),
            dependencies=["flux-operator", "sops-age-secret", "git-credentials-secret"],
        ),
    ]


@dataclass(frozen=True)
class GitOpsBundle:
    namespace: str
    order: List[InstallStep]
    script: str

    @property
    def instance(self) -> Dict[str, Any]:
        return next(s.manifest for s in self.order if s.name == "flux-instance")

    def descriptor(self) -> Dict[str, Any]:
        return {
            "steps": [
                {
                    "name": s.name,
                    "kind": s.kind,
                    "file": step_file(i, s),
                    "dependsOn": list(s.dependencies),
                }
                for i, s in enumerate(self.order, start=1)
            ]
        }

    def artifacts(self) -> List[Artifact]:
        out = [Artifact("gitops/install-order.yaml", dump_yaml(self.descriptor()))]
        for i, s in enumerate(self.order, start=1):
            out.append(Artifact(f"gitops/{step_file(i, s)}", dump_yaml(s.manifest)))
            if s.kind == "helm":
                out.append(Artifact(f"gitops/{values_file(i, s)}", dump_yaml(s.manifest.get("values") or {})))
        out.append(Artifact("gitops/bootstrap.sh", self.script, executable=True))
        return out


def step_file(index: int, step: InstallStep) -> str:
    return f"{index:02d}-{step.name}.yaml"


def values_file(index: int, step: InstallStep) -> str:
    return f"{index:02d}-{step.name}.values.yaml"


def render_bootstrap_script(
    order: List[InstallStep],
    *,
    namespace: str,
    renderer: Optional[TemplateRenderer] = None,
) -> str:
    renderer = renderer or TemplateRenderer()
    steps = []
    for i, s in enumerate(order, start=1):
        entry: Dict[str, Any] = {"name": s.name, "kind": s.kind, "file": step_file(i, s)}
        if s.kind == "helm":
            entry.update(
                {
                    "release": s.manifest["release"],
                    "chart": s.manifest["chart"],
                    "repo": s.manifest.get("repo"),
                    "version": s.manifest.get("version"),
                    "namespace": s.manifest["namespace"],
                    "values_file": values_file(i, s),
                }
            )
        else:
            entry["namespace"] = s.manifest["metadata"].get("namespace")
        steps.append(entry)
    return renderer.render(BOOTSTRAP_TEMPLATE, {"steps": steps, "flux_namespace": namespace})


def render_gitops(
    cfg: GitOpsConfig,
    *,
    renderer: Optional[TemplateRenderer] = None,
    bus: Optional[EventBus] = None,
    ctx: Optional[Dict[str, Any]] = None,
) -> GitOpsBundle:
    ctx = ctx or new_ctx(env="dev", context="gitops")
    if bus:
        bus.emit(RenderStarted(composer="gitops", **ctx))

    try:
        order = plan_steps(bootstrap_steps(cfg), bus=bus, run_ctx=ctx)
        bundle = GitOpsBundle(
            namespace=cfg.namespace,
            order=order,
            script=render_bootstrap_script(order, namespace=cfg.namespace, renderer=renderer),
        )
    except Exception as e:
        if bus:
            bus.emit(RenderSummary(composer="gitops", documents=0, status="FAILED", error=str(e), **ctx))
        raise

    log.info("gitops %s: install order %s", repository_url(cfg), " -> ".join(s.name for s in order))
    if bus:
        bus.emit(RenderSummary(composer="gitops", documents=len(bundle.artifacts()), status="OK", **ctx))
    return bundle
