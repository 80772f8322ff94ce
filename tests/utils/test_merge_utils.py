import os
import stat

import pytest
import yaml

from stackgen.observers.dispatcher import EventBus
from stackgen.observers.events import ArtifactWritten, new_ctx
from stackgen.utils.artifacts import Artifact, write_artifacts
from stackgen.errors import TemplateError
from stackgen.templating import TemplateRenderer
from stackgen.utils.merge import deep_merge, dig, merge_patches
from stackgen.utils.serialize import dump_json, dump_yaml


def test_deep_merge_does_not_touch_inputs():
    a = {"machine": {"network": {"hostname": "a"}, "certSANs": ["x"]}}
    b = {"machine": {"network": {"interfaces": []}}}
    out = deep_merge(a, b)

    out["machine"]["certSANs"].append("y")
    out["machine"]["network"]["hostname"] = "changed"

    assert a == {"machine": {"network": {"hostname": "a"}, "certSANs": ["x"]}}
    assert b == {"machine": {"network": {"interfaces": []}}}


def test_lists_and_scalars_replace():
    out = deep_merge({"a": [1, 2], "b": {"c": 1}}, {"a": [3], "b": "flat"})
    assert out == {"a": [3], "b": "flat"}


def test_merge_patches_last_writer_wins():
    base = {"machine": {"kubelet": {"image": "v1"}}}
    out = merge_patches(base, [{"machine": {"kubelet": {"image": "v2"}}}, {"machine": {"kubelet": {"image": "v3"}}}])
    assert out["machine"]["kubelet"]["image"] == "v3"
    assert base["machine"]["kubelet"]["image"] == "v1"


def test_dig_tolerates_missing_and_non_mapping():
    doc = {"bpf": {"masquerade": True}, "gatewayAPI": "on"}
    assert dig(doc, "bpf", "masquerade") is True
    assert dig(doc, "gatewayAPI", "enabled") is None
    assert dig(doc, "missing", "x", default=False) is False
    assert dig(None, "x") is None


def test_write_artifacts(tmp_path, capture):
    ctx = new_ctx(env="dev", context="output")
    written = write_artifacts(
        [
            Artifact("talos/talosconfig", "context: lab\n"),
            Artifact("gitops/bootstrap.sh", "#!/usr/bin/env bash\n", executable=True),
        ],
        dst_dir=tmp_path,
        bus=EventBus([capture]),
        ctx=ctx,
    )

    assert [w.name for w in written] == ["talos/talosconfig", "gitops/bootstrap.sh"]
    assert (tmp_path / "talos" / "talosconfig").read_text() == "context: lab\n"
    mode = os.stat(tmp_path / "gitops" / "bootstrap.sh").st_mode
    assert mode & stat.S_IXUSR
    assert [e.path for e in capture.events if isinstance(e, ArtifactWritten)] == [
        "talos/talosconfig",
        "gitops/bootstrap.sh",
    ]


def test_missing_template_raises_template_error(tmp_path):
    with pytest.raises(TemplateError, match="nope.j2"):
        TemplateRenderer(tmp_path).render("nope.j2", {})


def test_dump_yaml_keeps_key_order_and_flattens_tuples():
    out = dump_yaml({"schematics": [{"id": "abc", "extensions": ("siderolabs/tailscale", "siderolabs/zfs")}], "a": 1})
    assert out.splitlines()[0] == "schematics:"
    assert yaml.safe_load(out) == {
        "schematics": [{"id": "abc", "extensions": ["siderolabs/tailscale", "siderolabs/zfs"]}],
        "a": 1,
    }
    assert dump_json({"TunnelID": "t"}).endswith("}\n")
