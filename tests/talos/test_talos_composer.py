import pytest

from stackgen.observers.dispatcher import EventBus
from stackgen.observers.events import RenderStarted, RenderSummary, SchematicResolved
from stackgen.talos.composer import render_talos
from stackgen.talos.schematics import ContentHashResolver

SHARED = ["siderolabs/tailscale", "siderolabs/iscsi-tools"]


def _cluster(make_talos):
    return make_talos(
        tailscale={"tailnet": "tail1234", "auth_key": "tskey-auth-1"},
        controlplanes={
            "cp1": {"address": "10.0.0.11", "install_disk": "/dev/sda", "extensions": SHARED},
            "cp2": {"address": "10.0.0.12", "install_disk": "/dev/sda", "extensions": SHARED},
        },
        workers={
            "w1": {"address": "10.0.0.21", "install_disk": "/dev/sda", "extensions": SHARED},
            "w2": {"address": "10.0.0.22", "install_disk": "/dev/sda", "extensions": list(reversed(SHARED))},
            "w3": {
                "address": "10.0.0.23",
                "install_disk": "/dev/mmcblk0",
                "extensions": ["siderolabs/tailscale", "siderolabs/zfs"],
                "overlay": {"image": "siderolabs/sbc-rockchip", "name": "turingrk1"},
                "storage": {"pools": [{"name": "tank", "vdevs": ["/dev/nvme0n1"]}]},
            },
        },
    )


class CountingResolver(ContentHashResolver):
    def __init__(self):
        self.count = 0
    def resolve(self, schematic):
        self.count += 1
        return super().resolve(schematic)


def test_five_nodes_two_schematics(make_talos, capture):
    resolver = CountingResolver()
    bundle = render_talos(_cluster(make_talos), resolver=resolver, bus=EventBus([capture]))

    assert resolver.count == 2
    assert len(bundle.schematics) == 2
    assert len(bundle.nodes) == 5

    shared_id = bundle.node("controlplane", "cp1").installer_image
    assert bundle.node("worker", "w2").installer_image == shared_id
    assert bundle.node("worker", "w3").installer_image != shared_id
    assert shared_id.startswith("factory.talos.dev/metal-installer/")
    assert shared_id.endswith(":v1.10.3")

    kinds = [type(e) for e in capture.events]
    assert kinds[0] is RenderStarted
    assert kinds.count(SchematicResolved) == 2
    assert kinds[-1] is RenderSummary
    assert capture.events[-1].status == "OK"


def test_per_node_documents(make_talos):
    bundle = render_talos(_cluster(make_talos))

    w3 = bundle.node("worker", "w3")
    assert w3.pool_script is not None
    assert w3.patch["machine"]["kernel"]["modules"] == [{"name": "zfs"}]
    assert w3.extension_services["name"] == "tailscale"
    assert bundle.node("worker", "w1").pool_script is None
    assert bundle.node("controlplane", "cp1").pool_script is None

    assert "apiServer" in bundle.bases["controlplane"]["cluster"]
    assert "apiServer" not in bundle.bases["worker"]["cluster"]


def test_artifacts_layout(make_talos):
    paths = {a.path: a for a in render_talos(_cluster(make_talos)).artifacts()}

    assert "talos/controlplanes/cp1/base.yaml" in paths
    assert "talos/controlplanes/cp1/patch.yaml" in paths
    assert "talos/workers/w3/extension-services.yaml" in paths
    assert paths["talos/workers/w3/zfs-setup.sh"].executable
    assert "talos/workers/w1/zfs-setup.sh" not in paths
    assert "talos/talosconfig" in paths
    assert "talos/schematics.yaml" in paths
    assert "talos/cni-values.yaml" not in paths


def test_failure_emits_failed_summary(make_talos, capture):
    class Broken:
        def resolve(self, schematic):
            raise RuntimeError("factory down")

    with pytest.raises(RuntimeError):
        render_talos(make_talos(), resolver=Broken(), bus=EventBus([capture]))

    last = capture.events[-1]
    assert isinstance(last, RenderSummary)
    assert last.status == "FAILED"
    assert "factory down" in last.error
