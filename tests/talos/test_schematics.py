import pytest
import requests

from stackgen.errors import FactoryError
from stackgen.talos.models import NodeSpec
from stackgen.talos.schematics import (
    ContentHashResolver,
    FactoryClient,
    NodeRef,
    SchematicKey,
    group_schematics,
    installer_image,
    installer_type,
    resolve_schematics,
)


def _node(extensions, overlay=None) -> NodeSpec:
    data = {"address": "10.0.0.1", "install_disk": "/dev/sda", "extensions": extensions}
    if overlay:
        data["overlay"] = {"image": overlay[0], "name": overlay[1]}
    return NodeSpec.model_validate(data)


class CountingResolver:
    def __init__(self): self.calls = []
    def resolve(self, schematic):
        self.calls.append(schematic)
        return f"id{len(self.calls)}"


def test_key_is_order_and_duplicate_insensitive():
    a = SchematicKey.from_node(_node(["siderolabs/zfs", "siderolabs/tailscale"]))
    b = SchematicKey.from_node(_node(["siderolabs/tailscale", "siderolabs/zfs", "siderolabs/zfs"]))
    assert a == b
    assert a.extensions == ("siderolabs/tailscale", "siderolabs/zfs")


def test_overlay_distinguishes_keys():
    plain = SchematicKey.from_node(_node(["siderolabs/tailscale"]))
    rpi = SchematicKey.from_node(_node(["siderolabs/tailscale"], ("siderolabs/sbc-raspberrypi", "rpi_generic")))
    assert plain != rpi
    assert rpi.overlay == ("siderolabs/sbc-raspberrypi", "rpi_generic")


def test_delimiter_in_extension_name_does_not_collide():
    joined = SchematicKey.from_node(_node(["a,b"]))
    split = SchematicKey.from_node(_node(["a", "b"]))
    assert joined != split


def test_schematic_body():
    key = SchematicKey.from_node(_node(["siderolabs/tailscale"], ("siderolabs/sbc-raspberrypi", "rpi_generic")))
    assert key.schematic() == {
        "overlay": {"image": "siderolabs/sbc-raspberrypi", "name": "rpi_generic"},
        "customization": {"systemExtensions": {"officialExtensions": ["siderolabs/tailscale"]}},
    }
    assert "overlay" not in SchematicKey.from_node(_node(["siderolabs/tailscale"])).schematic()


def test_five_nodes_two_combinations_two_requests():
    shared = ["siderolabs/tailscale", "siderolabs/iscsi-tools"]
    nodes = [
        (NodeRef("controlplane", "cp1"), _node(shared)),
        (NodeRef("controlplane", "cp2"), _node(list(reversed(shared)))),
        (NodeRef("worker", "w1"), _node(shared)),
        (NodeRef("worker", "w2"), _node(shared)),
        (NodeRef("worker", "w3"), _node(shared, ("siderolabs/sbc-rockchip", "turingrk1"))),
    ]
    groups = group_schematics(nodes)
    resolver = CountingResolver()
    ids = resolve_schematics(groups, resolver)

    assert len(groups) == 2
    assert len(resolver.calls) == 2
    assert len(ids) == 2
    first = next(iter(groups))
    assert [str(r) for r in groups[first]] == ["controlplane/cp1", "controlplane/cp2", "worker/w1", "worker/w2"]


def test_same_key_in_both_roles_is_one_request():
    nodes = [
        (NodeRef("controlplane", "n1"), _node(["siderolabs/tailscale"])),
        (NodeRef("worker", "n1"), _node(["siderolabs/tailscale"])),
    ]
    assert len(group_schematics(nodes)) == 1


def test_content_hash_resolver_is_deterministic():
    key = SchematicKey.from_node(_node(["siderolabs/tailscale"]))
    r = ContentHashResolver()
    assert r.resolve(key.schematic()) == r.resolve(key.schematic())
    assert len(r.resolve(key.schematic())) == 64
    other = SchematicKey.from_node(_node(["siderolabs/zfs"]))
    assert r.resolve(other.schematic()) != r.resolve(key.schematic())


def test_installer_type_and_image():
    assert installer_type("metal") == "metal-installer"
    assert installer_type("nocloud") == "nocloud-installer"
    assert installer_type("commodore64") == "installer"
    assert installer_type(None) == "installer"
    assert (
        installer_image(registry="factory.talos.dev/", platform="metal", schematic_id="abc", version="v1.10.3")
        == "factory.talos.dev/metal-installer/abc:v1.10.3"
    )


# ----------------- FactoryClient -----------------

class _Resp:
    def __init__(self, status_code=201, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, resp=None, exc=None):
        self.resp = resp
        self.exc = exc
        self.posts = []
    def post(self, url, data=None, headers=None, timeout=None):
        self.posts.append((url, data, headers, timeout))
        if self.exc:
            raise self.exc
        return self.resp


def test_factory_client_posts_yaml_and_returns_id():
    session = FakeSession(_Resp(201, {"id": "376567988ad370138ad8b2698212367b8edcb69b5fd68c80be1f2ec7d603b4ba"}))
    client = FactoryClient(base_url="https://factory.example/", session=session)

    sid = client.resolve({"customization": {"systemExtensions": {"officialExtensions": ["siderolabs/tailscale"]}}})

    assert sid.startswith("3765")
    url, data, headers, timeout = session.posts[0]
    assert url == "https://factory.example/schematics"
    assert b"siderolabs/tailscale" in data
    assert headers["Content-Type"] == "application/yaml"
    assert timeout == 30


def test_factory_client_http_error():
    client = FactoryClient(session=FakeSession(_Resp(400, text="bad schematic")))
    with pytest.raises(FactoryError, match="400"):
        client.resolve({})


def test_factory_client_connection_error():
    client = FactoryClient(session=FakeSession(exc=requests.ConnectionError("refused")))
    with pytest.raises(FactoryError, match="refused"):
        client.resolve({})


def test_factory_client_bad_payload():
    client = FactoryClient(session=FakeSession(_Resp(200, payload={"nope": 1}, text='{"nope": 1}')))
    with pytest.raises(FactoryError, match="Unexpected"):
        client.resolve({})
