# Shared builders for composer tests
import pytest

from stackgen.talos.models import TalosConfig


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


@pytest.fixture
def capture():
    return Capture()


def talos_cfg(**overrides) -> TalosConfig:
    data = {
        "cluster_name": "homelab",
        "endpoint": "https://10.0.0.10:6443",
        "controlplanes": {
            "cp1": {"address": "10.0.0.11", "install_disk": "/dev/sda"},
        },
    }
    data.update(overrides)
    return TalosConfig.model_validate(data)


@pytest.fixture
def make_talos():
    return talos_cfg
