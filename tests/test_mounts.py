import pytest

from kubepolicy.core.models import Container, Volume
from kubepolicy.core.settings import PolicySettings
from kubepolicy.policy.mounts import get_container_mounts_and_storages


class Context:
    settings = PolicySettings()


def classify(volume, mount_extra=None):
    mount = {"name": volume["name"], "mountPath": "/data"}
    mount.update(mount_extra or {})
    container = Container.from_dict({"name": "c", "image": "busybox", "volumeMounts": [mount]})
    mounts, storages = [], []
    get_container_mounts_and_storages(mounts, storages, container, Context(), [Volume.from_dict(volume)])
    return mounts, storages


def test_empty_dir_yields_one_mount_and_one_local_storage():
    mounts, storages = classify({"name": "scratch", "emptyDir": {}})

    assert len(mounts) == 1 and len(storages) == 1
    assert storages[0].driver == "local"
    assert storages[0].options == ["mode=0777"]
    assert mounts[0].source == storages[0].mount_point
    assert mounts[0].source.endswith("scratch$")
    assert mounts[0].options == ["rbind", "rprivate", "rw"]


def test_memory_empty_dir_uses_ephemeral_tmpfs():
    mounts, storages = classify({"name": "cache", "emptyDir": {"medium": "Memory"}})
    assert storages[0].driver == "ephemeral"
    assert storages[0].fstype == "tmpfs"
    assert mounts[0].source == "^/run/kata-containers/sandbox/ephemeral/cache$"


@pytest.mark.parametrize("source", ["configMap", "secret", "downwardAPI", "projected"])
def test_shared_file_volumes_are_read_only_binds(source):
    mounts, storages = classify({"name": "cfg", source: {}})
    assert storages == []
    assert mounts[0].options[-1] == "ro"
    assert mounts[0].source.endswith("data$")


def test_host_path_and_claims():
    host, _ = classify({"name": "logs", "hostPath": {"path": "/var/log"}})
    claim, claim_storages = classify({"name": "db", "persistentVolumeClaim": {"claimName": "pg-data"}})

    assert host[0].source == "^/var/log$"
    assert claim[0].source == "^$(cpath)/pvc/pg-data$"
    assert claim_storages == []


@pytest.mark.parametrize("extra, expected", [
    ({"readOnly": True}, ["rbind", "rprivate", "ro"]),
    ({"mountPropagation": "Bidirectional"}, ["rbind", "rshared", "rw"]),
    ({"mountPropagation": "HostToContainer"}, ["rbind", "rslave", "rw"]),
])
def test_mount_options(extra, expected):
    mounts, _ = classify({"name": "scratch", "emptyDir": {}}, extra)
    assert mounts[0].options == expected


def test_only_mounted_volumes_contribute():
    container = Container.from_dict({"name": "c", "image": "busybox", "volumeMounts": [
        {"name": "a", "mountPath": "/a"},
        {"name": "missing", "mountPath": "/m"},
    ]})
    volumes = [Volume.from_dict({"name": "a", "emptyDir": {}}), Volume.from_dict({"name": "b", "emptyDir": {}})]
    mounts, storages = [], []
    get_container_mounts_and_storages(mounts, storages, container, Context(), volumes)

    assert [m.destination for m in mounts] == ["/a"]
    assert len(storages) == 1


@pytest.mark.parametrize("volume", [{"name": "scratch", "emptyDir": None}, {"name": "scratch"}])
def test_volume_without_source_defaults_to_empty_dir(volume):
    mounts, storages = classify(volume)

    assert [s.driver for s in storages] == ["local"]
    assert mounts[0].source == storages[0].mount_point
    assert mounts[0].destination == "/data"


def test_unknown_volume_source_is_skipped():
    mounts, storages = classify({"name": "odd", "nfs": {"server": "nfs.example.com", "path": "/"}})
    assert mounts == [] and storages == []
