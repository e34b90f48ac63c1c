import pytest

from kubepolicy.core.errors import SchemaRejectionError, UnsupportedKindError
from kubepolicy.resources.daemon_set import DaemonSet
from kubepolicy.resources.job import Job
from kubepolicy.resources.pod import Pod
from kubepolicy.resources.registry import RESOURCE_KINDS, new_resource
from kubepolicy.resources.replica_set import ReplicaSet

from conftest import POLICY_KEY, RecordingPolicy, initialized, load_plain, load_raw

POD_YAML = """\
apiVersion: v1
kind: Pod
metadata:
  name: busybox-sandbox
  annotations:
    team: infra
spec:
  hostNetwork: true
  containers:
    - name: shell
      image: busybox:1.36
      volumeMounts:
        - name: settings
          mountPath: /etc/app
          readOnly: true
  volumes:
    - name: settings
      configMap:
        name: app-settings
"""

TEMPLATED_YAML = """\
apiVersion: {api}
kind: {kind}
metadata:
  name: worker
spec:
  template:
    metadata:
      labels:
        app: worker
    spec:
      restartPolicy: {restart}
      containers:
        - name: main
          image: quay.io/acme/worker:2.1
"""


@pytest.mark.asyncio
async def test_pod_is_its_own_sandbox():
    pod, _ = await initialized(Pod, POD_YAML)

    assert pod.sandbox_name() == "busybox-sandbox"
    assert pod.uses_host_network() is True
    assert pod.annotations() == {"team": "infra"}
    assert [c.name for c in pod.containers()] == ["shell"]


@pytest.mark.asyncio
async def test_pod_policy_lands_on_pod_metadata():
    pod, _ = await initialized(Pod, POD_YAML)
    output = load_plain(pod.serialize("p"))

    assert output["metadata"]["annotations"] == {"team": "infra", POLICY_KEY: "p"}
    output["metadata"]["annotations"].pop(POLICY_KEY)
    assert output == load_plain(POD_YAML)


@pytest.mark.asyncio
async def test_pod_configmap_mount_is_read_only_without_storage():
    pod, _ = await initialized(Pod, POD_YAML)
    policy = RecordingPolicy()
    pod.generate_policy(policy)

    assert len(policy.mounts) == 1
    assert policy.mounts[0].options[-1] == "ro"
    assert policy.storages == []


@pytest.mark.asyncio
@pytest.mark.parametrize("cls, api, restart", [
    (DaemonSet, "apps/v1", "Always"),
    (ReplicaSet, "apps/v1", "Always"),
    (Job, "batch/v1", "Never"),
])
async def test_templated_kinds_share_deployment_behaviour(cls, api, restart):
    text = TEMPLATED_YAML.format(api=api, kind=cls.KIND, restart=restart)
    resource, _ = await initialized(cls, text)

    assert resource.sandbox_name() is None
    assert resource.uses_host_network() is False
    assert resource.annotations() is None
    assert [c.name for c in resource.containers()] == ["main"]

    output = load_plain(resource.serialize("p"))
    assert output["spec"]["template"]["metadata"]["annotations"] == {POLICY_KEY: "p"}


@pytest.mark.parametrize("kind", sorted(RESOURCE_KINDS))
def test_registry_dispatches_on_kind(kind):
    if kind == "Pod":
        text = POD_YAML
    else:
        text = TEMPLATED_YAML.format(api="apps/v1", kind=kind, restart="Always")
    resource = new_resource(load_raw(text))
    assert type(resource) is RESOURCE_KINDS[kind]


@pytest.mark.parametrize("text", [
    "apiVersion: v1\nkind: Gadget\nmetadata:\n  name: x\n",
    "apiVersion: v1\nmetadata:\n  name: x\n",
    "- just\n- a list\n",
])
def test_unknown_kind_is_rejected(text):
    with pytest.raises(UnsupportedKindError):
        new_resource(load_raw(text))


def test_missing_pod_template_is_rejected():
    text = "apiVersion: batch/v1\nkind: Job\nmetadata:\n  name: x\nspec:\n  completions: 1\n"
    with pytest.raises(SchemaRejectionError) as exc:
        new_resource(load_raw(text))
    assert exc.value.path == "spec.template"
