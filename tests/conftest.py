import pytest
from ruamel.yaml import YAML

from kubepolicy.core.errors import ResolverError
from kubepolicy.core.models import ImageConfig
from kubepolicy.core.settings import PolicySettings
from kubepolicy.images.reference import ImageReference
from kubepolicy.images.resolver import ImageInfo
from kubepolicy.manifest.exporter import round_trip_yaml

FAKE_DIGEST = "sha256:" + "ab" * 32
POLICY_KEY = "io.katacontainers.config.agent.policy"

DEPLOYMENT_YAML = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: web
  namespace: shop
  labels:
    app: web
spec:
  replicas: 3
  selector:
    matchLabels:
      app: web
  strategy:
    type: RollingUpdate
    rollingUpdate:
      maxSurge: 25%
      maxUnavailable: 1
  template:
    metadata:
      labels:
        app: web
    spec:
      containers:
        - name: app
          image: nginx:1.25
          volumeMounts:
            - name: scratch
              mountPath: /scratch
        - name: sidecar
          image: busybox
          command: ["sleep", "infinity"]
      volumes:
        - name: scratch
          emptyDir: {}
"""


class FakeResolver:
    """Offline stand-in for ImageResolver."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []
        self.closed = False

    async def resolve(self, image, use_cache=False):
        self.calls.append((image, use_cache))
        if self.fail_on and self.fail_on in image:
            raise ResolverError(image, "registry unreachable")
        ref = ImageReference.parse(image)
        return ImageInfo(
            reference=str(ref.with_digest(FAKE_DIGEST)),
            digest=FAKE_DIGEST,
            config=ImageConfig(
                user="101", env=["PATH=/usr/bin"],
                entrypoint=["/docker-entrypoint.sh"], cmd=["nginx"], working_dir="/srv",
            ),
        )

    async def close(self):
        self.closed = True


class RecordingPolicy:
    """Policy context that records what the generator is handed."""

    def __init__(self, result="policy-text"):
        self.settings = PolicySettings()
        self.result = result
        self.containers = None
        self.mounts = []
        self.storages = []
        self.annotations = "unset"

    def generate_policy(self, resource):
        self.containers = [c.name for c in resource.containers()]
        for container in resource.containers():
            resource.container_mounts_and_storages(self.mounts, self.storages, container, self)
        self.annotations = resource.annotations()
        return self.result


def load_raw(text):
    return round_trip_yaml().load(text)


def load_plain(text):
    return YAML(typ='safe').load(text)


async def initialized(cls, text, resolver=None, silent=False, use_cache=False):
    raw = load_raw(text)
    resource = cls.parse(raw)
    await resource.initialize(use_cache, raw, silent, resolver=resolver or FakeResolver())
    return resource, raw


@pytest.fixture
def settings(tmp_path):
    return PolicySettings(cache_path=str(tmp_path / "images.json"))
