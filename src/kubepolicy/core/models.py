#!/usr/bin/env python3
"""
KUBEPOLICY CORE MODELS
----------------------
Typed mirror of the Kubernetes object, pod and container fields that
policy generation understands. Every field records the YAML key it came
from, so absent fields stay absent (None) when a model is dumped back.

The same field descriptions drive the validator: 'type' says how a raw
value is checked and converted, 'required' marks mandatory keys and
'model' points at a nested KubeObject.

Author: KubePolicy Team
Date: 2026-10-19
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

# Field types understood by load_value / KubeValidator
STR = "string"
INT = "integer"
BOOL = "boolean"
INT_OR_STR = "int-or-string"
STR_MAP = "string-map"
STR_LIST = "string-list"
OPAQUE = "any"          # accepted as-is, never inspected for unsupported fields
OBJECT = "object"
ARRAY = "array"


def kfield(key: str, type_: str = STR, model: Any = None, required: bool = False):
    """Declares a dataclass field bound to a YAML key."""
    return field(default=None, metadata={
        "key": key, "type": type_, "model": model, "required": required
    })


def plain(value: Any) -> Any:
    """Detaches a ruamel round-trip value into plain dicts, lists and scalars."""
    if isinstance(value, dict):
        return {str(k): plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [plain(v) for v in value]
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, str):
        return str(value)
    return value


def load_value(meta: Dict[str, Any], value: Any) -> Any:
    type_ = meta["type"]
    if value is None:
        return None
    if type_ == OBJECT:
        return meta["model"].from_dict(value)
    if type_ == ARRAY:
        return [meta["model"].from_dict(item) for item in value]
    if type_ == STR:
        return str(value)
    if type_ == INT:
        return int(value)
    if type_ == BOOL:
        return bool(value)
    if type_ == INT_OR_STR:
        if isinstance(value, int) and not isinstance(value, bool):
            return int(value)
        return str(value)
    if type_ == STR_MAP:
        return {str(k): str(v) for k, v in value.items()}
    if type_ == STR_LIST:
        return [str(v) for v in value]
    return plain(value)


def dump_value(meta: Dict[str, Any], value: Any) -> Any:
    type_ = meta["type"]
    if type_ == OBJECT:
        return value.to_dict()
    if type_ == ARRAY:
        return [item.to_dict() for item in value]
    if type_ == STR_MAP:
        return dict(value)
    if type_ == STR_LIST:
        return list(value)
    return value


class KubeObject:
    """
    Base for every typed schema node. Subclasses are dataclasses whose
    fields are declared with kfield(); fields without a 'key' are runtime
    state and are never loaded or dumped.
    """

    @classmethod
    def schema_fields(cls) -> Dict[str, Any]:
        """Maps YAML keys to field metadata."""
        return {f.metadata["key"]: f.metadata for f in fields(cls) if "key" in f.metadata}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        values = {}
        for f in fields(cls):
            key = f.metadata.get("key")
            if key is None or key not in data:
                continue
            values[f.name] = load_value(f.metadata, data[key])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            key = f.metadata.get("key")
            if key is None:
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            out[key] = dump_value(f.metadata, value)
        return out


@dataclass
class LabelSelector(KubeObject):
    match_labels: Optional[Dict[str, str]] = kfield("matchLabels", STR_MAP)
    match_expressions: Optional[List[Any]] = kfield("matchExpressions", OPAQUE)


@dataclass
class ObjectMeta(KubeObject):
    """Reference / Kubernetes API / Common Definitions / ObjectMeta."""
    name: Optional[str] = kfield("name")
    generate_name: Optional[str] = kfield("generateName")
    namespace: Optional[str] = kfield("namespace")
    labels: Optional[Dict[str, str]] = kfield("labels", STR_MAP)
    annotations: Optional[Dict[str, str]] = kfield("annotations", STR_MAP)
    uid: Optional[str] = kfield("uid")
    owner_references: Optional[List[Any]] = kfield("ownerReferences", OPAQUE)
    finalizers: Optional[List[str]] = kfield("finalizers", STR_LIST)

    def get_namespace(self, default: str = "default") -> str:
        return self.namespace if self.namespace else default


@dataclass
class VolumeMount(KubeObject):
    name: str = kfield("name", required=True)
    mount_path: str = kfield("mountPath", required=True)
    read_only: Optional[bool] = kfield("readOnly", BOOL)
    sub_path: Optional[str] = kfield("subPath")
    sub_path_expr: Optional[str] = kfield("subPathExpr")
    mount_propagation: Optional[str] = kfield("mountPropagation")


@dataclass
class EnvVar(KubeObject):
    name: str = kfield("name", required=True)
    value: Optional[str] = kfield("value")
    value_from: Optional[Dict[str, Any]] = kfield("valueFrom", OPAQUE)


@dataclass
class SecurityContext(KubeObject):
    privileged: Optional[bool] = kfield("privileged", BOOL)
    read_only_root_filesystem: Optional[bool] = kfield("readOnlyRootFilesystem", BOOL)
    allow_privilege_escalation: Optional[bool] = kfield("allowPrivilegeEscalation", BOOL)
    run_as_user: Optional[int] = kfield("runAsUser", INT)
    run_as_group: Optional[int] = kfield("runAsGroup", INT)
    run_as_non_root: Optional[bool] = kfield("runAsNonRoot", BOOL)
    capabilities: Optional[Dict[str, Any]] = kfield("capabilities", OPAQUE)
    seccomp_profile: Optional[Dict[str, Any]] = kfield("seccompProfile", OPAQUE)


@dataclass
class ImageConfig:
    """Runtime configuration read from the image config blob."""
    user: str = ""
    env: List[str] = field(default_factory=list)
    entrypoint: List[str] = field(default_factory=list)
    cmd: List[str] = field(default_factory=list)
    working_dir: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageConfig":
        return cls(
            user=data.get("User") or "",
            env=list(data.get("Env") or []),
            entrypoint=list(data.get("Entrypoint") or []),
            cmd=list(data.get("Cmd") or []),
            working_dir=data.get("WorkingDir") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "User": self.user, "Env": list(self.env), "Entrypoint": list(self.entrypoint),
            "Cmd": list(self.cmd), "WorkingDir": self.working_dir,
        }


@dataclass
class Container(KubeObject):
    """Reference / Kubernetes API / Workload Resources / Pod / Container."""
    name: str = kfield("name", required=True)
    image: str = kfield("image", required=True)
    command: Optional[List[str]] = kfield("command", STR_LIST)
    args: Optional[List[str]] = kfield("args", STR_LIST)
    working_dir: Optional[str] = kfield("workingDir")
    env: Optional[List[EnvVar]] = kfield("env", ARRAY, EnvVar)
    env_from: Optional[List[Any]] = kfield("envFrom", OPAQUE)
    volume_mounts: Optional[List[VolumeMount]] = kfield("volumeMounts", ARRAY, VolumeMount)
    security_context: Optional[SecurityContext] = kfield("securityContext", OBJECT, SecurityContext)
    image_pull_policy: Optional[str] = kfield("imagePullPolicy")
    ports: Optional[List[Any]] = kfield("ports", OPAQUE)
    resources: Optional[Dict[str, Any]] = kfield("resources", OPAQUE)
    liveness_probe: Optional[Dict[str, Any]] = kfield("livenessProbe", OPAQUE)
    readiness_probe: Optional[Dict[str, Any]] = kfield("readinessProbe", OPAQUE)
    startup_probe: Optional[Dict[str, Any]] = kfield("startupProbe", OPAQUE)
    lifecycle: Optional[Dict[str, Any]] = kfield("lifecycle", OPAQUE)
    stdin: Optional[bool] = kfield("stdin", BOOL)
    tty: Optional[bool] = kfield("tty", BOOL)
    termination_message_path: Optional[str] = kfield("terminationMessagePath")
    termination_message_policy: Optional[str] = kfield("terminationMessagePolicy")

    # Set by initialize(); never serialized
    image_digest: Optional[str] = field(default=None, repr=False)
    image_config: Optional[ImageConfig] = field(default=None, repr=False)

    def is_privileged(self) -> bool:
        return bool(self.security_context and self.security_context.privileged)

    def read_only_root(self) -> bool:
        return bool(self.security_context and self.security_context.read_only_root_filesystem)

    def process_args(self) -> List[str]:
        """
        Effective argv following Kubernetes rules: 'command' replaces the
        image entrypoint, 'args' replaces the image cmd.
        """
        config = self.image_config or ImageConfig()
        if self.command is not None:
            return list(self.command) + list(self.args or [])
        if self.args is not None:
            return list(config.entrypoint) + list(self.args)
        return list(config.entrypoint) + list(config.cmd)

    def process_env(self) -> List[str]:
        config = self.image_config or ImageConfig()
        env = list(config.env)
        for var in self.env or []:
            if var.value_from is not None:
                env.append(f"{var.name}=$(value-from)")
            else:
                env.append(f"{var.name}={var.value or ''}")
        return env


@dataclass
class Volume(KubeObject):
    """
    Reference / Kubernetes API / Config and Storage Resources / Volume.
    Exactly one source key is expected; sources are kept opaque.
    """
    name: str = kfield("name", required=True)
    empty_dir: Optional[Dict[str, Any]] = kfield("emptyDir", OPAQUE)
    host_path: Optional[Dict[str, Any]] = kfield("hostPath", OPAQUE)
    config_map: Optional[Dict[str, Any]] = kfield("configMap", OPAQUE)
    secret: Optional[Dict[str, Any]] = kfield("secret", OPAQUE)
    persistent_volume_claim: Optional[Dict[str, Any]] = kfield("persistentVolumeClaim", OPAQUE)
    downward_api: Optional[Dict[str, Any]] = kfield("downwardAPI", OPAQUE)
    projected: Optional[Dict[str, Any]] = kfield("projected", OPAQUE)
    ephemeral: Optional[Dict[str, Any]] = kfield("ephemeral", OPAQUE)

    # Source keys as written, including explicit nulls and unmodelled sources
    source_keys: List[str] = field(default_factory=list, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Volume":
        volume = super().from_dict(data)
        volume.source_keys = [str(k) for k in data if k != "name"]
        return volume

    def is_empty_dir(self) -> bool:
        """
        True for `emptyDir` sources, including `emptyDir:` with a null
        value and volumes with no source at all, which the API server
        defaults to an emptyDir.
        """
        return self.empty_dir is not None or set(self.source_keys) <= {"emptyDir"}


@dataclass
class PodSpec(KubeObject):
    """Reference / Kubernetes API / Workload Resources / Pod / PodSpec."""
    containers: List[Container] = kfield("containers", ARRAY, Container, required=True)
    init_containers: Optional[List[Container]] = kfield("initContainers", ARRAY, Container)
    volumes: Optional[List[Volume]] = kfield("volumes", ARRAY, Volume)
    host_network: Optional[bool] = kfield("hostNetwork", BOOL)
    host_pid: Optional[bool] = kfield("hostPID", BOOL)
    host_ipc: Optional[bool] = kfield("hostIPC", BOOL)
    service_account_name: Optional[str] = kfield("serviceAccountName")
    automount_service_account_token: Optional[bool] = kfield("automountServiceAccountToken", BOOL)
    restart_policy: Optional[str] = kfield("restartPolicy")
    runtime_class_name: Optional[str] = kfield("runtimeClassName")
    share_process_namespace: Optional[bool] = kfield("shareProcessNamespace", BOOL)
    termination_grace_period_seconds: Optional[int] = kfield("terminationGracePeriodSeconds", INT)
    dns_policy: Optional[str] = kfield("dnsPolicy")
    node_selector: Optional[Dict[str, str]] = kfield("nodeSelector", STR_MAP)
    affinity: Optional[Dict[str, Any]] = kfield("affinity", OPAQUE)
    tolerations: Optional[List[Any]] = kfield("tolerations", OPAQUE)
    security_context: Optional[Dict[str, Any]] = kfield("securityContext", OPAQUE)
    image_pull_secrets: Optional[List[Any]] = kfield("imagePullSecrets", OPAQUE)

    def all_containers(self) -> List[Container]:
        """Init containers first, then regular containers, in declared order."""
        return list(self.init_containers or []) + list(self.containers)


@dataclass
class PodTemplateSpec(KubeObject):
    """Reference / Kubernetes API / Workload Resources / PodTemplate."""
    metadata: ObjectMeta = kfield("metadata", OBJECT, ObjectMeta, required=True)
    spec: PodSpec = kfield("spec", OBJECT, PodSpec, required=True)
