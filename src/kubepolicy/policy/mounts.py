#!/usr/bin/env python3
"""
KUBEPOLICY MOUNTS - Volume Classification
-----------------------------------------
Maps a pod's volume declarations onto the sandbox mounts and storages
a given container needs. Only volumes the container actually mounts
contribute descriptors.

Author: KubePolicy Team
Date: 2026-10-19
"""

import logging
import posixpath
from typing import Any, Dict, List, Optional

from kubepolicy.core.models import Container, Volume, VolumeMount
from kubepolicy.policy.types import KataMount, SerializedStorage

logger = logging.getLogger("kubepolicy.mounts")

EPHEMERAL_MOUNT_ROOT = "/run/kata-containers/sandbox/ephemeral/"

PROPAGATION_OPTIONS = {
    "Bidirectional": "rshared",
    "HostToContainer": "rslave",
    "None": "rprivate",
}


def get_container_mounts_and_storages(mounts: List[KataMount],
                                      storages: List[SerializedStorage],
                                      container: Container,
                                      policy_context: Any,
                                      volumes: List[Volume]) -> None:
    """
    Appends the descriptors for every volume mount of `container`.
    Mounts that reference an undeclared volume are skipped.
    """
    settings = policy_context.settings
    by_name: Dict[str, Volume] = {v.name: v for v in volumes}

    for volume_mount in container.volume_mounts or []:
        volume = by_name.get(volume_mount.name)
        if volume is None:
            logger.warning(f"Container '{container.name}' mounts unknown volume '{volume_mount.name}'")
            continue
        _classify(mounts, storages, volume, volume_mount, settings)


def _mount_options(volume_mount: VolumeMount, shared: bool = False) -> List[str]:
    propagation = PROPAGATION_OPTIONS.get(volume_mount.mount_propagation or "None", "rprivate")
    access = "ro" if volume_mount.read_only or shared else "rw"
    return ["rbind", propagation, access]


def _classify(mounts: List[KataMount], storages: List[SerializedStorage],
              volume: Volume, volume_mount: VolumeMount, settings: Any) -> None:
    destination = volume_mount.mount_path

    if volume.is_empty_dir():
        if (volume.empty_dir or {}).get("medium") == "Memory":
            mount_point = f"^{EPHEMERAL_MOUNT_ROOT}{volume.name}$"
            storages.append(SerializedStorage(
                driver="ephemeral", source="tmpfs", fstype="tmpfs",
                mount_point=mount_point,
            ))
        else:
            mount_point = f"{settings.emptydir_source_prefix}{volume.name}$"
            storages.append(SerializedStorage(
                driver="local", source="local", fstype="local",
                mount_point=mount_point, options=["mode=0777"],
            ))
        mounts.append(KataMount(
            destination=destination, source=mount_point,
            options=_mount_options(volume_mount),
        ))

    elif (volume.config_map is not None or volume.secret is not None
          or volume.downward_api is not None or volume.projected is not None):
        source = f"{settings.shared_files_prefix}{posixpath.basename(destination.rstrip('/'))}$"
        mounts.append(KataMount(
            destination=destination, source=source,
            options=_mount_options(volume_mount, shared=True),
        ))

    elif volume.host_path is not None:
        host_path = _host_path(volume.host_path)
        mounts.append(KataMount(
            destination=destination, source=f"^{host_path}$",
            options=_mount_options(volume_mount),
        ))

    elif volume.persistent_volume_claim is not None or volume.ephemeral is not None:
        claim = (volume.persistent_volume_claim or {}).get("claimName") or volume.name
        mounts.append(KataMount(
            destination=destination, source=f"^$(cpath)/pvc/{claim}$",
            options=_mount_options(volume_mount),
        ))

    else:
        logger.warning(f"Volume '{volume.name}' has an unsupported source; no mount generated")


def _host_path(source: Optional[Dict[str, Any]]) -> str:
    return str((source or {}).get("path", ""))
