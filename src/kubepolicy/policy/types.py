#!/usr/bin/env python3
"""
KUBEPOLICY POLICY TYPES
-----------------------
Mount and storage descriptors as they appear in the generated policy.

Author: KubePolicy Team
Date: 2026-10-19
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class KataMount:
    """A single OCI mount the sandbox agent is allowed to create."""
    destination: str
    type_: str = "bind"
    source: str = ""
    options: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "destination": self.destination,
            "type": self.type_,
            "source": self.source,
            "options": list(self.options),
        }


@dataclass
class SerializedStorage:
    """A storage object the agent mounts inside the sandbox before the container starts."""
    driver: str
    source: str
    fstype: str
    mount_point: str
    driver_options: List[str] = field(default_factory=list)
    options: List[str] = field(default_factory=list)
    fs_group: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "driver": self.driver,
            "driver_options": list(self.driver_options),
            "source": self.source,
            "fstype": self.fstype,
            "options": list(self.options),
            "mount_point": self.mount_point,
            "fs_group": self.fs_group,
        }
