#!/usr/bin/env python3
"""
KUBEPOLICY IMAGE REFERENCE
--------------------------
Normalizes container image references the way container runtimes do:
'nginx' -> 'docker.io/library/nginx:latest'.

Author: KubePolicy Team
Date: 2026-10-19
"""

import re
from dataclasses import dataclass
from typing import Optional

DEFAULT_REGISTRY = "docker.io"
DEFAULT_TAG = "latest"
DOCKER_HUB_API_HOST = "registry-1.docker.io"

DIGEST_PATTERN = re.compile(r'^[a-z0-9]+(?:[+._-][a-z0-9]+)*:[a-fA-F0-9]{32,}$')
TAG_PATTERN = re.compile(r'^[\w][\w.-]{0,127}$')


@dataclass(frozen=True)
class ImageReference:
    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    @classmethod
    def parse(cls, image: str) -> "ImageReference":
        """
        Splits a reference into registry, repository, tag and digest.
        Raises ValueError for references that cannot be pulled.
        """
        ref = image.strip()
        if not ref or any(c.isspace() for c in ref):
            raise ValueError(f"Invalid image reference '{image}'")

        digest = None
        if "@" in ref:
            ref, digest = ref.split("@", 1)
            if not DIGEST_PATTERN.match(digest):
                raise ValueError(f"Invalid digest in image reference '{image}'")

        # A tag is the part after the last ':' that is not inside the registry host
        tag = None
        last_slash = ref.rfind("/")
        last_colon = ref.rfind(":")
        if last_colon > last_slash:
            ref, tag = ref[:last_colon], ref[last_colon + 1:]
            if not TAG_PATTERN.match(tag):
                raise ValueError(f"Invalid tag in image reference '{image}'")

        first, _, rest = ref.partition("/")
        if rest and ("." in first or ":" in first or first == "localhost"):
            registry, repository = first, rest
        else:
            registry, repository = DEFAULT_REGISTRY, ref

        if registry == DEFAULT_REGISTRY and "/" not in repository:
            repository = f"library/{repository}"

        if not repository or repository != repository.lower():
            raise ValueError(f"Invalid repository in image reference '{image}'")

        if tag is None and digest is None:
            tag = DEFAULT_TAG

        return cls(registry=registry, repository=repository, tag=tag, digest=digest)

    @property
    def name(self) -> str:
        return f"{self.registry}/{self.repository}"

    @property
    def api_host(self) -> str:
        return DOCKER_HUB_API_HOST if self.registry == DEFAULT_REGISTRY else self.registry

    @property
    def lookup(self) -> str:
        """The manifest reference to request: digest wins over tag."""
        return self.digest or self.tag or DEFAULT_TAG

    def with_digest(self, digest: str) -> "ImageReference":
        return ImageReference(self.registry, self.repository, self.tag, digest)

    def __str__(self) -> str:
        out = self.name
        if self.tag:
            out += f":{self.tag}"
        if self.digest:
            out += f"@{self.digest}"
        return out
