#!/usr/bin/env python3
"""
KUBEPOLICY IMAGE RESOLVER
-------------------------
Resolves container image references against an OCI / Docker v2
registry: pins the manifest digest and reads the image config (user,
env, entrypoint, cmd, working dir) the policy needs.

Anonymous bearer-token auth is negotiated from the registry's
WWW-Authenticate challenge. Multi-platform indexes are narrowed to the
configured platform.

Author: KubePolicy Team
Date: 2026-10-19
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx

from kubepolicy.core.errors import ResolverError
from kubepolicy.core.models import ImageConfig
from kubepolicy.images.cache import ImageCache
from kubepolicy.images.reference import ImageReference

logger = logging.getLogger("kubepolicy.resolver")

MANIFEST_MEDIA_TYPES = ", ".join([
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
])

CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


@dataclass
class ImageInfo:
    """The outcome of resolving one image reference."""
    reference: str
    digest: str
    config: ImageConfig = field(default_factory=ImageConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageInfo":
        return cls(
            reference=data["reference"],
            digest=data["digest"],
            config=ImageConfig.from_dict(data.get("config") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"reference": self.reference, "digest": self.digest, "config": self.config.to_dict()}


class ImageResolver:
    """
    Registry client with an optional on-disk cache. One instance is
    shared by every manifest of a run; close() releases the HTTP pool.
    """

    def __init__(self, cache: Optional[ImageCache] = None, timeout: float = 30.0,
                 insecure_registries: Optional[List[str]] = None,
                 platform: Tuple[str, str] = ("linux", "amd64"),
                 client: Optional[httpx.AsyncClient] = None):
        self.cache = cache
        self.timeout = timeout
        self.insecure_registries = set(insecure_registries or [])
        self.platform = platform
        self._http_client = client
        self._owns_client = client is None
        self._tokens: Dict[str, str] = {}

    @classmethod
    def from_settings(cls, settings: Any) -> "ImageResolver":
        return cls(
            cache=ImageCache(settings.resolved_cache_path()),
            timeout=settings.request_timeout,
            insecure_registries=settings.insecure_registries,
            platform=(settings.platform_os, settings.platform_architecture),
        )

    async def resolve(self, image: str, use_cache: bool = False) -> ImageInfo:
        """
        Returns the pinned reference and config for `image`. With
        `use_cache`, a cached entry short-circuits the registry and a fresh
        lookup is stored for next time.
        """
        try:
            ref = ImageReference.parse(image)
        except ValueError as e:
            raise ResolverError(image, str(e))

        key = str(ref)
        if use_cache and self.cache is not None:
            cached = self.cache.get(key)
            if cached:
                logger.debug(f"Image cache hit: {key}")
                return ImageInfo.from_dict(cached)

        info = await self._fetch(ref)

        if use_cache and self.cache is not None:
            self.cache.put(key, info.to_dict())
        return info

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._http_client

    def _base_url(self, ref: ImageReference) -> str:
        host = ref.api_host
        scheme = "http" if host.split(":")[0] in self.insecure_registries else "https"
        return f"{scheme}://{host}"

    async def _fetch(self, ref: ImageReference) -> ImageInfo:
        try:
            manifest, digest = await self._get_manifest(ref, ref.lookup)

            if "manifests" in manifest:
                entry = self._select_platform(manifest["manifests"])
                if entry is None:
                    raise ResolverError(str(ref), f"no manifest for platform {'/'.join(self.platform)}")
                manifest, _ = await self._get_manifest(ref, entry["digest"])

            config_digest = (manifest.get("config") or {}).get("digest")
            if not config_digest:
                raise ResolverError(str(ref), "manifest has no config descriptor")

            response = await self._request(ref, f"/v2/{ref.repository}/blobs/{config_digest}")
            blob = response.json()
        except httpx.HTTPError as e:
            raise ResolverError(str(ref), f"{type(e).__name__}: {str(e)}") from e
        except ValueError as e:
            raise ResolverError(str(ref), f"malformed registry response: {str(e)}") from e

        digest = ref.digest or digest
        pinned = ref.with_digest(digest)
        logger.info(f"Resolved {ref} -> {digest}")
        return ImageInfo(
            reference=str(pinned),
            digest=digest,
            config=ImageConfig.from_dict(blob.get("config") or {}),
        )

    async def _get_manifest(self, ref: ImageReference, lookup: str) -> Tuple[Dict[str, Any], str]:
        response = await self._request(
            ref, f"/v2/{ref.repository}/manifests/{lookup}",
            headers={"Accept": MANIFEST_MEDIA_TYPES},
        )
        digest = response.headers.get("Docker-Content-Digest") or lookup
        return response.json(), digest

    def _select_platform(self, entries: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        os_name, arch = self.platform
        for entry in entries:
            platform = entry.get("platform") or {}
            if platform.get("os") == os_name and platform.get("architecture") == arch:
                return entry
        return None

    async def _request(self, ref: ImageReference, path: str,
                       headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        """GET with one bearer-token retry on a 401 challenge."""
        client = self._get_http_client()
        url = f"{self._base_url(ref)}{path}"
        headers = dict(headers or {})

        token = self._tokens.get(ref.name)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        response = await client.get(url, headers=headers)
        if response.status_code == 401 and "Authorization" not in headers:
            token = await self._authenticate(ref, response.headers.get("WWW-Authenticate", ""))
            headers["Authorization"] = f"Bearer {token}"
            response = await client.get(url, headers=headers)

        if response.status_code >= 400:
            raise ResolverError(str(ref), f"HTTP {response.status_code} for {path}")
        return response

    async def _authenticate(self, ref: ImageReference, challenge: str) -> str:
        scheme, _, params = challenge.partition(" ")
        if scheme.lower() != "bearer":
            raise ResolverError(str(ref), f"unsupported auth challenge '{challenge}'")

        fields = dict(CHALLENGE_PARAM.findall(params))
        realm = fields.pop("realm", None)
        if not realm:
            raise ResolverError(str(ref), "auth challenge without realm")
        fields.setdefault("scope", f"repository:{ref.repository}:pull")

        response = await self._get_http_client().get(realm, params=fields)
        if response.status_code >= 400:
            raise ResolverError(str(ref), f"token request failed with HTTP {response.status_code}")

        body = response.json()
        token = body.get("token") or body.get("access_token")
        if not token:
            raise ResolverError(str(ref), "token response without token")

        self._tokens[ref.name] = token
        return token
