#!/usr/bin/env python3
"""
KUBEPOLICY IMAGE CACHE
----------------------
A JSON file memoising resolved images, keyed by normalized reference.
Writes go through a temp file and os.replace so a crash never leaves a
truncated cache behind.

Author: KubePolicy Team
Date: 2026-10-19
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger("kubepolicy.cache")


class ImageCache:
    """
    Loaded lazily on first access. A corrupt cache file is discarded with
    a warning rather than failing the run.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._entries: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._entries is None:
            self._entries = {}
            if self.path.exists():
                try:
                    data = json.loads(self.path.read_text(encoding='utf-8'))
                    if isinstance(data, dict):
                        self._entries = data
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Ignoring unreadable image cache {self.path}: {str(e)}")
        return self._entries

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._load().get(key)

    def put(self, key: str, value: Dict[str, Any]) -> None:
        self._load()[key] = value
        self._save()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_suffix('.kubepolicy.tmp')
        try:
            temp_file.write_text(json.dumps(self._entries, indent=2, sort_keys=True), encoding='utf-8')
            os.replace(temp_file, self.path)
        except OSError as e:
            if temp_file.exists(): temp_file.unlink()
            raise IOError(f"Atomic write failed: {str(e)}")
        logger.info(f"Image cache updated: {self.path}")
