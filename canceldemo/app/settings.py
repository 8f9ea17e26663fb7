# canceldemo/app/settings.py
from __future__ import annotations
import json5, os
from pydantic import JsonValue
from pathlib import Path
from typing import Any, cast
from functools import lru_cache

from canceldemo.core.dictpath import getByPath

import logging
logger = logging.getLogger(__name__)

__all__ = [
    "SETTINGS", "CLIENT_CLOSED_REQUEST", "userSettingsPath", "loadUserSettings",
    "loadSettings", "deepMerge", "settings", "settingsBool",
    "hostSettings", "hostBaseUrl", "cancelledStatusCode",
]

# Non-standard "client closed request" status
CLIENT_CLOSED_REQUEST = 499

SETTINGS: JsonValue = {
    "__source": "CANCELDEMO_DEFAULTS",
    "hosts": {
        "core": {"name": "Minimal Server (FastAPI)", "host": "127.0.0.1", "port": 5103},
        "api": {"name": "Pipeline Server (FastAPI + middleware)", "host": "127.0.0.1", "port": 5104},
    },
    "cancellation": {"statusCode": CLIENT_CLOSED_REQUEST, "forceAbortGraceMs": 100},
    "client": {"timeoutMs": 120_000, "cancelAfterMs": 3_000},
    "driver": {
        "readyTimeoutMs": 30_000,
        "readyPollMs": 250,
        "cancelToleranceMs": 1_500,
        "delaySeconds": 2,
        "longDelaySeconds": 10,
    },
    "logging": {"devMode": True, "file": None},
}



def userSettingsPath() -> Path:
    override = os.environ.get("CANCELDEMO_SETTINGS")
    if override:
        return Path(override).expanduser()
    return Path(os.path.expanduser("~/.canceldemo/canceldemo.json5"))



def loadUserSettings() -> JsonValue:
    filePath = userSettingsPath()
    if filePath.exists():
        try:
            return json5.loads(filePath.read_text(encoding="utf-8"))
        except Exception as err:
            logger.error("Failed to parse '%s': %s", filePath, err)
    return {}



@lru_cache(maxsize=1)
def loadSettings() -> JsonValue:
    return deepMerge(SETTINGS, loadUserSettings())



def deepMerge(first: JsonValue, second: JsonValue) -> JsonValue:
    """
    Returns a new JsonValue where keys from `second` override/extend `first`.
    Only merges recursively when BOTH sides are JSON objects (dicts).
    For all other JSON types the right-hand value `second` replaces `first`.
    """
    if isinstance(first, dict) and isinstance(second, dict):
        out: dict[str, JsonValue] = dict(first)
        for key, value in second.items():
            if key in out:
                out[key] = deepMerge(out[key], cast(JsonValue, value))
            else:
                out[key] = cast(JsonValue, value)
        return cast(JsonValue, out)
    return cast(JsonValue, second)

# ---------- Ergonomic accessors over merged settings ----------

def settings(path: str, default: Any = None) -> Any:
    """Returns value at `path` from merged settings, or `default` if missing."""
    val = getByPath(loadSettings(), path)
    return default if val is None else val



def settingsBool(path: str, default: bool = False) -> bool:
    val = getByPath(loadSettings(), path)
    if isinstance(val, bool):
        return val
    if val is None:
        return default
    return bool(val)

# --------------------------------------------------------------

def hostSettings(hostKey: str) -> dict[str, Any]:
    """Returns {"name", "host", "port"} for "core" or "api"."""
    cfg = settings(f"hosts.{hostKey}")
    if not isinstance(cfg, dict):
        raise KeyError(f"Unknown host '{hostKey}'")
    return cfg



def hostBaseUrl(hostKey: str) -> str:
    cfg = hostSettings(hostKey)
    return f"http://{cfg.get('host', '127.0.0.1')}:{int(cfg['port'])}"



def cancelledStatusCode() -> int:
    code = int(settings("cancellation.statusCode", CLIENT_CLOSED_REQUEST))
    # Must stay distinguishable from the statuses used for other outcomes
    if code in (200, 404, 422, 500):
        logger.warning("cancellation.statusCode=%d clashes with another outcome, using %d", code, CLIENT_CLOSED_REQUEST)
        return CLIENT_CLOSED_REQUEST
    return code
