#!/usr/bin/env python3
# termbridge/config.py
"""
Config loader/saver and defaults for termbridge.

Goals:
- Single JSON file per user.
- Safe atomic writes.
- Deep-merge of user config over defaults.
- Basic validation with sane fallbacks.
- Environment overrides for the terminal-derived switches.

Usage:
    from termbridge.config import Config
    cfg = Config.load()                 # ~/.config/termbridge/termbridge.json or OS-specific
    cfg.apply_env()                     # COLORTERM, TERMBRIDGE_* overrides
    painter = Painter(true_color=cfg.true_color)
"""

from __future__ import annotations

import json
import logging
import os
import platform
import shutil
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from termbridge.rendering.cell import Size

log = logging.getLogger(__name__)

# ----------------------------
# Defaults
# ----------------------------

DEFAULT_CONFIG: Dict[str, Any] = {
    "terminal": {
        "zoom": 100,                     # percent; scales the logical viewport
        "true_color": "auto",            # auto | on | off  (auto reads COLORTERM)
        "probe_timeout_ms": 100,         # deadline for escape-sequence round trips
    },
    "graphics": {
        "mode": "auto",                  # auto | sixel | blocks
        "scrolling": True,               # Sixel scrolling mode (DECSET 80)
        "geometry": [0, 0],              # max Sixel viewport in px, 0 = unbounded
        "dither": "auto",                # auto | none | floyd-steinberg | bayer
    },
    "render": {
        "fps": 60,
    },
    "logging": {
        "level": "WARNING",
        "file": None,                    # path or None
        "rotate_bytes": 5 * 1024 * 1024,
        "rotate_keep": 3,
    },
}

ENV_CONFIG = "TERMBRIDGE_CONFIG"
ENV_SIXEL_SCROLL = "TERMBRIDGE_SIXEL_SCROLL"
ENV_SIXEL_ONLY = "TERMBRIDGE_SIXEL_ONLY"
ENV_ZOOM = "TERMBRIDGE_ZOOM"

# ----------------------------
# Helpers
# ----------------------------

def _os_config_home() -> str:
    """Return per-OS config base directory."""
    if platform.system() == "Windows":
        base = os.environ.get("APPDATA") or os.path.expanduser("~\\AppData\\Roaming")
        return os.path.join(base, "termbridge")
    if platform.system() == "Darwin":
        return os.path.join(os.path.expanduser("~/Library/Application Support"), "termbridge")
    return os.path.join(os.path.expanduser("~/.config"), "termbridge")

def _default_config_path() -> str:
    """Resolve default config path, honoring TERMBRIDGE_CONFIG env override."""
    env = os.environ.get(ENV_CONFIG)
    if env:
        return os.path.expanduser(env)
    return os.path.join(_os_config_home(), "termbridge.json")

def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Return deep-merged copy of dicts: values in b override a."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out

def _atomic_write_json(path: str, data: Dict[str, Any]) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_cfg_", dir=os.path.dirname(path) or ".")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise

def _coerce_num(v: Any, default: float, minmax: Optional[Tuple[float, float]] = None) -> float:
    try:
        x = float(v)
    except (TypeError, ValueError):
        return float(default)
    if minmax:
        lo, hi = minmax
        if x < lo: x = lo
        if x > hi: x = hi
    return x

def _coerce_int(v: Any, default: int, minmax: Optional[Tuple[int, int]] = None) -> int:
    try:
        x = int(v)
    except (TypeError, ValueError):
        return int(default)
    if minmax:
        lo, hi = minmax
        if x < lo: x = lo
        if x > hi: x = hi
    return x

def _coerce_bool(v: Any, default: bool) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("1", "true", "yes", "on"): return True
        if s in ("0", "false", "no", "off"): return False
    return default

def _fresh_defaults() -> Dict[str, Any]:
    return json.loads(json.dumps(DEFAULT_CONFIG))

# ----------------------------
# Validation
# ----------------------------

def _validate(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Return validated copy with fallbacks applied."""
    c = _deep_merge(_fresh_defaults(), cfg or {})

    # terminal
    t = c["terminal"]
    t["zoom"] = _coerce_num(t.get("zoom"), DEFAULT_CONFIG["terminal"]["zoom"], (1.0, 1000.0))
    tc = t.get("true_color")
    if isinstance(tc, bool):
        tc = "on" if tc else "off"
    if tc not in ("auto", "on", "off"):
        tc = DEFAULT_CONFIG["terminal"]["true_color"]
    t["true_color"] = tc
    t["probe_timeout_ms"] = _coerce_int(t.get("probe_timeout_ms"), 100, (10, 2000))

    # graphics
    g = c["graphics"]
    if g.get("mode") not in ("auto", "sixel", "blocks"):
        g["mode"] = DEFAULT_CONFIG["graphics"]["mode"]
    g["scrolling"] = _coerce_bool(g.get("scrolling"), DEFAULT_CONFIG["graphics"]["scrolling"])
    geo = g.get("geometry")
    if not isinstance(geo, (list, tuple)) or len(geo) != 2:
        geo = DEFAULT_CONFIG["graphics"]["geometry"]
    g["geometry"] = [_coerce_int(v, 0, (0, 65535)) for v in geo]
    if g.get("dither") not in ("auto", "none", "floyd-steinberg", "bayer"):
        g["dither"] = DEFAULT_CONFIG["graphics"]["dither"]

    # render
    r = c["render"]
    r["fps"] = _coerce_num(r.get("fps"), DEFAULT_CONFIG["render"]["fps"], (1.0, 240.0))

    # logging
    lg = c["logging"]
    level = str(lg.get("level") or "").upper()
    lg["level"] = level if level in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET") else DEFAULT_CONFIG["logging"]["level"]
    lf = lg.get("file")
    lg["file"] = str(lf) if lf else None
    lg["rotate_bytes"] = _coerce_int(lg.get("rotate_bytes"), DEFAULT_CONFIG["logging"]["rotate_bytes"], (256 * 1024, 50 * 1024 * 1024))
    lg["rotate_keep"] = _coerce_int(lg.get("rotate_keep"), DEFAULT_CONFIG["logging"]["rotate_keep"], (0, 50))

    return c

# ----------------------------
# Public API
# ----------------------------

@dataclass
class Config:
    """Thin wrapper around a nested dict with load/save/merge."""
    data: Dict[str, Any] = field(default_factory=lambda: _validate({}))
    path: str = field(default_factory=_default_config_path)

    # --- Mapping-style access
    def __getitem__(self, k: str) -> Any:
        return self.data[k]

    def __setitem__(self, k: str, v: Any) -> None:
        self.data[k] = v

    def get(self, k: str, default: Any = None) -> Any:
        return self.data.get(k, default)

    # --- Ops
    @classmethod
    def load(cls, path: Optional[str] = None, create_if_missing: bool = False) -> "Config":
        cfg_path = os.path.expanduser(path) if path else _default_config_path()
        if not os.path.exists(cfg_path):
            cfg = _validate({})
            if create_if_missing:
                _atomic_write_json(cfg_path, cfg)
            return cls(cfg, cfg_path)

        try:
            with open(cfg_path, "r", encoding="utf-8") as f:
                user_cfg = json.load(f)
            if not isinstance(user_cfg, dict):
                raise ValueError("top-level JSON value is not an object")
        except (OSError, ValueError) as exc:
            # Corrupt file. Back it up and fall back to defaults.
            backup = cfg_path + ".corrupt.bak"
            log.warning("config %s is unreadable (%s), backing up to %s", cfg_path, exc, backup)
            try:
                shutil.copyfile(cfg_path, backup)
            except OSError as copy_exc:
                log.warning("config backup failed: %s", copy_exc)
            user_cfg = {}

        return cls(_validate(user_cfg), cfg_path)

    def save(self) -> None:
        """Persist to JSON atomically."""
        full = _validate(self.data)
        _atomic_write_json(self.path, full)
        self.data = full  # sync in-memory with normalized values

    def update(self, partial: Dict[str, Any]) -> None:
        """Deep-merge a partial config then validate."""
        merged = _deep_merge(self.data, partial)
        self.data = _validate(merged)

    def apply_env(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """Overlay environment-derived switches onto the loaded values."""
        env = os.environ if environ is None else environ
        partial: Dict[str, Any] = {"terminal": {}, "graphics": {}}

        if self.data["terminal"]["true_color"] == "auto" and "COLORTERM" in env:
            partial["terminal"]["true_color"] = "on" if env["COLORTERM"] in ("truecolor", "24bit") else "off"
        if ENV_ZOOM in env:
            partial["terminal"]["zoom"] = env[ENV_ZOOM]
        if ENV_SIXEL_SCROLL in env:
            partial["graphics"]["scrolling"] = env[ENV_SIXEL_SCROLL]
        if ENV_SIXEL_ONLY in env:
            sixel_only = _coerce_bool(env[ENV_SIXEL_ONLY], True)
            partial["graphics"]["mode"] = "sixel" if sixel_only else "blocks"

        self.update(partial)

    # Convenience getters
    @property
    def zoom(self) -> float:
        """Zoom as a factor (config stores percent)."""
        return self.data["terminal"]["zoom"] / 100.0

    @property
    def true_color(self) -> Optional[bool]:
        """None means undecided; the painter then reads COLORTERM itself."""
        value = self.data["terminal"]["true_color"]
        if value == "auto":
            return None
        return value == "on"

    @property
    def probe_timeout(self) -> float:
        return self.data["terminal"]["probe_timeout_ms"] / 1000.0

    @property
    def graphics_geometry(self) -> Size:
        w, h = self.data["graphics"]["geometry"]
        return Size(w, h)


__all__ = [
    "Config",
    "DEFAULT_CONFIG",
    "_default_config_path",
]
