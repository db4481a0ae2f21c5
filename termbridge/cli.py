#!/usr/bin/env python3
# termbridge/cli.py
"""
Entry point for termbridge.

    termbridge probe                 print the probed window and Sixel answer
    termbridge show IMAGE [options]  paint an image through the pipeline

show: probe the window, decide between Sixel and quadrant blocks, queue the
bitmap frame if any, then paint the cell grid plus a caption row in one frame.
With --watch it keeps repainting at the configured fps whenever the terminal
is resized, until interrupted.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import List, Optional

from PIL import Image

from termbridge.config import Config
from termbridge.logging_conf import setup_logging
from termbridge.rendering.cell import Point, Size
from termbridge.rendering.color import BLACK, WHITE
from termbridge.rendering.painter import Painter
from termbridge.rendering.renderer import QuadrantRenderer, text_cells
from termbridge.rendering.sixel import DitherMethod
from termbridge.terminal.graphics import GraphicsSupported
from termbridge.terminal.query import TtyQuery
from termbridge.terminal.window import Window, WindowProber
from termbridge.version import version_info

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="termbridge", description="Render pixels to a text terminal.")
    parser.add_argument("--version", action="version", version=version_info())
    parser.add_argument("--config", help="config file (default: $TERMBRIDGE_CONFIG or the per-user path)")
    parser.add_argument("--log-level", help="override logging.level")

    sub = parser.add_subparsers(dest="command", required=True)

    probe = sub.add_parser("probe", help="print terminal geometry and graphics support")
    probe.set_defaults(func=cmd_probe)

    show = sub.add_parser("show", help="paint an image")
    show.add_argument("image")
    show.add_argument("--mode", choices=("auto", "sixel", "blocks"))
    show.add_argument("--dither", choices=[m.value for m in DitherMethod])
    show.add_argument("--zoom", type=float, help="zoom in percent")
    show.add_argument("--watch", action="store_true", help="repaint on resize until interrupted")
    show.set_defaults(func=cmd_show)

    return parser


def _overrides(args: argparse.Namespace) -> dict:
    partial: dict = {"terminal": {}, "graphics": {}, "logging": {}}
    if getattr(args, "zoom", None) is not None:
        partial["terminal"]["zoom"] = args.zoom
    if getattr(args, "mode", None):
        partial["graphics"]["mode"] = args.mode
    if getattr(args, "dither", None):
        partial["graphics"]["dither"] = args.dither
    if args.log_level:
        partial["logging"]["level"] = args.log_level
    return partial


def _prober(cfg: Config) -> WindowProber:
    return WindowProber(TtyQuery(timeout=cfg.probe_timeout), zoom=cfg.zoom)


# ------------- probe -------------

def cmd_probe(cfg: Config, args: argparse.Namespace) -> int:
    prober = _prober(cfg)
    window = prober.read()
    support = prober.query.get_graphics_support()

    print(f"cells:       {window.cells}")
    print(f"cell pixels: {window.cell_pixels}")
    print(f"dpi:         {window.dpi}")
    print(f"scale:       {window.scale}")
    print(f"browser:     {window.browser}")
    print(f"graphics:    {window.graphics_px}")
    if support is None:
        print("sixel:       not reported")
    else:
        print(f"sixel:       supported, max {support.width}x{support.height} (0 = unbounded)")
    return 0


# ------------- show -------------

def _sixel_geometry(cfg: Config, query: TtyQuery) -> Optional[Size]:
    """Geometry bound to enable Sixel with, or None to stay on blocks."""
    mode = cfg["graphics"]["mode"]
    if mode == "blocks":
        return None

    configured = cfg.graphics_geometry
    if mode == "sixel":
        return configured

    support: Optional[GraphicsSupported] = query.get_graphics_support()
    if support is None:
        log.info("terminal did not confirm sixel support, using quadrant blocks")
        return None
    if not configured.is_empty():
        return configured
    return Size(support.width, support.height)


def paint_image(painter: Painter, img: Image.Image, window: Window, caption: str) -> None:
    """Queue the bitmap frame (when Sixel is on) and paint one full frame.

    Image cells are left to the bitmap only when a frame was actually queued;
    otherwise they are painted as quadrant blocks.
    """
    covered = False
    if painter.sixel_enabled and not window.graphics_px.is_empty():
        target = window.graphics_px
        rgba = img.convert("RGBA").resize((int(target.width), int(target.height)), Image.BICUBIC)
        covered = painter.queue_sixel_background(rgba.tobytes(), target)
        if not covered:
            log.warning("no sixel frame for %s, painting quadrant blocks instead", target)

    cells = QuadrantRenderer().render(
        img, int(window.cells.width), int(window.cells.height), image=covered
    )
    caption_row = int(window.cells.height)
    cells += text_cells(caption[: int(window.cells.width)], caption_row, WHITE, BLACK)

    painter.begin()
    for cell in cells:
        painter.paint(cell)
    painter.end(Point(x=0, y=caption_row))


def cmd_show(cfg: Config, args: argparse.Namespace) -> int:
    try:
        img = Image.open(args.image)
        img.load()
    except OSError as exc:
        print(f"termbridge: cannot open {args.image}: {exc}", file=sys.stderr)
        return 1

    prober = _prober(cfg)
    window = prober.read()

    painter = Painter(true_color=cfg.true_color)
    painter.dither = DitherMethod(cfg["graphics"]["dither"])
    geometry = _sixel_geometry(cfg, prober.query)
    if geometry is not None:
        painter.enable_sixel(geometry, scrolling=cfg["graphics"]["scrolling"])

    caption = f"{os.path.basename(args.image)} {img.width}x{img.height}"
    paint_image(painter, img, window, caption)

    if args.watch:
        interval = 1.0 / cfg["render"]["fps"]
        try:
            while True:
                time.sleep(interval)
                cells, graphics_px = window.cells, window.graphics_px
                prober.update(window)
                if window.cells != cells or window.graphics_px != graphics_px:
                    log.debug("resized to %s", window.cells)
                    paint_image(painter, img, window, caption)
        except KeyboardInterrupt:
            pass

    print()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    cfg = Config.load(args.config)
    cfg.apply_env()
    cfg.update(_overrides(args))
    setup_logging(cfg)

    return args.func(cfg, args)


if __name__ == "__main__":
    raise SystemExit(main())
