"""Command-line entry point: ``python -m viewcounter`` or ``viewcounter``.

Usage:
  viewcounter -i -p 3030 --max-views 10400 --data-dir ./data
"""
from __future__ import annotations

import argparse
import logging
import sys

from viewcounter.constants import HOST_ALL_INTERFACES
from viewcounter.config import ConfigManager
from viewcounter.exceptions import ViewCounterError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="viewcounter", description="Profile view counter server")
    p.add_argument("-i", "--host-on-all-interfaces", action="store_true",
                   help="bind 0.0.0.0 instead of 127.0.0.1")
    p.add_argument("-p", "--port", type=int, default=None, help="what port to host on")
    p.add_argument("--max-views", type=int, default=None, help="count at which the milestone color tops out")
    p.add_argument("--data-dir", default=None, help="directory for persisted counts")
    p.add_argument("--template", default=None, help="SVG template path")
    p.add_argument("--palette", default=None, help="palette (colors) file path")
    p.add_argument("--config", default=None, help="JSON config file")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    return p


def config_from_args(args: argparse.Namespace) -> ConfigManager:
    config = ConfigManager(config_file=args.config)
    config.override(
        server__host=HOST_ALL_INTERFACES if args.host_on_all_interfaces else None,
        server__port=args.port,
        server__log_level=args.log_level.upper() if args.log_level else None,
        store__data_dir=args.data_dir,
        badge__max_views=args.max_views,
        badge__template_path=args.template,
        badge__palette_path=args.palette,
    )
    config.require_valid()
    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = config_from_args(args)
    except ViewCounterError as e:
        print(f"viewcounter: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, config.server.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    import uvicorn
    from viewcounter.api.main import create_app

    logger.info(f"Starting viewcounter on {config.server.host}:{config.server.port}")
    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
        lifespan="on",
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
