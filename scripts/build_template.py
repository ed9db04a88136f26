#!/usr/bin/env python3
"""Build the desktop template for one or more sandbox providers.

Usage:
  python scripts/build_template.py e2b daytona
  python scripts/build_template.py docker --name deskbox-desktop --dir template

Credentials come from DESKBOX_E2B_API_KEY / DESKBOX_DAYTONA_API_KEY (or the
providers' own E2B_API_KEY / DAYTONA_API_KEY).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os

from deskbox.config import get_settings
from deskbox.sandbox.factory import available_providers, build_template
from deskbox.shared.models import TemplateResources

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

_TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "template")

# Sizing used by the published templates
_RESOURCES = {
    "e2b": TemplateResources(cpu_count=2, memory_mb=1024),
    "daytona": TemplateResources(cpu_count=2, memory_mb=2048, disk_gb=2),
    "docker": TemplateResources(),
}


async def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("providers", nargs="+", choices=available_providers())
    parser.add_argument("--dir", default=_TEMPLATE_DIR, help="directory containing the Dockerfile")
    parser.add_argument("--name", default=settings.template, help="template / snapshot / image name")
    args = parser.parse_args()

    for provider in args.providers:
        logger.info("building %s for %s", args.name, provider)
        await build_template(provider, args.dir, args.name, _RESOURCES.get(provider), settings=settings)


if __name__ == "__main__":
    asyncio.run(main())
