#!/usr/bin/env python3
"""Provision a desktop, exercise input and screenshots, and print a stream URL.

Set DESKBOX_PROVIDER (e2b, daytona, docker) and the matching credentials first.
The sandbox is destroyed on exit unless KEEP_SANDBOX=1.
"""

from __future__ import annotations

import asyncio
import logging
import os

from deskbox.config import get_settings
from deskbox.desktop.controller import Desktop

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger("verify_desktop")


async def main() -> None:
    settings = get_settings()
    logger.info("provisioning %s desktop from %s", settings.provider, settings.template)
    desktop = await Desktop.create(settings.provider, settings=settings)

    try:
        size = await desktop.get_screen_size()
        logger.info("screen size: %dx%d", size.width, size.height)

        await desktop.move_mouse(size.width // 2, size.height // 2)
        position = await desktop.get_cursor_position()
        logger.info("cursor at: %d,%d", position.x, position.y)

        image = await desktop.screenshot()
        with open("screenshot.png", "wb") as f:
            f.write(image)
        logger.info("wrote screenshot.png (%d bytes)", len(image))

        await desktop.stream.start(require_auth=True)
        auth_key = desktop.stream.get_auth_key()
        logger.info("stream url: %s", desktop.stream.get_url(auth_key=auth_key))

        if os.getenv("KEEP_SANDBOX") == "1":
            logger.info("keeping sandbox %s", desktop.id())
            return
        await desktop.stream.stop()
    except Exception:
        logger.exception("verification failed")
        raise
    finally:
        if os.getenv("KEEP_SANDBOX") != "1":
            await desktop.destroy()


if __name__ == "__main__":
    asyncio.run(main())
