"""
Command-line entry point.

    python -m zap2xmltv -c zap2itconfig.ini -o xmlguide.xmltv
    python -m zap2xmltv -c zap2itconfig.ini --findid
    python -m zap2xmltv -c zap2itconfig.ini --daemon
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

import httpx

from zap2xmltv.config import GuideSettings, load_settings, setup_logging
from zap2xmltv.errors import GuideError
from zap2xmltv.services import build_guide, format_provider_table, guide_scheduler, lookup_providers


logger = logging.getLogger("zap2xmltv")

DEFAULT_CONFIG_FILE = "./zap2itconfig.ini"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="zap2xmltv",
        description="Fetch Zap2it grid listings and write an XMLTV guide.",
    )
    parser.add_argument("-c", "--configfile", default=DEFAULT_CONFIG_FILE,
                        help="Path to INI config file (default: %(default)s)")
    parser.add_argument("-o", "--outputfile", default=None,
                        help="Path to output file (default: xmlguide.xmltv)")
    parser.add_argument("-f", "--findid", action="store_true",
                        help="List headendId / lineupId / device for the configured zip code")
    parser.add_argument("--daemon", action="store_true",
                        help="Build now, then keep rebuilding on the configured cron schedule")
    return parser.parse_args(argv)


def resolve_config_path(configfile: str) -> Path | None:
    """The default config path is optional; an explicit one must exist."""
    path = Path(configfile)
    if configfile == DEFAULT_CONFIG_FILE and not path.is_file():
        logger.info("No %s found; using environment settings only", configfile)
        return None
    return path


async def find_ids(settings: GuideSettings) -> int:
    async with httpx.AsyncClient(timeout=settings.request_timeout_sec) as client:
        providers = await lookup_providers(
            client, settings.country, settings.zip_code, settings.language
        )
    print(format_provider_table(providers))
    return 0


async def build_once(settings: GuideSettings) -> int:
    result = await build_guide(settings)
    if result.get("status") != "success":
        logger.error("Failed to build guide: %s", result.get("error") or result.get("message"))
        return 1
    logger.info(
        "Wrote %s (%s channels, %s programmes)",
        result["output_file"],
        result["channels"],
        result["programmes"],
    )
    return 0


async def run_daemon(settings: GuideSettings) -> int:
    await build_once(settings)
    guide_scheduler.start(settings)
    try:
        await asyncio.Event().wait()
    finally:
        guide_scheduler.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging()

    try:
        settings = load_settings(
            resolve_config_path(args.configfile),
            output_file=args.outputfile,
        )
    except GuideError as exc:
        logger.error("Failed to initialize guide: %s", exc)
        return 1
    logging.getLogger().setLevel(settings.log_level)

    try:
        if args.findid:
            return asyncio.run(find_ids(settings))
        if args.daemon:
            return asyncio.run(run_daemon(settings))
        return asyncio.run(build_once(settings))
    except GuideError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
