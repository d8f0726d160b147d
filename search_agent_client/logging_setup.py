import logging, os, sys


def setup_logging(level_name: str | None = None) -> int:
    level = getattr(logging, (level_name or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(logging.Formatter('%(asctime)s | %(levelname)s | %(name)s | %(message)s'))
    root.addHandler(sh)

    # Tidy / tune levels regardless of backend
    logging.captureWarnings(True)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.client").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    for name in (
        "search_agent_client",                    # whole package
        "search_agent_client.dispatcher",         # request routing decisions
        "search_agent_client.streaming",          # framing / classification
    ):
        logging.getLogger(name).setLevel(level)
    return level
