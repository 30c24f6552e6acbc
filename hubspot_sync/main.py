"""
HubSpot incremental pull worker.
Loads the domain, pulls companies / contacts / meetings for every account
into the event sink, then exits the process.
"""

import asyncio
import logging
import sys

from hubspot_sync.core.config import get_settings
from hubspot_sync.core.exceptions import PersistenceError
from hubspot_sync.core.log_config import configure_logging
from hubspot_sync.services.domain_store import get_domain_store
from hubspot_sync.services.orchestrator import pull_data_from_hubspot

logger = logging.getLogger("hubspot_sync.main")


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        settings.validate_for_production()
    except ValueError as e:
        logger.error("%s", e)
        sys.exit(1)

    try:
        results = asyncio.run(pull_data_from_hubspot(get_domain_store()))
    except PersistenceError as e:
        logger.error("Domain store unavailable: %s", e.message)
        sys.exit(1)

    failed = [r.hub_id for r in results if r.status != "success"]
    if failed:
        logger.warning("Accounts with failures: %s", ", ".join(failed))
    logger.info("Finished pulling %d account(s)", len(results))
    sys.exit(0)


if __name__ == "__main__":
    main()
