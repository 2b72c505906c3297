"""
AWS Lambda entrypoint for scheduled feed updates

Triggered by EventBridge Scheduler (the cron replacement). Each invocation
runs one generation pass over pending, stuck and failed repositories.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from github_rss.config.settings import Settings, settings
from github_rss.dependencies import build_container, configure_logging
from github_rss.jobs.update_feeds import run_update_pass

logger = logging.getLogger(__name__)


async def run_scheduled_update(app_settings: Settings) -> Dict[str, Any]:
    """Build the service graph, run one pass and release its resources."""
    container = build_container(app_settings)
    try:
        return await run_update_pass(store=container.store, orchestrator=container.orchestrator)
    finally:
        await container.aclose()


def lambda_handler(event: Optional[Dict[str, Any]], context: Any) -> Dict[str, Any]:
    """
    Expected event payloads:
    - {"source": "update_feeds"} (default)

    Returns:
        Dictionary with statusCode, source, and result
    """
    configure_logging(settings)
    source = (event or {}).get("source", "update_feeds")
    logger.info(f"Lambda invoked with source: {source}")

    if source != "update_feeds":
        logger.error(f"Unknown source: {source}")
        return {"statusCode": 400, "source": source, "error": f"Unknown source: {source}"}

    try:
        result = asyncio.run(run_scheduled_update(settings))
        logger.info(f"Scheduled update completed: {result}")
        return {"statusCode": 200, "source": source, "result": result}
    except Exception as e:
        logger.error(f"Lambda execution failed: {e}", exc_info=True)
        return {"statusCode": 500, "source": source, "error": str(e)}


# Allow local runs via `python -m github_rss.handler`
if __name__ == "__main__":
    print(lambda_handler({"source": "update_feeds"}, None))
