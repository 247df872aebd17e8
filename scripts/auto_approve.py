"""Approve tasks left in review longer than AUTO_APPROVE_MINUTES. Meant for cron."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.settlement_engine.settlement_engine.common.logging_utils import configure_logging
from src.settlement_engine.settlement_engine.container import build_container


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logger = configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    container = build_container(db_config=dict(settings.DB_CONFIG), settings=settings)
    approved = container.task_service.auto_approve_stale()
    for task in approved:
        logger.info("auto-approved %s reward=%s payment=%s", task.task_id, task.reward_amount, task.payment_status.value)
    logger.info("done: %d task(s) approved", len(approved))


if __name__ == "__main__":
    main()
