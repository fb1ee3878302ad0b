#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json

from postdigest.db.session import close_engine
from postdigest.logging_config import configure_logging, parse_redact_fields
from postdigest.services.feed.session import ensure_cookie_file
from postdigest.services.runtime import build_scheduler_service
from postdigest.settings import ConfigurationError, settings, validate_required_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one ingestion pass over the configured identities.")
    parser.add_argument(
        "--identity",
        action="append",
        default=None,
        help="Only ingest this identity (repeatable). Defaults to TARGET_IDENTITIES.",
    )
    return parser


async def _run(identities: list[str] | None) -> dict:
    scheduler = build_scheduler_service(identities=identities)
    try:
        summary = await scheduler.run_once()
    finally:
        await close_engine()
    if summary is None:
        return {"status": "skipped"}
    return {
        "status": "failed" if summary.failed_count else "ok",
        "run_id": summary.run_id,
        "saved_count": summary.saved_count,
        "identities": [
            {
                "identity": result.identity,
                "scraped_count": result.scraped_count,
                "new_count": result.new_count,
                "saved_count": result.saved_count,
                "skipped_count": result.skipped_count,
                "error": result.error,
            }
            for result in summary.identities
        ],
    }


def main() -> int:
    args = build_parser().parse_args()
    configure_logging(
        level=settings.log_level,
        log_format=settings.log_format,
        redact_fields=parse_redact_fields(settings.log_redact_fields),
    )
    try:
        validate_required_settings(settings)
    except ConfigurationError as exc:
        print(json.dumps({"status": "failed", "error": str(exc)}, indent=2))
        return 1

    ensure_cookie_file(settings.cookies_file_path, settings.twitter_cookies)
    report = asyncio.run(_run(args.identity))
    print(json.dumps(report, indent=2))
    return 1 if report.get("status") == "failed" else 0


if __name__ == "__main__":
    raise SystemExit(main())
