"""
HTTP front end.

Thin dispatch only: validate the trigger, check configuration, start the job
on a daemon thread with its own event loop, answer 202 straight away. The
job's outcome is visible only in the logs and at the webhook.
"""

from __future__ import annotations

import asyncio
import logging
import threading

from flask import Flask, Response, jsonify, request
from pydantic import ValidationError

from noticeboard import config
from noticeboard.errors import ConfigurationError
from noticeboard.jobs import scrape_notices
from noticeboard.models import ScrapeRequest

logger = logging.getLogger(__name__)

app = Flask(__name__)


def _run_job(scrape_request: ScrapeRequest) -> None:
    try:
        asyncio.run(scrape_notices(scrape_request))
    except Exception:
        logger.error(
            "Background scraping job failed for %s", scrape_request.identifier, exc_info=True
        )


def start_job(scrape_request: ScrapeRequest) -> threading.Thread:
    """Run one job detached from the request that triggered it."""
    thread = threading.Thread(
        target=_run_job,
        args=(scrape_request,),
        name=f"scrape-{scrape_request.identifier}",
        daemon=True,
    )
    thread.start()
    return thread


@app.get("/")
def index() -> Response:
    return Response("Scraper Service is running!", mimetype="text/plain")


@app.post("/scrape-notices")
def trigger_scrape():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"message": "Invalid request body"}), 400

    try:
        scrape_request = ScrapeRequest.model_validate(payload)
    except ValidationError as exc:
        details = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return jsonify({"message": "Invalid request body", "details": details}), 400

    try:
        config.validate_settings(config.settings)
    except ConfigurationError:
        logger.error("Server is missing critical configuration.", exc_info=True)
        return jsonify({"message": "Server configuration error"}), 500

    start_job(scrape_request)
    logger.info("Scraping job accepted for %s", scrape_request.identifier)
    return jsonify({"message": "Scraping job started successfully."}), 202
