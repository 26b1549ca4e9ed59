"""
Command-line interface for the alert engine.

Evaluates metrics snapshots against a site's rules and optionally fans
the resulting alerts out to notification channels.

Usage:
    alert-engine rules                                   # List the default rule catalog
    alert-engine evaluate snapshot.json --org o --site s # Evaluate one snapshot
    alert-engine evaluate snapshot.json --org o --site s --channels channels.json
"""

import asyncio
import json
import sys
from typing import Any

import click

from src.config.settings import Settings, get_settings
from src.observability.logging import setup_logging


def _load_json(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


async def _build_backends(settings: Settings):
    """Create the state store and event publisher selected by settings.

    Returns:
        (store, publisher, redis_client); redis_client is None unless a
        backend needs Redis.
    """
    from src.events.publisher import (
        InMemoryEventPublisher,
        LoggingEventPublisher,
        RedisEventPublisher,
    )
    from src.storage.state_store import InMemoryStateStore, RedisStateStore

    redis_client = None
    if settings.uses_redis:
        import redis.asyncio as redis

        redis_client = redis.from_url(
            str(settings.redis_url), encoding="utf-8", decode_responses=True,
        )

    if settings.state_backend == "redis":
        store = RedisStateStore(redis_client=redis_client)
    else:
        store = InMemoryStateStore()

    if settings.event_backend == "redis":
        publisher = RedisEventPublisher(redis_client)
    elif settings.event_backend == "memory":
        publisher = InMemoryEventPublisher()
    else:
        publisher = LoggingEventPublisher()

    return store, publisher, redis_client


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Alert Engine - rule evaluation and notification dispatch."""
    setup_logging("DEBUG" if debug else None)


@main.command()
def rules() -> None:
    """Print the default rule catalog as JSON."""
    from src.alerts.rules import default_rules

    click.echo(json.dumps([r.to_dict() for r in default_rules()], indent=2))


@main.command()
@click.argument("snapshot_json", type=click.Path(exists=True, dir_okay=False))
@click.option("--org", "org_id", required=True, help="Organization id")
@click.option("--site", "site_id", required=True, help="Site id")
@click.option(
    "--channels",
    "channels_json",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON list of channel configs to notify for each created alert",
)
@click.option("--metrics/--no-metrics", default=False, help="Enable metrics server")
def evaluate(
    snapshot_json: str,
    org_id: str,
    site_id: str,
    channels_json: str | None,
    metrics: bool,
) -> None:
    """Evaluate SNAPSHOT_JSON against the site's rules and print created alerts."""
    from src.alerts.schemas import MetricsSnapshot
    from src.alerts.service import AlertService
    from src.notifications.config import NotificationConfig
    from src.notifications.schemas import NotificationChannelConfig
    from src.notifications.senders import build_senders
    from src.notifications.service import NotificationService
    from src.observability.metrics import get_metrics

    try:
        snapshot = MetricsSnapshot.from_dict(_load_json(snapshot_json))
        channels = (
            [NotificationChannelConfig.from_dict(c) for c in _load_json(channels_json)]
            if channels_json else []
        )
    except (ValueError, KeyError, TypeError) as e:
        click.echo(click.style(f"Invalid input: {e}", fg="red"), err=True)
        sys.exit(2)

    settings = get_settings()
    if metrics:
        get_metrics().start_server(settings.metrics_port)

    async def run() -> dict[str, Any]:
        store, publisher, redis_client = await _build_backends(settings)
        try:
            alerts = AlertService(store, publisher)
            await alerts.initialize(org_id, site_id)
            created = await alerts.evaluate_rules(org_id, site_id, snapshot)

            notifications = []
            if channels and created:
                config = NotificationConfig()
                notifier = NotificationService(
                    store, publisher, build_senders(config), config=config,
                )
                await notifier.initialize(org_id)
                for alert in created:
                    records = await notifier.send_for_alert(org_id, alert, channels)
                    notifications.extend(records)

            return {
                "alerts": [a.to_dict() for a in created],
                "notifications": [n.to_dict() for n in notifications],
            }
        finally:
            if redis_client is not None:
                await redis_client.close()

    result = asyncio.run(run())
    click.echo(json.dumps(result, indent=2))

    if result["alerts"]:
        click.echo(
            click.style(f"{len(result['alerts'])} alert(s) created", fg="yellow"),
            err=True,
        )
    else:
        click.echo(click.style("No alerts triggered", fg="green"), err=True)


if __name__ == "__main__":
    main()
