#!/usr/bin/env python3
"""CLI tool to run ingestion and manage subscriptions."""

import sys
import json
import asyncio
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from newsfeed.config.feeds import load_registry
from newsfeed.pipeline.handler import handle_fetch_request
from newsfeed.storage.factory import get_article_storage


def print_header(title):
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def cmd_fetch(args):
    """Fetch new articles for a user."""
    payload = {"userId": args.user_id}
    if args.time_filter:
        payload["timeFilter"] = args.time_filter

    status, body = asyncio.run(handle_fetch_request(payload))

    if args.json:
        print(json.dumps(body, indent=2, default=str))
        return 0 if status == 200 else 1

    if status != 200:
        print(f"\nError: {body['error']}")
        return 1

    print_header(f"ARTICLES ADDED: {body['articlesAdded']}")
    if body["articlesAdded"] == 0:
        print(f"\n  {body['message']}")
    for article in body.get("articles", []):
        print(f"\n  [{article['topic']}] {article['title']}")
        print(f"    {article['source']} - {article['author']}")
        print(f"    {article['url']}")
    return 0


def cmd_subscribe(args):
    """Subscribe a user to a source."""
    registry = load_registry()
    if args.source not in registry:
        print(f"Unknown source: {args.source}. Run 'sources' to list them.")
        return 1

    storage = get_article_storage()
    storage.add_subscription(args.user_id, args.source, active=True)
    print(f"Subscribed {args.user_id} to {args.source}")
    return 0


def cmd_unsubscribe(args):
    """Deactivate a user's subscription."""
    storage = get_article_storage()
    if not storage.set_subscription_active(args.user_id, args.source, active=False):
        print(f"{args.user_id} is not subscribed to {args.source}")
        return 1
    print(f"Unsubscribed {args.user_id} from {args.source}")
    return 0


def cmd_sources(args):
    """List configured feed sources."""
    registry = load_registry()

    print_header(f"FEED SOURCES ({len(registry)})")
    for name in registry.names():
        print(f"\n  {name}")
        print(f"    {registry.feed_url(name)}")
    return 0


def cmd_stats(args):
    """Show storage statistics."""
    stats = get_article_storage().get_stats()

    print_header("STORAGE STATISTICS")
    print(f"\nArticles:       {stats['total_articles']}")
    print(f"Subscriptions:  {stats['total_subscriptions']} ({stats['active_subscriptions']} active)")

    if stats.get('articles_by_topic'):
        print("\nArticles by Topic:")
        for topic, count in stats['articles_by_topic'].items():
            print(f"  {topic:15} {count}")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Ingest news feeds for subscribed users"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # fetch
    p = subparsers.add_parser("fetch", help="Fetch new articles for a user")
    p.add_argument("--user-id", "-u", required=True, help="User identifier")
    p.add_argument("--time-filter", "-t", help="2h, 24h (default) or 7d")
    p.add_argument("--json", action="store_true", help="Print the raw response body")

    # subscribe
    p = subparsers.add_parser("subscribe", help="Subscribe a user to a source")
    p.add_argument("--user-id", "-u", required=True, help="User identifier")
    p.add_argument("--source", "-s", required=True, help="Source name")

    # unsubscribe
    p = subparsers.add_parser("unsubscribe", help="Deactivate a subscription")
    p.add_argument("--user-id", "-u", required=True, help="User identifier")
    p.add_argument("--source", "-s", required=True, help="Source name")

    # sources
    subparsers.add_parser("sources", help="List configured feed sources")

    # stats
    subparsers.add_parser("stats", help="Show storage statistics")

    args = parser.parse_args()

    commands = {
        "fetch": cmd_fetch,
        "subscribe": cmd_subscribe,
        "unsubscribe": cmd_unsubscribe,
        "sources": cmd_sources,
        "stats": cmd_stats,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return 1
    return command(args)


if __name__ == "__main__":
    sys.exit(main())
