from __future__ import annotations

import argparse
import logging
from datetime import date
from typing import List, Optional

from services import channels, directory, memory, notifier, report, turns
from services.bot import run_bot
from services.normalizer import mention, replace_mentions
from standup_order.config import load_config
from standup_order.logging import configure_logging

logger = logging.getLogger(__name__)


def _kickoff(channel_handle: str) -> int:
    memory.init_db()
    channel = channels.get_or_create_channel(channel_handle, sender=notifier.chat_sender(channel_handle))
    record = turns.advance(channel.id, date.today())
    if record is None:
        logger.info("Nothing to kick off in channel %s", channel_handle)
        return 0
    participant = directory.get_participant(record.user_id)
    prompt = turns.turn_prompt(mention(participant.handle))
    channel.post_message(replace_mentions(prompt, directory.display_name_for_handle))
    return 0


def _report(channel_handle: str) -> int:
    memory.init_db()
    channel = channels.get_or_create_channel(channel_handle)
    result = report.today_report(channel.id)
    if result is None:
        return 0
    if not result.get("success"):
        logger.error("Report not sent: %s", result.get("message"))
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="standup-order")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("bot", help="run the Telegram bot (default)")
    kickoff_cmd = sub.add_parser("kickoff", help="call the next person in a channel")
    kickoff_cmd.add_argument("channel", help="channel handle (Telegram chat id)")
    report_cmd = sub.add_parser("report", help="email today's orders for a channel")
    report_cmd.add_argument("channel", help="channel handle (Telegram chat id)")
    args = parser.parse_args(argv)

    config = load_config()
    configure_logging(config)

    if args.command == "kickoff":
        return _kickoff(args.channel)
    if args.command == "report":
        return _report(args.channel)

    run_bot()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
