import logging
import os
from functools import partial
from typing import Callable, Optional

import requests
from standup_order.config import load_config

logger = logging.getLogger(__name__)

API_URL = "https://api.telegram.org/bot{token}/sendMessage"


def _bot_token() -> str:
    config = load_config()
    telegram_cfg = config.get("telegram", {}) if isinstance(config, dict) else {}
    token = str(telegram_cfg.get("token") or "").strip()
    if not token:
        env_var = str(telegram_cfg.get("bot_token_env_var") or "TELEGRAM_BOT_TOKEN").strip()
        token = os.getenv(env_var, "").strip()
    return token


def send_chat_message(chat_id: str, text: str, *, token: Optional[str] = None) -> bool:
    """
    Post a message to a chat through the Telegram Bot API (synchronous).
    Used outside the bot's event loop, e.g. by the kickoff CLI.
    """
    token = token or _bot_token()
    if not token:
        logger.warning("Notifier disabled: no bot token configured.")
        return False

    payload = {"chat_id": chat_id, "text": text}
    try:
        resp = requests.post(API_URL.format(token=token), json=payload, timeout=5)
    except requests.RequestException as e:
        logger.warning("Notifier exception: %s", e)
        return False

    if resp.status_code != 200:
        logger.warning("Notifier send failed: chat=%s status=%s", chat_id, resp.status_code)
        return False
    return True


def chat_sender(chat_id: str) -> Callable[[str], bool]:
    return partial(send_chat_message, str(chat_id))
