from unittest.mock import MagicMock, patch

import requests

from services import notifier


@patch("services.notifier.requests.post")
def test_send_chat_message(mock_post):
    mock_post.return_value = MagicMock(status_code=200)

    assert notifier.send_chat_message("-100", "hello", token="abc") is True

    url = mock_post.call_args[0][0]
    assert url == "https://api.telegram.org/botabc/sendMessage"
    assert mock_post.call_args[1]["json"] == {"chat_id": "-100", "text": "hello"}


@patch("services.notifier.requests.post")
def test_send_chat_message_http_error(mock_post):
    mock_post.return_value = MagicMock(status_code=403)
    assert notifier.send_chat_message("-100", "hello", token="abc") is False


@patch("services.notifier.requests.post", side_effect=requests.ConnectionError("down"))
def test_send_chat_message_network_error(mock_post):
    assert notifier.send_chat_message("-100", "hello", token="abc") is False


def test_send_chat_message_without_token(monkeypatch):
    monkeypatch.setattr(notifier, "load_config", lambda: {"telegram": {}})
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    with patch("services.notifier.requests.post") as mock_post:
        assert notifier.send_chat_message("-100", "hello") is False
        mock_post.assert_not_called()


@patch("services.notifier.requests.post")
def test_chat_sender_binds_chat(mock_post):
    mock_post.return_value = MagicMock(status_code=200)
    send = notifier.chat_sender(-100)
    assert send("hi", token="abc") is True
    assert mock_post.call_args[1]["json"]["chat_id"] == "-100"
