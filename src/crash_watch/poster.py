from __future__ import annotations

from typing import Protocol, Sequence

import tweepy

from crash_watch.config import LocationConfig, TwitterCredentials
from crash_watch.log import get_logger
from crash_watch.models import ThreadMessage

logger = get_logger(__name__)


class Poster(Protocol):
    def post_thread(self, messages: Sequence[ThreadMessage]) -> list[str]: ...


class TwitterPoster:
    """Posts a thread as a chain of replies.

    Media goes through the v1.1 upload endpoint (the only one that takes alt
    text); tweets themselves go through v2.
    """

    def __init__(self, credentials: TwitterCredentials, *, client: tweepy.Client | None = None, api: tweepy.API | None = None):
        self.client = client or tweepy.Client(
            consumer_key=credentials.consumer_key,
            consumer_secret=credentials.consumer_secret,
            access_token=credentials.access_token,
            access_token_secret=credentials.access_token_secret,
        )
        if api is None:
            auth = tweepy.OAuth1UserHandler(
                credentials.consumer_key,
                credentials.consumer_secret,
                credentials.access_token,
                credentials.access_token_secret,
            )
            api = tweepy.API(auth)
        self.api = api

    def _upload(self, message: ThreadMessage) -> list[str]:
        media_ids: list[str] = []
        for attachment in message.media:
            uploaded = self.api.media_upload(filename=str(attachment.path))
            if attachment.alt_text:
                self.api.create_media_metadata(uploaded.media_id, attachment.alt_text)
            media_ids.append(str(uploaded.media_id))
        return media_ids

    def post_thread(self, messages: Sequence[ThreadMessage]) -> list[str]:
        tweet_ids: list[str] = []
        reply_to: str | None = None
        for message in messages:
            media_ids = self._upload(message)
            response = self.client.create_tweet(
                text=message.text,
                media_ids=media_ids or None,
                in_reply_to_tweet_id=reply_to,
            )
            reply_to = str(response.data["id"])
            tweet_ids.append(reply_to)
        logger.info("Posted thread of %d tweets (first %s)", len(tweet_ids), tweet_ids[0] if tweet_ids else "-")
        return tweet_ids


class DryRunPoster:
    """Logs threads instead of posting them."""

    def __init__(self) -> None:
        self.threads: list[list[ThreadMessage]] = []

    def post_thread(self, messages: Sequence[ThreadMessage]) -> list[str]:
        self.threads.append(list(messages))
        for i, message in enumerate(messages, start=1):
            media = ", ".join(str(m.path) for m in message.media)
            logger.info("[dry run] %d/%d %s%s", i, len(messages), message.text, f" [media: {media}]" if media else "")
        return []


def build_poster(location: LocationConfig, dry_run: bool) -> Poster:
    if dry_run:
        return DryRunPoster()
    return TwitterPoster(location.twitter.resolved())
