import json
import unittest
from unittest.mock import MagicMock, patch

from redis import exceptions as redis_exceptions

from vango.realtime import InMemoryChangeFeed, RedisChangeFeed


class InMemoryChangeFeedTests(unittest.TestCase):
    def test_fan_out_and_unsubscribe(self):
        feed = InMemoryChangeFeed()
        first, second = [], []
        sub = feed.subscribe("c", first.append)
        feed.subscribe("c", second.append)
        feed.subscribe("other", lambda payload: self.fail("wrong channel"))

        feed.publish("c", {"n": 1})
        sub.unsubscribe()
        sub.unsubscribe()
        feed.publish("c", {"n": 2})

        self.assertEqual(first, [{"n": 1}])
        self.assertEqual(second, [{"n": 1}, {"n": 2}])
        self.assertFalse(sub.active)

    def test_failing_subscriber_does_not_block_others(self):
        feed = InMemoryChangeFeed()
        received = []

        def _broken(payload):
            raise RuntimeError("boom")

        feed.subscribe("c", _broken)
        feed.subscribe("c", received.append)
        feed.publish("c", {"n": 1})
        self.assertEqual(received, [{"n": 1}])


class RedisChangeFeedTests(unittest.TestCase):
    @patch("vango.realtime.redis.Redis.from_url")
    def test_publish_serializes_payload(self, mock_from_url):
        client = MagicMock()
        mock_from_url.return_value = client

        RedisChangeFeed("redis://localhost:6379/0").publish("location:b1", {"lat": 60.1})

        client.publish.assert_called_once_with("location:b1", json.dumps({"lat": 60.1}))

    @patch("vango.realtime.redis.Redis.from_url")
    def test_publish_reconnects_once(self, mock_from_url):
        stale, fresh = MagicMock(), MagicMock()
        stale.publish.side_effect = redis_exceptions.ConnectionError("closed")
        mock_from_url.side_effect = [stale, fresh]

        feed = RedisChangeFeed("redis://localhost:6379/0")
        feed.publish("c", {"n": 1})

        fresh.publish.assert_called_once()
        self.assertIs(feed.client, fresh)

    @patch("vango.realtime.redis.Redis.from_url")
    def test_subscribe_decodes_messages_and_cancels(self, mock_from_url):
        client = MagicMock()
        pubsub = client.pubsub.return_value
        worker = pubsub.run_in_thread.return_value
        mock_from_url.return_value = client

        received = []
        sub = RedisChangeFeed("redis://localhost:6379/0").subscribe("c", received.append)

        handler = pubsub.subscribe.call_args.kwargs["c"]
        handler({"type": "message", "data": json.dumps({"n": 1}).encode()})
        handler({"type": "message", "data": b"not json"})
        self.assertEqual(received, [{"n": 1}])

        sub.unsubscribe()
        worker.stop.assert_called_once()
        pubsub.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
