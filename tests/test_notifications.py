import unittest
from unittest import mock

import requests

from accident_pipeline.notifications import SENDGRID_API_URL, EmailNotifier, NotificationQueue
from tests.fakes import RecordingNotifier


class TestEmailNotifier(unittest.TestCase):

    def setUp(self):
        self.notifier = EmailNotifier("secret", "pipeline@example.com", "ops@example.com")

    @mock.patch("accident_pipeline.notifications.requests.post")
    def test_send_posts_message(self, mock_post):
        mock_post.return_value = mock.Mock(ok=True, status_code=202)

        self.assertTrue(self.notifier.send("Blob Processing Report", "Processed 2 blobs"))

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], SENDGRID_API_URL)
        self.assertEqual(kwargs["headers"], {"Authorization": "Bearer secret"})
        self.assertEqual(kwargs["json"]["subject"], "Blob Processing Report")
        self.assertEqual(kwargs["json"]["personalizations"][0]["to"][0]["email"], "ops@example.com")
        self.assertEqual(kwargs["json"]["content"][0]["value"], "Processed 2 blobs")

    @mock.patch("accident_pipeline.notifications.requests.post")
    def test_rejected_message_returns_false(self, mock_post):
        mock_post.return_value = mock.Mock(ok=False, status_code=401, text="unauthorized")

        with self.assertLogs("Notifications", level="ERROR"):
            self.assertFalse(self.notifier.send("s", "b"))

    @mock.patch("accident_pipeline.notifications.requests.post")
    def test_transport_error_is_not_raised(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("no route")

        self.assertFalse(self.notifier.send("s", "b"))


class TestNotificationQueue(unittest.TestCase):

    def test_flush_delivers_in_order_and_empties(self):
        queue = NotificationQueue()
        queue.add("first", "1")
        queue.add("second", "2")
        notifier = RecordingNotifier()

        self.assertEqual(queue.flush(notifier), 2)
        self.assertEqual(notifier.sent, [("first", "1"), ("second", "2")])
        self.assertEqual(len(queue), 0)
        self.assertEqual(queue.flush(notifier), 0)
        self.assertEqual(len(notifier.sent), 2)

    def test_flush_counts_only_accepted_messages(self):
        queue = NotificationQueue()
        queue.add("a", "1")
        queue.add("b", "2")
        notifier = mock.Mock()
        notifier.send.side_effect = [True, False]

        self.assertEqual(queue.flush(notifier), 1)

    def test_flush_without_notifier_drops_messages(self):
        queue = NotificationQueue()
        queue.add("a", "1")

        self.assertEqual(queue.flush(None), 0)
        self.assertEqual(len(queue), 0)


if __name__ == '__main__':
    unittest.main()
