import logging
import threading
from abc import ABC, abstractmethod

log = logging.getLogger(__name__)


class Notifier(ABC):
    """Delivery of user facing notifications about processed videos."""

    @abstractmethod
    def notify_video_processed(self, video_id: int, user_id: int) -> None:
        """Tell the uploader that their video finished processing."""

    @abstractmethod
    def notify_new_video(self, video_id: int, user_id: int) -> None:
        """Tell other interested users that `user_id` published a new video."""


class LoggingNotifier(Notifier):
    """Notifier used when no delivery transport is configured."""

    def notify_video_processed(self, video_id: int, user_id: int) -> None:
        log.info("Notification: video processed.")
        log.info("|-Video id: %d", video_id)
        log.info("|-Uploader id: %d", user_id)

    def notify_new_video(self, video_id: int, user_id: int) -> None:
        log.info("Notification: new video.")
        log.info("|-Video id: %d", video_id)
        log.info("|-Uploader id: %d", user_id)


def fan_out_new_video(notifier: Notifier, video_id: int, user_id: int) -> threading.Thread:
    """
    Send the "new video" notification on a background thread. The caller
    does not wait for it; failures are logged.
    """

    def _send():
        try:
            notifier.notify_new_video(video_id, user_id)
        except Exception as e:
            log.error(f"Error sending new video notifications for video {video_id}: {e}")

    thread = threading.Thread(target=_send, name=f"notify-new-video-{video_id}", daemon=True)
    thread.start()
    return thread
