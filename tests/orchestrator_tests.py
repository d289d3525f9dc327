import sys
import textwrap
import threading

import pytest

from conftest import FakeProber, write_hls_tree
from hlsworker.encoder import EncodeInvoker
from hlsworker.exceptions import EncodeInvocationError
from hlsworker.image_renditions import ImageRenditionService
from hlsworker.metadata_builder import MetadataBuilder
from hlsworker.model.encode_result import EncodeResult
from hlsworker.model.job_payload import VisibilityState
from hlsworker.model.rendition import RenditionKind
from hlsworker.model.transcode_job import TranscodeState
from hlsworker.notifications import Notifier
from hlsworker.orchestrator import JobOrchestrator, encode_summary
from hlsworker.persistence.json_repository import JsonMediaRepository


class RecordingRepository(JsonMediaRepository):
    """JsonMediaRepository that records the order of writes and can fail inserts."""

    def __init__(self, data_dir, fail_insert_at: int | None = None):
        super().__init__(data_dir)
        self.calls: list[str] = []
        self.fail_insert_at = fail_insert_at
        self._inserts = 0

    def create_transcode_job(self, *args, **kwargs):
        self.calls.append("create_transcode_job")
        return super().create_transcode_job(*args, **kwargs)

    def finish_transcode_job(self, *args, **kwargs):
        self.calls.append("finish_transcode_job")
        return super().finish_transcode_job(*args, **kwargs)

    def insert_rendition(self, video_id, rendition):
        self._inserts += 1
        if self._inserts == self.fail_insert_at:
            raise OSError("disk full")
        self.calls.append("insert_rendition")
        return super().insert_rendition(video_id, rendition)

    def set_video_ready(self, video_id):
        self.calls.append("set_video_ready")
        return super().set_video_ready(video_id)


class RecordingNotifier(Notifier):
    def __init__(self, fail_processed: bool = False):
        self.fail_processed = fail_processed
        self.processed: list[tuple[int, int]] = []
        self.new_video: list[tuple[int, int]] = []
        self.new_video_sent = threading.Event()

    def notify_video_processed(self, video_id, user_id):
        if self.fail_processed:
            raise ConnectionError("push service down")
        self.processed.append((video_id, user_id))

    def notify_new_video(self, video_id, user_id):
        self.new_video.append((video_id, user_id))
        self.new_video_sent.set()


class FakeEncoder:
    """Writes an encoder output tree instead of running a subprocess."""

    def __init__(self, variants: int = 2, write_master: bool = True, exit_code: int = 0):
        self.variants = variants
        self.write_master = write_master
        self.exit_code = exit_code

    def run(self, input_path, output_dir, on_progress=None, on_log=None, duration_seconds=None, logs=None):
        logs.append("fake encoder started")
        if self.exit_code != 0:
            raise EncodeInvocationError(f"Encoder failed with exit code {self.exit_code}", exit_code=self.exit_code)
        if self.write_master:
            write_hls_tree(output_dir, variants=self.variants, with_poster=True)
        else:
            output_dir.mkdir(parents=True, exist_ok=True)
        final_block = {"progress": "end", "frame": "120", "total_size": "48000", "seconds_done": "4.0"}
        return EncodeResult(output_dir=output_dir, exit_code=0, final_block=final_block, logs=logs)


class ExplodingBuilder:
    def build(self, output_dir):
        raise RuntimeError("unexpected builder bug")


def _orchestrator(tmp_path, repository=None, notifier=None, encoder=None, builder=None):
    prober = FakeProber()
    return JobOrchestrator(
        repository=repository or RecordingRepository(tmp_path / "store"),
        notifier=notifier or RecordingNotifier(),
        encoder=encoder or FakeEncoder(),
        metadata_builder=builder or MetadataBuilder(prober),
        image_service=ImageRenditionService(image_format="PNG", extension="png", max_workers=2),
        prober=prober,
        videos_root=tmp_path / "videos",
        lock_timeout=2,
    )


def test_successful_job_writes_renditions_then_readiness(tmp_path, make_payload):
    repository = RecordingRepository(tmp_path / "store")
    orchestrator = _orchestrator(tmp_path, repository=repository, encoder=FakeEncoder(variants=3))

    outcome = orchestrator.run(make_payload())

    assert outcome.succeeded
    assert outcome.renditions_written == 4
    assert outcome.video_ready is True
    assert repository.calls == [
        "create_transcode_job",
        "insert_rendition", "insert_rendition", "insert_rendition", "insert_rendition",
        "set_video_ready",
        "finish_transcode_job",
    ]

    renditions = repository.list_renditions(42)
    assert renditions[0].kind == RenditionKind.PROGRESSIVE
    assert [rendition.path for rendition in renditions[1:]] == [
        "v0/prog_index.m3u8", "v1/prog_index.m3u8", "v2/prog_index.m3u8"]
    assert [rendition.bitrate_kbps for rendition in renditions[1:]] == [800, 1600, 2400]
    assert renditions[1].metadata["bandwidth_kbps"] == 800
    assert repository.is_video_ready(42)

    job = repository.get_transcode_job(outcome.job_id)
    assert job.state == TranscodeState.COMPLETED
    assert job.upload_id == 7
    assert job.output_path == str(tmp_path / "videos" / "abc123")
    assert "fake encoder started" in job.transcode_result
    assert "[encode summary] seconds_done=4.0 total_size=48000 frame=120" in job.transcode_result


def test_posters_are_derived_from_lossless_frame(tmp_path, make_payload):
    _orchestrator(tmp_path).run(make_payload())

    output_dir = tmp_path / "videos" / "abc123"
    assert (output_dir / "poster_480p.png").is_file()
    assert (output_dir / "poster_2160p.png").is_file()


def test_missing_master_fails_job_without_rows(tmp_path, make_payload):
    repository = RecordingRepository(tmp_path / "store")
    orchestrator = _orchestrator(tmp_path, repository=repository, encoder=FakeEncoder(write_master=False))

    outcome = orchestrator.run(make_payload())

    assert outcome.state == TranscodeState.FAILED
    assert "master.m3u8" in outcome.error
    assert repository.list_renditions(42) == []
    assert repository.is_video_ready(42) is False
    assert repository.get_transcode_job(outcome.job_id).state == TranscodeState.FAILED


def test_encode_failure_fails_job(tmp_path, make_payload):
    repository = RecordingRepository(tmp_path / "store")
    notifier = RecordingNotifier()
    orchestrator = _orchestrator(tmp_path, repository=repository, notifier=notifier,
                                 encoder=FakeEncoder(exit_code=1))

    outcome = orchestrator.run(make_payload())

    assert outcome.state == TranscodeState.FAILED
    assert "insert_rendition" not in repository.calls
    assert "set_video_ready" not in repository.calls
    assert notifier.processed == []
    job = repository.get_transcode_job(outcome.job_id)
    assert "exit code 1" in job.transcode_result


def test_failed_rendition_insert_keeps_video_not_ready(tmp_path, make_payload):
    repository = RecordingRepository(tmp_path / "store", fail_insert_at=2)
    orchestrator = _orchestrator(tmp_path, repository=repository)

    outcome = orchestrator.run(make_payload())

    assert outcome.state == TranscodeState.FAILED
    assert outcome.renditions_written == 2
    assert repository.is_video_ready(42) is False
    assert "set_video_ready" not in repository.calls
    assert "disk full" in repository.get_transcode_job(outcome.job_id).transcode_result


def test_unexpected_error_marks_job_failed_and_reraises(tmp_path, make_payload):
    repository = RecordingRepository(tmp_path / "store")
    orchestrator = _orchestrator(tmp_path, repository=repository, builder=ExplodingBuilder())

    with pytest.raises(RuntimeError):
        orchestrator.run(make_payload())

    job = repository.get_transcode_job(1)
    assert job.state == TranscodeState.FAILED
    assert "unexpected builder bug" in job.transcode_result


def test_payload_without_storage_path_is_rejected(tmp_path, make_payload):
    repository = RecordingRepository(tmp_path / "store")
    orchestrator = _orchestrator(tmp_path, repository=repository)

    outcome = orchestrator.run(make_payload(storage_path=None))

    assert outcome.state == TranscodeState.FAILED
    assert outcome.job_id is None
    assert repository.calls == []


@pytest.mark.parametrize("visibility", [VisibilityState.PUBLIC, VisibilityState.USERS])
def test_visible_videos_fan_out_new_video_notification(tmp_path, make_payload, visibility):
    notifier = RecordingNotifier()

    _orchestrator(tmp_path, notifier=notifier).run(make_payload(visibility=visibility))

    assert notifier.processed == [(42, 3)]
    assert notifier.new_video_sent.wait(timeout=5)
    assert notifier.new_video == [(42, 3)]


@pytest.mark.parametrize("visibility", [VisibilityState.PRIVATE, VisibilityState.FRIENDS, VisibilityState.SHAREABLE])
def test_restricted_videos_only_notify_uploader(tmp_path, make_payload, visibility):
    notifier = RecordingNotifier()

    _orchestrator(tmp_path, notifier=notifier).run(make_payload(visibility=visibility))

    assert notifier.processed == [(42, 3)]
    assert not notifier.new_video_sent.wait(timeout=0.2)


def test_notification_failure_does_not_fail_job(tmp_path, make_payload):
    outcome = _orchestrator(tmp_path, notifier=RecordingNotifier(fail_processed=True)).run(make_payload())

    assert outcome.succeeded


def test_real_encoder_subprocess_end_to_end(tmp_path, make_payload):
    script = tmp_path / "encoder.py"
    script.write_text(textwrap.dedent("""
        import sys
        from pathlib import Path

        output_dir = Path(sys.argv[2])
        (output_dir / "v0").mkdir(parents=True, exist_ok=True)
        (output_dir / "v0" / "seg_0.ts").write_bytes(b"0" * 500)
        (output_dir / "v0" / "index.m3u8").write_text("#EXTM3U\\n#EXTINF:2.000,\\nseg_0.ts\\n#EXT-X-ENDLIST\\n")
        (output_dir / "master.m3u8").write_text(
            "#EXTM3U\\n#EXT-X-STREAM-INF:BANDWIDTH=640000,RESOLUTION=640x360\\nv0/index.m3u8\\n")
        (output_dir / "progressive.mp4").write_bytes(b"0" * 1000)
        print("out_time=00:00:01.000000")
        print("progress=continue", flush=True)
        print("out_time=00:00:02.000000")
        print("progress=end", flush=True)
        print("no poster this time", file=sys.stderr, flush=True)
    """))
    repository = RecordingRepository(tmp_path / "store")
    orchestrator = _orchestrator(tmp_path, repository=repository,
                                 encoder=EncodeInvoker([sys.executable, str(script)]))
    updates = []

    outcome = orchestrator.run(make_payload(), on_progress=updates.append)

    assert outcome.succeeded
    assert [update.seconds_done for update in updates] == [1.0, 2.0]
    assert outcome.renditions_written == 2
    job_log = repository.get_transcode_job(outcome.job_id).transcode_result
    assert "[stderr] no poster this time" in job_log
    assert "[poster error]" in job_log


def test_encode_summary_skips_missing_fields():
    assert encode_summary({"progress": "end", "seconds_done": "2.5", "speed": "1.5x"}) == \
        "[encode summary] seconds_done=2.5 speed=1.5x"
