import logging
import time
from pathlib import Path
from typing import Callable, Optional

from hlsworker import poster_deriver
from hlsworker.encoder import EncodeInvoker
from hlsworker.exceptions import EncodeInvocationError, ManifestMissing, PosterSourceMissing
from hlsworker.extractor.ffprobe_extractor import FfprobeRunner
from hlsworker.image_renditions import ImageRenditionService
from hlsworker.locking import LockManager
from hlsworker.metadata_builder import MetadataBuilder
from hlsworker.model.hls_metadata import HlsMetadata
from hlsworker.model.job_payload import TranscodeJobPayload, VisibilityState
from hlsworker.model.progress_update import ProgressUpdate
from hlsworker.model.rendition import Rendition, RenditionKind
from hlsworker.model.transcode_job import TranscodeState
from hlsworker.model.transcode_outcome import TranscodeOutcome
from hlsworker.notifications import Notifier, fan_out_new_video
from hlsworker.persistence.media_repository import MediaRepository

log = logging.getLogger(__name__)

FAN_OUT_VISIBILITIES = (VisibilityState.PUBLIC, VisibilityState.USERS)


class JobOrchestrator:
    """
    Runs one transcode job end to end:

        transcoding -> encode -> posters -> metadata -> rendition rows
                    -> readiness flip -> notifications -> completed

    Any step that leaves the video without a full set of renditions ends the
    job in the failed state and the video is never marked ready. The job row
    is updated exactly once at the end with its terminal state and log.
    """

    def __init__(self,
                 repository: MediaRepository,
                 notifier: Notifier,
                 encoder: EncodeInvoker,
                 metadata_builder: MetadataBuilder,
                 image_service: ImageRenditionService,
                 prober: FfprobeRunner,
                 videos_root: Path,
                 lock_timeout: Optional[float] = None):
        self.repository = repository
        self.notifier = notifier
        self.encoder = encoder
        self.metadata_builder = metadata_builder
        self.image_service = image_service
        self.prober = prober
        self.videos_root = videos_root
        self.lock_timeout = lock_timeout

    def output_dir_for(self, payload: TranscodeJobPayload) -> Path:
        return self.videos_root / payload.video_entry.public_id

    def run(self,
            payload: TranscodeJobPayload,
            on_progress: Optional[Callable[[ProgressUpdate], None]] = None,
            on_log: Optional[Callable[[str], None]] = None) -> TranscodeOutcome:
        video = payload.video_entry
        upload = payload.tus_upload

        log.info("New transcode job.")
        log.info("|-File name: %s", upload.filename)
        log.info("|-Video: %s (id %d)", video.public_id, video.id)

        if upload.storage is None or not upload.storage.path:
            log.error("Upload has no storage path, job rejected.")
            log.error("|-Upload id: %s", upload.id)
            return TranscodeOutcome(state=TranscodeState.FAILED, video_id=video.id,
                                    error="upload has no storage path")

        input_path = Path(upload.storage.path)
        output_dir = self.output_dir_for(payload)

        with LockManager.acquire_output_dir_lock(output_dir, timeout=self.lock_timeout):
            return self._run_locked(payload, input_path, output_dir, on_progress, on_log)

    def _run_locked(self,
                    payload: TranscodeJobPayload,
                    input_path: Path,
                    output_dir: Path,
                    on_progress: Optional[Callable[[ProgressUpdate], None]],
                    on_log: Optional[Callable[[str], None]]) -> TranscodeOutcome:
        video = payload.video_entry
        job_start_time = time.perf_counter()

        job = self.repository.create_transcode_job(
            upload_id=payload.upload_entry.id,
            input_path=str(input_path),
            output_path=str(output_dir),
            state=TranscodeState.TRANSCODING,
        )

        logs: list[str] = []
        outcome = TranscodeOutcome(state=TranscodeState.FAILED, job_id=job.id, video_id=video.id)

        try:
            outcome = self._process(payload, input_path, output_dir, outcome, logs, on_progress, on_log)
        except Exception as e:
            log.exception(f"Unexpected error in transcode job {job.id}")
            logs.append(f"[pipeline error] {type(e).__name__}: {e}")
            self.repository.finish_transcode_job(job.id, TranscodeState.FAILED, "\n".join(logs))
            raise

        self.repository.finish_transcode_job(job.id, outcome.state, "\n".join(logs))

        log.info("Transcode job finished.")
        log.info("|-Job id: %d", job.id)
        log.info("|-State: %s", outcome.state.value)
        log.info("|-Renditions written: %d", outcome.renditions_written)
        log.info("|-Total time processing: %.2f seconds", time.perf_counter() - job_start_time)
        return outcome

    def _process(self,
                 payload: TranscodeJobPayload,
                 input_path: Path,
                 output_dir: Path,
                 outcome: TranscodeOutcome,
                 logs: list[str],
                 on_progress: Optional[Callable[[ProgressUpdate], None]],
                 on_log: Optional[Callable[[str], None]]) -> TranscodeOutcome:
        video = payload.video_entry

        try:
            encode_result = self.encoder.run(
                input_path=input_path,
                output_dir=output_dir,
                on_progress=on_progress,
                on_log=on_log,
                duration_seconds=self.prober.probe_duration_seconds(input_path),
                logs=logs,
            )
        except EncodeInvocationError as e:
            return self._failed(outcome, logs, f"encode failed: {e}")

        if encode_result.final_block:
            logs.append(encode_summary(encode_result.final_block))

        try:
            poster_deriver.derive_posters(output_dir, self.image_service)
        except (PosterSourceMissing, OSError, ValueError) as e:
            log.warning(f"Poster variants skipped: {e}")
            logs.append(f"[poster error] {e}")

        try:
            metadata = self.metadata_builder.build(output_dir)
        except ManifestMissing as e:
            return self._failed(outcome, logs, f"metadata build failed: {e}")
        outcome.metadata = metadata

        renditions = renditions_from_metadata(metadata)
        for rendition in renditions:
            try:
                self.repository.insert_rendition(video.id, rendition)
                outcome.renditions_written += 1
            except Exception as e:
                log.error(f"Failed to persist rendition {rendition.path} for video {video.id}: {e}")
                logs.append(f"[persistence error] {rendition.path}: {e}")

        if outcome.renditions_written != len(renditions):
            return self._failed(outcome, logs,
                                f"only {outcome.renditions_written} of {len(renditions)} renditions persisted")

        self.repository.set_video_ready(video.id)
        outcome.video_ready = True
        outcome.state = TranscodeState.COMPLETED

        self._notify(payload)
        return outcome

    def _notify(self, payload: TranscodeJobPayload) -> None:
        video = payload.video_entry
        try:
            self.notifier.notify_video_processed(video.id, video.user_id)
        except Exception as e:
            log.error(f"Error sending video processed notification for video {video.id}: {e}")

        if video.visibility_state in FAN_OUT_VISIBILITIES:
            fan_out_new_video(self.notifier, video.id, video.user_id)

    @staticmethod
    def _failed(outcome: TranscodeOutcome, logs: list[str], error: str) -> TranscodeOutcome:
        log.error("Transcode job failed.")
        log.error("|-Job id: %s", outcome.job_id)
        log.error("|-Reason: %s", error)
        logs.append(f"[job failed] {error}")
        outcome.state = TranscodeState.FAILED
        outcome.error = error
        return outcome


def renditions_from_metadata(metadata: HlsMetadata) -> list[Rendition]:
    """Progressive rendition first, then the variants in master playlist order."""
    progressive = metadata.progressive
    renditions = [
        Rendition(
            kind=RenditionKind.PROGRESSIVE,
            path=progressive.path,
            duration=progressive.duration_seconds,
            size_bytes=progressive.size_bytes,
            bitrate_kbps=progressive.measured_kbps,
            video_codec=progressive.video_codec.codec_name if progressive.video_codec else None,
            audio_codec=progressive.audio_codec.codec_name if progressive.audio_codec else None,
            pixel_format=progressive.video_codec.pixel_format if progressive.video_codec else None,
            width=progressive.width,
            height=progressive.height,
            fps=progressive.fps,
            metadata=progressive.model_dump(mode="json"),
        )
    ]

    for variant in metadata.variants:
        renditions.append(Rendition(
            kind=RenditionKind.VARIANT,
            path=variant.path,
            duration=variant.duration_seconds,
            size_bytes=variant.size_bytes,
            bitrate_kbps=variant.bandwidth_kbps if variant.bandwidth_kbps is not None else variant.avg_measured_kbps,
            video_codec=variant.video_codec.codec_name if variant.video_codec else None,
            audio_codec=variant.audio_codec.codec_name if variant.audio_codec else None,
            pixel_format=variant.video_codec.pixel_format if variant.video_codec else None,
            width=variant.width,
            height=variant.height,
            fps=variant.fps,
            metadata=variant.model_dump(mode="json"),
        ))

    return renditions


ENCODE_SUMMARY_KEYS = ("seconds_done", "total_size", "frame", "speed")


def encode_summary(final_block: dict[str, str]) -> str:
    """One log line from the encoder's terminal progress block."""
    fields = [f"{key}={final_block[key]}" for key in ENCODE_SUMMARY_KEYS if final_block.get(key)]
    return "[encode summary] " + " ".join(fields)
