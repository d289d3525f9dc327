import logging
from pathlib import Path
from typing import Any, Optional

from hlsworker import file_utils
from hlsworker.exceptions import ManifestMissing
from hlsworker.extractor import ffprobe_extractor
from hlsworker.extractor.ffprobe_extractor import FfprobeRunner
from hlsworker.hls import master_playlist, variant_playlist
from hlsworker.hls.master_playlist import StreamDeclaration
from hlsworker.model.hls_metadata import HlsMetadata
from hlsworker.model.progressive_info import ProgressiveInfo
from hlsworker.model.variant_info import VariantInfo

log = logging.getLogger(__name__)

MASTER_PLAYLIST_NAME = "master.m3u8"
PROGRESSIVE_FILE_NAME = "progressive.mp4"


class MetadataBuilder:
    """
    Derives rendition metadata from an encoder output directory:
    the HLS variants listed in master.m3u8 and the progressive mp4.
    """

    def __init__(self, prober: FfprobeRunner):
        self.prober = prober

    def build(self, output_dir: Path) -> HlsMetadata:
        """
        Raises:
            ManifestMissing: master.m3u8 does not exist in output_dir
        """
        output_dir = output_dir.resolve()
        master_path = output_dir / MASTER_PLAYLIST_NAME
        progressive_path = output_dir / PROGRESSIVE_FILE_NAME

        if not file_utils.check_file_exists(master_path):
            log.error(f"Master playlist not found: {master_path}")
            raise ManifestMissing(f"{MASTER_PLAYLIST_NAME} not found at {master_path}")

        log.info("Building rendition metadata...")
        log.info("|-Output directory: %s", output_dir)

        variants = [
            self._build_variant(output_dir, declaration)
            for declaration in master_playlist.read_master_playlist(master_path)
        ]
        progressive = self._build_progressive(progressive_path)

        log.info("Rendition metadata built.")
        log.info("|-Variants: %d", len(variants))
        log.info("|-Progressive size: %s bytes", progressive.size_bytes)

        return HlsMetadata(
            name=output_dir.name,
            output_dir=str(output_dir),
            master=str(master_path),
            variants=variants,
            progressive=progressive,
        )

    def _build_variant(self, output_dir: Path, declaration: StreamDeclaration) -> VariantInfo:
        playlist_path = (output_dir / declaration.uri).resolve()

        duration_seconds = None
        size_bytes = None
        avg_measured_kbps = None

        if file_utils.check_file_exists(playlist_path):
            try:
                totals = variant_playlist.sum_variant_playlist(playlist_path)
            except (OSError, UnicodeDecodeError) as e:
                log.warning(f"Variant playlist could not be read: {playlist_path}. Details: {e}")
            else:
                log.debug(f"Variant {declaration.variant_id}: {totals.segments_count} segments, {totals.total_bytes} bytes")
                duration_seconds = totals.duration_seconds
                avg_measured_kbps = totals.measured_kbps
                size_bytes = totals.total_bytes
        else:
            log.warning(f"Variant playlist not found: {playlist_path}")

        width, height = declaration.width_height
        fps = declaration.frame_rate
        video_codec = None
        audio_codec = None

        probe = self.prober.probe_or_none(playlist_path)
        streams = _streams(probe)
        if streams:
            video_stream = ffprobe_extractor.first_stream(streams, 'video')
            if video_stream is not None:
                if not width:
                    width = video_stream.get('width')
                if not height:
                    height = video_stream.get('height')
            if not fps:
                probed_fps = ffprobe_extractor.extract_fps(streams)
                if probed_fps:
                    fps = round(probed_fps, 3)
            video_codec = ffprobe_extractor.extract_video_codec(streams)
            audio_codec = ffprobe_extractor.extract_audio_codec(streams)

        return VariantInfo(
            id=declaration.variant_id,
            path=declaration.uri,
            bandwidth_kbps=declaration.bandwidth_kbps,
            avg_measured_kbps=avg_measured_kbps,
            size_bytes=size_bytes,
            duration_seconds=duration_seconds,
            resolution=declaration.resolution,
            width=width or None,
            height=height or None,
            fps=fps or None,
            codecs=declaration.codecs,
            video_codec=video_codec,
            audio_codec=audio_codec,
        )

    def _build_progressive(self, progressive_path: Path) -> ProgressiveInfo:
        size_bytes = file_utils.get_file_size_bytes(progressive_path)
        probe = self.prober.probe_or_none(progressive_path)
        streams = _streams(probe)
        format_data = (probe or {}).get('format') or {}

        measured_kbps = None
        if ffprobe_extractor.is_digits(format_data.get('bit_rate')):
            measured_kbps = ffprobe_extractor.bit_rate_kbps(format_data.get('bit_rate'))
        else:
            for stream in streams:
                if stream.get('codec_type') == 'video' and stream.get('bit_rate'):
                    measured_kbps = ffprobe_extractor.bit_rate_kbps(stream.get('bit_rate'))
                    break

        duration = ffprobe_extractor.parse_number(format_data.get('duration'))
        video_stream = ffprobe_extractor.first_stream(streams, 'video') or {}

        return ProgressiveInfo(
            path=PROGRESSIVE_FILE_NAME,
            size_bytes=size_bytes or None,
            measured_kbps=measured_kbps,
            duration_seconds=ffprobe_extractor.round_half_up(duration) if duration is not None else None,
            width=video_stream.get('width'),
            height=video_stream.get('height'),
            fps=ffprobe_extractor.extract_fps(streams),
            pixel_format=video_stream.get('pix_fmt'),
            video_codec=ffprobe_extractor.extract_video_codec(streams),
            audio_codec=ffprobe_extractor.extract_audio_codec(streams),
        )


def _streams(probe: Optional[dict[str, Any]]) -> list[dict[str, Any]]:
    if not probe:
        return []
    streams = probe.get('streams')
    return [stream for stream in streams if isinstance(stream, dict)] if isinstance(streams, list) else []
