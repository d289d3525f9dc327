import pytest

from conftest import FakeProber, write_hls_tree
from hlsworker.exceptions import ManifestMissing
from hlsworker.metadata_builder import MetadataBuilder

PROGRESSIVE_PROBE = {
    "format": {"bit_rate": "2500000", "duration": "4.48"},
    "streams": [
        {
            "codec_type": "video",
            "codec_name": "h264",
            "codec_long_name": "H.264 / AVC / MPEG-4 AVC / MPEG-4 part 10",
            "profile": "High",
            "pix_fmt": "yuv420p",
            "level": 40,
            "width": 1920,
            "height": 1080,
            "avg_frame_rate": "30000/1001",
            "r_frame_rate": "30/1",
            "bit_rate": "2300000",
        },
        {
            "codec_type": "audio",
            "codec_name": "aac",
            "profile": "LC",
            "sample_rate": "48000",
            "channels": 2,
            "bit_rate": "128000",
        },
    ],
}


def test_missing_master_raises(tmp_path, fake_prober):
    with pytest.raises(ManifestMissing):
        MetadataBuilder(fake_prober).build(tmp_path)


def test_variants_follow_master_order_with_measured_totals(tmp_path, fake_prober):
    write_hls_tree(tmp_path, variants=3)

    metadata = MetadataBuilder(fake_prober).build(tmp_path)

    assert [variant.id for variant in metadata.variants] == ["v0", "v1", "v2"]
    first = metadata.variants[0]
    playlist_size = (tmp_path / "v0" / "prog_index.m3u8").stat().st_size
    assert first.path == "v0/prog_index.m3u8"
    assert first.bandwidth_kbps == 800
    assert first.duration_seconds == 4
    assert first.size_bytes == 2000 + playlist_size
    assert first.avg_measured_kbps == round((2000 + playlist_size) * 8 / 4 / 1000)
    assert (first.width, first.height) == (640, 360)
    assert first.fps == 29.97
    assert first.codecs == "avc1.640028,mp4a.40.2"
    assert metadata.master == str(tmp_path.resolve() / "master.m3u8")
    assert metadata.name == tmp_path.name


def test_missing_sub_manifest_yields_null_totals(tmp_path, fake_prober):
    write_hls_tree(tmp_path, variants=2)
    (tmp_path / "v1" / "prog_index.m3u8").unlink()

    metadata = MetadataBuilder(fake_prober).build(tmp_path)

    missing = metadata.variants[1]
    assert missing.duration_seconds is None
    assert missing.size_bytes is None
    assert missing.avg_measured_kbps is None
    assert missing.bandwidth_kbps == 1600


def test_probe_fills_gaps_left_by_master(tmp_path):
    tmp_path.joinpath("v0").mkdir()
    (tmp_path / "v0" / "index.m3u8").write_text("#EXTM3U\n#EXTINF:2.0,\nseg.ts\n")
    (tmp_path / "master.m3u8").write_text("#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=500000\nv0/index.m3u8\n")
    prober = FakeProber({
        "index.m3u8": {"streams": [{"codec_type": "video", "codec_name": "h264", "width": 854, "height": 480,
                                    "avg_frame_rate": "0/0", "r_frame_rate": "25/1"}]},
    })

    variant = MetadataBuilder(prober).build(tmp_path).variants[0]

    assert (variant.width, variant.height) == (854, 480)
    assert variant.fps == 25.0
    assert variant.video_codec.codec_name == "h264"
    assert variant.audio_codec is None


def test_progressive_info_from_probe(tmp_path):
    write_hls_tree(tmp_path, variants=1)
    prober = FakeProber({"progressive.mp4": PROGRESSIVE_PROBE})

    progressive = MetadataBuilder(prober).build(tmp_path).progressive

    assert progressive.path == "progressive.mp4"
    assert progressive.size_bytes == 4000
    assert progressive.measured_kbps == 2500
    assert progressive.duration_seconds == 4
    assert (progressive.width, progressive.height) == (1920, 1080)
    assert progressive.fps == pytest.approx(29.97, abs=0.001)
    assert progressive.pixel_format == "yuv420p"
    assert progressive.video_codec.level == 40
    assert progressive.video_codec.bit_rate_kbps == 2300
    assert progressive.audio_codec.sample_rate == 48000
    assert progressive.audio_codec.channels == 2


def test_progressive_bitrate_falls_back_to_video_stream(tmp_path):
    write_hls_tree(tmp_path, variants=1)
    document = {"format": {"bit_rate": "N/A"}, "streams": PROGRESSIVE_PROBE["streams"]}

    progressive = MetadataBuilder(FakeProber({"progressive.mp4": document})).build(tmp_path).progressive

    assert progressive.measured_kbps == 2300
    assert progressive.duration_seconds is None


def test_failed_probe_leaves_codec_fields_empty(tmp_path, fake_prober):
    write_hls_tree(tmp_path, variants=1, with_progressive=False)

    progressive = MetadataBuilder(fake_prober).build(tmp_path).progressive

    assert progressive.size_bytes is None
    assert progressive.measured_kbps is None
    assert progressive.video_codec is None
    assert progressive.audio_codec is None


def test_rebuild_on_unchanged_directory_is_identical(tmp_path, fake_prober):
    write_hls_tree(tmp_path, variants=2)
    builder = MetadataBuilder(fake_prober)

    assert builder.build(tmp_path) == builder.build(tmp_path)


def test_variant_segment_counts_are_logged(tmp_path, fake_prober, caplog):
    caplog.set_level("DEBUG", logger="hlsworker.metadata_builder")
    write_hls_tree(tmp_path, variants=2)

    MetadataBuilder(fake_prober).build(tmp_path)

    assert "Variant v0: 2 segments" in caplog.text
    assert "Variant v1: 2 segments" in caplog.text
