import tomllib
from pathlib import Path

import pytest
from PIL import Image

from hlsworker import file_utils
from hlsworker.config.app_config import AppConfig, ConfigManager
from hlsworker.model.job_payload import (
    TranscodeJobPayload,
    UploadEntry,
    UploadReference,
    UploadStorage,
    VideoEntry,
    VisibilityState,
)

BASE_DIR = Path(__file__).resolve().parent.parent


@pytest.fixture
def mock_app_config(monkeypatch, tmp_path) -> AppConfig:
    test_videos_root = tmp_path / "test_videos_root"
    test_data_dir = tmp_path / "test_data_dir"
    test_videos_root.mkdir()
    test_data_dir.mkdir()

    pyproject_file = BASE_DIR / "pyproject.toml"

    if not file_utils.check_file_exists(pyproject_file):
        raise FileNotFoundError("pyproject.toml not found. Expected location: {}".format(pyproject_file))

    with pyproject_file.open("rb") as f:
        pyproject_data = tomllib.load(f)

    project = pyproject_data.get("project")

    test_app_config = AppConfig(
        app_name=project.get("name"),
        app_version=project.get("version"),

        videos_root=test_videos_root,
        data_dir=test_data_dir,
        logs_dir=tmp_path / "logs",
        encoder_command=["./scripts/transcode.sh"],
        encoder_process_priority="normal",
        ffprobe_path="ffprobe",
        probe_timeout_seconds=30,
        worker_concurrency=1,
        queue_name="transcode",
        broker_url="memory://",
        result_backend="cache+memory://",
        lock_timeout_seconds=5,
        poster_workers=2,
    )

    monkeypatch.setattr(ConfigManager, "get_config", lambda: test_app_config)

    return test_app_config


@pytest.fixture
def make_payload(tmp_path):
    def _make_payload(visibility: VisibilityState = VisibilityState.PRIVATE,
                      storage_path: str | None = "default",
                      public_id: str = "abc123") -> TranscodeJobPayload:
        if storage_path == "default":
            upload_file = tmp_path / "upload.bin"
            upload_file.write_bytes(b"not really a video")
            storage_path = str(upload_file)

        return TranscodeJobPayload(
            tus_upload=UploadReference(
                id="tus-1",
                storage=UploadStorage(path=storage_path),
                metadata={"filename": "holiday.mov"},
            ),
            upload_entry=UploadEntry(id=7, video_id=42, user_id=3),
            video_entry=VideoEntry(id=42, public_id=public_id, user_id=3, visibility_state=visibility),
        )

    return _make_payload


class FakeProber:
    """Stands in for FfprobeRunner; answers from a path -> document mapping."""

    def __init__(self, documents: dict[str, dict] | None = None, duration_seconds: float | None = None):
        self.documents = documents or {}
        self.duration_seconds = duration_seconds
        self.probed: list[Path] = []

    def probe_or_none(self, path_to_file: Path):
        self.probed.append(Path(path_to_file))
        return self.documents.get(Path(path_to_file).name)

    def probe_duration_seconds(self, path_to_file: Path):
        return self.duration_seconds


@pytest.fixture
def fake_prober() -> FakeProber:
    return FakeProber()


def write_hls_tree(output_dir: Path, variants: int = 2, with_progressive: bool = True, with_poster: bool = False):
    """Lay out what the encoder leaves behind: master, sub-manifests, segments, progressive."""
    output_dir.mkdir(parents=True, exist_ok=True)

    master_lines = ["#EXTM3U", "#EXT-X-VERSION:3"]
    for index in range(variants):
        height = 360 * (index + 1)
        width = height * 16 // 9
        master_lines.append(
            f'#EXT-X-STREAM-INF:BANDWIDTH={800000 * (index + 1)},RESOLUTION={width}x{height},'
            f'FRAME-RATE=29.970,CODECS="avc1.640028,mp4a.40.2"')
        master_lines.append(f"v{index}/prog_index.m3u8")

        variant_dir = output_dir / f"v{index}"
        variant_dir.mkdir(exist_ok=True)
        (variant_dir / "seg_0.ts").write_bytes(b"\0" * 1000)
        (variant_dir / "seg_1.ts").write_bytes(b"\0" * 1000)
        (variant_dir / "prog_index.m3u8").write_text(
            "#EXTM3U\n#EXT-X-TARGETDURATION:2\n"
            "#EXTINF:2.000,\nseg_0.ts\n"
            "#EXTINF:2.000,\nseg_1.ts\n"
            "#EXT-X-ENDLIST\n")

    (output_dir / "master.m3u8").write_text("\n".join(master_lines) + "\n")

    if with_progressive:
        (output_dir / "progressive.mp4").write_bytes(b"\0" * 4000)

    if with_poster:
        Image.new("RGB", (640, 360), (10, 120, 200)).save(output_dir / "poster_lossless.png")
