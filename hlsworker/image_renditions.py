import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageRenditionStep:
    width: int
    name: str
    quality: int
    speed: int


# Pillow AVIF speed runs 0 (slowest, smallest) to 10 (fastest)
PIPELINE_POSTER_LADDER = (
    ImageRenditionStep(width=854, name="poster_480p", quality=80, speed=4),
    ImageRenditionStep(width=1280, name="poster_720p", quality=80, speed=4),
    ImageRenditionStep(width=1920, name="poster_1080p", quality=80, speed=4),
    ImageRenditionStep(width=2560, name="poster_1440p", quality=82, speed=3),
    ImageRenditionStep(width=3840, name="poster_2160p", quality=82, speed=3),
)

# User supplied posters are usually photos already compressed once
OVERRIDE_POSTER_LADDER = (
    ImageRenditionStep(width=854, name="poster_480p", quality=75, speed=6),
    ImageRenditionStep(width=1280, name="poster_720p", quality=75, speed=6),
    ImageRenditionStep(width=1920, name="poster_1080p", quality=78, speed=6),
    ImageRenditionStep(width=2560, name="poster_1440p", quality=78, speed=5),
    ImageRenditionStep(width=3840, name="poster_2160p", quality=78, speed=5),
)


class ImageRenditionService:
    """
    Renders a ladder of width-bounded still images from one source image.

    Aspect ratio is preserved and images are never upscaled past the source
    width. All rungs of the ladder are rendered concurrently.
    """

    def __init__(self, image_format: str = "AVIF", extension: str = "avif", max_workers: int = 5):
        self.image_format = image_format
        self.extension = extension
        self.max_workers = max_workers

    def render(self, source_path: Path, output_dir: Path, ladder: tuple[ImageRenditionStep, ...]) -> list[Path]:
        output_dir.mkdir(parents=True, exist_ok=True)

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="image-rendition") as executor:
            futures = [executor.submit(self._render_one, source_path, output_dir, step) for step in ladder]
            # result() re-raises the first rendering error
            return [future.result() for future in futures]

    def _render_one(self, source_path: Path, output_dir: Path, step: ImageRenditionStep) -> Path:
        output_path = output_dir / f"{step.name}.{self.extension}"

        with Image.open(source_path) as source:
            mode = _working_mode(source)
            image = source if source.mode == mode else source.convert(mode)
            if image.width > step.width:
                target_height = max(1, round(image.height * step.width / image.width))
                image = image.resize((step.width, target_height), Image.Resampling.LANCZOS)
            image.save(output_path, format=self.image_format, quality=step.quality, speed=step.speed)

        log.debug(f"Rendered {output_path.name} ({step.width}px max, quality {step.quality})")
        return output_path


def _working_mode(source: Image.Image) -> str:
    if source.mode in ("RGB", "RGBA"):
        return source.mode
    # Palette images keep their transparency in info, not in a band
    if "A" in source.getbands() or "transparency" in source.info:
        return "RGBA"
    return "RGB"
