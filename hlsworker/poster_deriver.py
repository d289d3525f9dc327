import logging
from pathlib import Path

from hlsworker import file_utils
from hlsworker.exceptions import PosterSourceMissing
from hlsworker.image_renditions import (
    ImageRenditionService,
    PIPELINE_POSTER_LADDER,
    OVERRIDE_POSTER_LADDER,
)

log = logging.getLogger(__name__)

LOSSLESS_POSTER_NAME = "poster_lossless.png"


def derive_posters(output_dir: Path, service: ImageRenditionService) -> list[Path]:
    """
    Render the poster ladder from the lossless frame the encoder left in
    output_dir.

    Raises:
        PosterSourceMissing: the lossless frame is absent or empty
    """
    poster_source = output_dir / LOSSLESS_POSTER_NAME

    if file_utils.get_file_size_bytes(poster_source) == 0:
        log.error(f"Lossless poster frame is missing or empty: {poster_source}")
        raise PosterSourceMissing(
            f"{LOSSLESS_POSTER_NAME} not found at {poster_source}. The encoder should have created it.")

    log.info("Generating poster variants for %s", output_dir.name)
    posters = service.render(poster_source, output_dir, PIPELINE_POSTER_LADDER)
    log.info("Poster variants generated: %d", len(posters))
    return posters


def derive_override_posters(source_image: Path, output_dir: Path, service: ImageRenditionService) -> list[Path]:
    """Render the poster ladder from a user supplied image, replacing the derived posters."""
    if file_utils.get_file_size_bytes(source_image) == 0:
        raise PosterSourceMissing(f"Poster override image not found or empty: {source_image}")

    log.info("Generating poster override variants for %s", output_dir.name)
    return service.render(source_image, output_dir, OVERRIDE_POSTER_LADDER)
