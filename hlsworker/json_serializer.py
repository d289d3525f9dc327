import logging
from pathlib import Path
from typing import Type, TypeVar

from pydantic import BaseModel

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def serialize_to_json(model: BaseModel, output_path: str | Path) -> None:
    p = Path(output_path)

    p.parent.mkdir(parents=True, exist_ok=True)

    json_string = model.model_dump_json(indent=4)

    # Write next to the target and swap, so readers never see a half written file
    tmp_path = p.with_suffix(p.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(json_string)
    tmp_path.replace(p)

    log.debug(f"Json saved successfully: {p.resolve()}")


def load_from_json(input_path: str | Path, model_type: Type[ModelT]) -> ModelT:
    p = Path(input_path)

    if not p.is_file():
        raise FileNotFoundError(f"File not found for deserialization: {p.resolve()}")

    try:
        json_content = p.read_text(encoding="utf-8")
        model = model_type.model_validate_json(json_content)

        log.debug(f"Json loaded: {p.resolve()}")
        return model

    except Exception as e:
        raise ValueError(f"Error loading json file. Input path: {input_path}. Exception: {e}") from e
