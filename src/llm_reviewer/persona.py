"""Persona definitions loaded from YAML files."""

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from .exceptions import PersonaNotFoundError
from .models import Persona

logger = structlog.get_logger(__name__)


def load_persona(persona_dir: Path, name: str) -> Persona:
    """Load `<persona_dir>/<name>.yaml` into a Persona."""
    if not name or Path(name).name != name or name.startswith("."):
        raise PersonaNotFoundError(f"invalid persona name {name!r}")

    path = Path(persona_dir) / f"{name}.yaml"
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PersonaNotFoundError(f"failed to read persona file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise PersonaNotFoundError(f"failed to parse persona file {path}: {e}") from e

    if not isinstance(data, dict):
        raise PersonaNotFoundError(f"persona file {path} is not a mapping")

    data.setdefault("name", name)
    try:
        persona = Persona.model_validate(data)
    except ValidationError as e:
        raise PersonaNotFoundError(f"invalid persona file {path}: {e}") from e

    logger.debug("Loaded persona", persona=persona.name, path=str(path))
    return persona
