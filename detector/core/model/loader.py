from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from detector.core.errors import ValidationError
from detector.core.model.definition import DetectorModel
from detector.core.model.validation import validate_model

logger = logging.getLogger(__name__)


def _read_document(text: str, source: str) -> Dict[str, Any]:
    # YAML is a superset of JSON, so one loader covers both file formats.
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ValidationError([f"{source}: cannot parse model document: {e}"]) from e
    if not isinstance(data, dict):
        raise ValidationError([f"{source}: model document must be a mapping at the root"])
    return data


def load_model_text(text: str, source: str = "<string>") -> DetectorModel:
    """
    Parse and validate a YAML or JSON detector model document.

    Raises
    ------
    ValidationError
        If the text cannot be parsed or the model is invalid.
    """
    return validate_model(_read_document(text, source))


def load_model_file(path: Union[str, Path]) -> DetectorModel:
    """
    Load a detector model document from disk.

    Parameters
    ----------
    path
        ``.yaml``/``.yml``/``.json`` model document.

    Returns
    -------
    DetectorModel
        Validated model.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValidationError
        If the document is invalid.
    """
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(f"Detector model not found: {p}")

    model = load_model_text(p.read_text(encoding="utf-8"), source=str(p))
    logger.info(
        "Loaded detector model %r from %s (%d states, initial=%s, evaluation=%s)",
        model.name,
        p,
        len(model.states),
        model.initial_state_name,
        model.evaluation_method.value,
    )
    return model


def load_model_document(document: Dict[str, Any]) -> DetectorModel:
    """Validate an already decoded model document (bare or full form)."""
    return validate_model(document)
