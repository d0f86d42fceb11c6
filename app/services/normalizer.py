"""Turns the raw inference payload into a NormalizedPrediction.

The upstream body is arbitrary JSON, so its shape is checked here once and
nowhere else. Expected shape::

    {"outputs": [{"model_prediction_output": {
        "predictions": [{"class": "potato_early_blight", ...}, ...],
        "top": "potato_early_blight",
        "confidence": 0.97,
        "inference_id": "...",
        "image": {"width": 640, "height": 480}}}]}
"""

import math
from typing import Any, Mapping, Union

from app.schemas import EmptyKind, EmptyResult, NormalizedPrediction

HEALTHY_MARKER = "healthy"
SEPARATOR = "_"

COULD_NOT_PREDICT = "Oops! Our model could not predict this. Please try again with a clearer image"
NO_PREDICTION = "No disease prediction found. Please try again with a clearer image"


def normalize(raw: Any) -> Union[NormalizedPrediction, EmptyResult]:
    if not isinstance(raw, Mapping):
        return EmptyResult(kind=EmptyKind.MALFORMED, message=COULD_NOT_PREDICT)

    outputs = raw.get("outputs")
    if not isinstance(outputs, list) or not outputs:
        return EmptyResult(kind=EmptyKind.NO_OUTPUTS, message=COULD_NOT_PREDICT)

    first = outputs[0]
    model_output = first.get("model_prediction_output") if isinstance(first, Mapping) else None
    if not isinstance(model_output, Mapping):
        return EmptyResult(kind=EmptyKind.NO_PREDICTIONS, message=NO_PREDICTION)
    predictions = model_output.get("predictions")
    if not isinstance(predictions, list) or not predictions:
        return EmptyResult(kind=EmptyKind.NO_PREDICTIONS, message=NO_PREDICTION)

    # Upstream ranks the candidates; first one wins
    candidate = predictions[0]
    disease_class = candidate.get("class") if isinstance(candidate, Mapping) else None
    if not isinstance(disease_class, str) or not disease_class.strip():
        return EmptyResult(kind=EmptyKind.MALFORMED, message=COULD_NOT_PREDICT)
    disease_class = disease_class.strip()

    image = model_output.get("image")
    if not isinstance(image, Mapping):
        image = {}

    crop_name, is_healthy = split_disease_class(disease_class)
    inference_id = model_output.get("inference_id")
    top = model_output.get("top")

    return NormalizedPrediction(
        disease_class_raw=disease_class,
        disease_class_display=display_name(disease_class),
        crop_name=crop_name,
        is_healthy=is_healthy,
        confidence=parse_confidence(model_output.get("confidence")),
        top_score="" if top is None else str(top),
        inference_id=None if inference_id is None else str(inference_id),
        image_width=parse_dimension(image.get("width")),
        image_height=parse_dimension(image.get("height")),
    )


def split_disease_class(disease_class: str):
    """Return (crop_name, is_healthy) for a class label.

    ``potato_early_blight`` -> ("Potato", False)
    ``healthy_tomato``      -> ("Tomato", True)
    ``tomato_healthy``      -> ("Tomato", True)
    """
    head, _, tail = disease_class.partition(SEPARATOR)
    if head.lower() == HEALTHY_MARKER:
        crop = tail.split(SEPARATOR)[0]
        return capitalize(crop) or "Unknown", True
    return capitalize(head) or "Unknown", tail.lower() == HEALTHY_MARKER


def display_name(disease_class: str) -> str:
    return capitalize(disease_class)


def capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def parse_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return 1.0
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 1.0
    if math.isnan(confidence) or confidence <= 0.0 or confidence > 1.0:
        return 1.0
    return confidence


def parse_dimension(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError, OverflowError):
        return 0
