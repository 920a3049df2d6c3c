"""Reading and writing the tolerations persisted on a pod.

Pods are handled as plain dictionaries in the orchestrator's JSON shape.
Tolerations live either in the ``spec.tolerations`` field or, for older
clusters, as a JSON string under the tolerations annotation.
"""

import copy
import json
from collections.abc import Sequence
from enum import Enum

from pydantic import TypeAdapter, ValidationError

from toleration_defaulter.exceptions import TolerationDecodeError
from toleration_defaulter.logging_config import get_logger
from toleration_defaulter.models.toleration import Toleration

logger = get_logger(__name__)

TOLERATIONS_ANNOTATION_KEY = "scheduler.alpha.kubernetes.io/tolerations"

SPEC_LOCATION = "spec.tolerations"
ANNOTATION_LOCATION = f"metadata.annotations[{TOLERATIONS_ANNOTATION_KEY}]"

_tolerations_adapter = TypeAdapter(list[Toleration] | None)


class TolerationSource(str, Enum):
    """Where a pod's tolerations are persisted."""

    SPEC = "spec"
    ANNOTATION = "annotation"


def _section(value, location: str) -> dict:
    """Return a part of the pod document, which must be an object when present."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TolerationDecodeError(
            f"Invalid pod: {location} is not an object",
            f"Expected a mapping at {location}, got {type(value).__name__}",
            location=location,
        )
    return value


def _spec(pod: dict) -> dict:
    return _section(pod.get("spec"), "spec")


def _annotations(pod: dict) -> dict:
    metadata = _section(pod.get("metadata"), "metadata")
    return _section(metadata.get("annotations"), "metadata.annotations")


def _escape_pointer(token: str) -> str:
    """Escape a JSON Pointer reference token (RFC 6901)."""
    return token.replace("~", "~0").replace("/", "~1")


def locate_tolerations(
    pod: dict, preferred: TolerationSource = TolerationSource.SPEC
) -> TolerationSource:
    """Find where a pod keeps its tolerations.

    The annotation takes precedence when present. A pod that carries neither
    the annotation nor the field gets the preferred source.

    Args:
        pod: Pod document
        preferred: Source to use when the pod has no tolerations at all

    Returns:
        The TolerationSource to read from and write back to

    Raises:
        TolerationDecodeError: If the pod's spec, metadata or annotations are not objects
    """
    if TOLERATIONS_ANNOTATION_KEY in _annotations(pod):
        return TolerationSource.ANNOTATION
    if _spec(pod).get("tolerations") is not None:
        return TolerationSource.SPEC
    return preferred


def decode_tolerations(pod: dict, source: TolerationSource) -> list[Toleration]:
    """Decode the tolerations stored on a pod.

    Args:
        pod: Pod document
        source: Where to read the tolerations from

    Returns:
        List of tolerations, empty when none are stored

    Raises:
        TolerationDecodeError: If the stored tolerations are malformed
    """
    if source is TolerationSource.ANNOTATION:
        raw = _annotations(pod).get(TOLERATIONS_ANNOTATION_KEY)
        if raw is None or raw == "":
            return []
        if not isinstance(raw, str):
            raise TolerationDecodeError(
                f"Invalid value for annotation {TOLERATIONS_ANNOTATION_KEY}",
                f"Annotation values must be strings, got {type(raw).__name__}",
                location=ANNOTATION_LOCATION,
            )
        try:
            tolerations = _tolerations_adapter.validate_json(raw)
        except ValidationError as e:
            logger.debug(f"Rejected tolerations annotation: {raw!r}")
            raise TolerationDecodeError(
                f"Invalid tolerations in annotation {TOLERATIONS_ANNOTATION_KEY}",
                str(e),
                location=ANNOTATION_LOCATION,
            ) from e
        return tolerations or []

    raw = _spec(pod).get("tolerations")
    try:
        tolerations = _tolerations_adapter.validate_python(raw)
    except ValidationError as e:
        raise TolerationDecodeError(
            "Invalid tolerations in spec.tolerations", str(e), location=SPEC_LOCATION
        ) from e
    return tolerations or []


def decode_pod_tolerations(
    pod: dict, preferred: TolerationSource = TolerationSource.SPEC
) -> tuple[TolerationSource, list[Toleration], list[Toleration]]:
    """Decode every toleration a pod declares.

    A pod may carry tolerations in both the field and the annotation. The
    orchestrator honours both, so both count when deciding what is already
    tolerated, but only the located source is written back.

    Args:
        pod: Pod document
        preferred: Source to use when the pod has no tolerations at all

    Returns:
        Tuple of the source to write to, its tolerations, and the tolerations
        stored in the other source

    Raises:
        TolerationDecodeError: If the pod or any stored tolerations are malformed
    """
    source = locate_tolerations(pod, preferred)
    if source is TolerationSource.ANNOTATION:
        other = TolerationSource.SPEC
    else:
        other = TolerationSource.ANNOTATION
    return source, decode_tolerations(pod, source), decode_tolerations(pod, other)


def encode_tolerations(
    pod: dict, tolerations: Sequence[Toleration], source: TolerationSource
) -> dict:
    """Return a copy of the pod with the tolerations written to ``source``.

    The given pod is left untouched.
    """
    data = [t.to_dict() for t in tolerations]
    updated = copy.deepcopy(pod)

    if source is TolerationSource.ANNOTATION:
        metadata = updated.get("metadata") or {}
        annotations = metadata.get("annotations") or {}
        annotations[TOLERATIONS_ANNOTATION_KEY] = json.dumps(data, separators=(",", ":"))
        metadata["annotations"] = annotations
        updated["metadata"] = metadata
        return updated

    spec = updated.get("spec") or {}
    spec["tolerations"] = data
    updated["spec"] = spec
    return updated


def build_patch(
    pod: dict, tolerations: Sequence[Toleration], source: TolerationSource
) -> list[dict]:
    """Build JSON Patch operations that store the tolerations on the pod.

    Args:
        pod: Pod document the patch will be applied to
        tolerations: Complete list of tolerations to store
        source: Where to store them

    Returns:
        List of RFC 6902 operations
    """
    data = [t.to_dict() for t in tolerations]

    if source is TolerationSource.ANNOTATION:
        encoded = json.dumps(data, separators=(",", ":"))
        metadata = pod.get("metadata")
        if metadata is None:
            return [
                {
                    "op": "add",
                    "path": "/metadata",
                    "value": {"annotations": {TOLERATIONS_ANNOTATION_KEY: encoded}},
                }
            ]
        if metadata.get("annotations") is None:
            return [
                {
                    "op": "add",
                    "path": "/metadata/annotations",
                    "value": {TOLERATIONS_ANNOTATION_KEY: encoded},
                }
            ]
        return [
            {
                "op": "add",
                "path": f"/metadata/annotations/{_escape_pointer(TOLERATIONS_ANNOTATION_KEY)}",
                "value": encoded,
            }
        ]

    spec = pod.get("spec")
    if spec is None:
        return [{"op": "add", "path": "/spec", "value": {"tolerations": data}}]
    op = "replace" if "tolerations" in spec else "add"
    return [{"op": op, "path": "/spec/tolerations", "value": data}]
