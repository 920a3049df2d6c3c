"""Admission plugin that defaults node-health tolerations on pods."""

import base64
import json
from enum import Enum

from kubernetes.client import V1Pod
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from toleration_defaulter.codec import (
    SPEC_LOCATION,
    build_patch,
    decode_pod_tolerations,
    encode_tolerations,
)
from toleration_defaulter.config import DecodeFailurePolicy, Settings
from toleration_defaulter.exceptions import AdmissionError, TolerationDecodeError
from toleration_defaulter.logging_config import get_logger
from toleration_defaulter.models.toleration import Toleration
from toleration_defaulter.reconciler import ReconcileResult, ToleranceReconciler

logger = get_logger(__name__)

ADMISSION_API_VERSION = "admission.k8s.io/v1"


class Operation(str, Enum):
    """Admission operation kinds."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


class GroupVersionResource(BaseModel):
    """Resource addressed by an admission request."""

    group: str = ""
    version: str = ""
    resource: str = ""


class AdmissionRequest(BaseModel):
    """The request half of an AdmissionReview."""

    model_config = ConfigDict(populate_by_name=True)

    uid: str
    operation: Operation
    resource: GroupVersionResource = Field(default_factory=GroupVersionResource)
    sub_resource: str = Field(default="", alias="subResource")
    name: str = ""
    namespace: str = ""
    object: dict | None = None


class AdmissionStatus(BaseModel):
    """Status attached to a denied admission response."""

    code: int
    message: str


class AdmissionResponse(BaseModel):
    """The response half of an AdmissionReview."""

    model_config = ConfigDict(populate_by_name=True)

    uid: str
    allowed: bool = True
    status: AdmissionStatus | None = None
    patch: str | None = None
    patch_type: str | None = Field(default=None, alias="patchType")
    warnings: list[str] | None = None

    def to_dict(self) -> dict:
        """Convert to the AdmissionReview wire form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def decoded_patch(self) -> list[dict]:
        """Return the JSON Patch operations carried by the response."""
        if self.patch is None:
            return []
        return json.loads(base64.b64decode(self.patch))


class DefaultTolerationSecondsPlugin:
    """Defaults not-ready and unreachable tolerations on created and updated pods."""

    HANDLED_OPERATIONS = frozenset({Operation.CREATE, Operation.UPDATE})

    def __init__(self, settings: Settings | None = None):
        """Initialize the plugin.

        Args:
            settings: Process settings, defaults are used when omitted
        """
        self.settings = settings or Settings()
        self.reconciler = ToleranceReconciler(
            default_toleration_seconds=self.settings.default_toleration_seconds
        )

    def handles(self, operation: Operation | str) -> bool:
        """Check whether the plugin applies to an admission operation."""
        return Operation(operation) in self.HANDLED_OPERATIONS

    def mutate(self, pod: dict) -> tuple[dict, list[dict]]:
        """Default the tolerations of a pod document.

        Tolerations in both the field and the annotation count as present;
        the defaults are only written to the located source.

        Args:
            pod: Pod document, left unmodified

        Returns:
            Tuple of the resulting pod and the JSON Patch that produces it.
            When nothing changes the original pod and an empty patch are returned.

        Raises:
            TolerationDecodeError: If the pod's tolerations cannot be decoded
        """
        source, current, elsewhere = decode_pod_tolerations(pod, self.settings.tolerations_storage)
        result = self.reconciler.reconcile(elsewhere + current)

        if not result.changed:
            return pod, []

        tolerations = current + result.tolerations[len(elsewhere) + len(current) :]
        return (
            encode_tolerations(pod, tolerations, source),
            build_patch(pod, tolerations, source),
        )

    def admit(self, request: AdmissionRequest) -> AdmissionResponse:
        """Admit a request, defaulting tolerations where needed.

        Requests for other operations, other resources and subresources are
        allowed without changes.
        """
        if not self.handles(request.operation):
            return AdmissionResponse(uid=request.uid)

        resource = request.resource
        if resource.group != "" or resource.resource != "pods" or request.sub_resource:
            return AdmissionResponse(uid=request.uid)

        pod = request.object
        if not isinstance(pod, dict) or pod.get("kind", "Pod") != "Pod":
            kind = pod.get("kind") if isinstance(pod, dict) else type(pod).__name__
            logger.warning(f"Request {request.uid} carries {kind} instead of a Pod")
            return AdmissionResponse(
                uid=request.uid,
                allowed=False,
                status=AdmissionStatus(code=400, message=f"expected a Pod but got {kind}"),
            )

        metadata = pod.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        name = request.name or metadata.get("name") or metadata.get("generateName", "")
        pod_ref = f"{request.namespace}/{name}"

        try:
            _, patch = self.mutate(pod)
        except TolerationDecodeError as e:
            if self.settings.decode_failure_policy is DecodeFailurePolicy.IGNORE:
                logger.warning(f"Admitting pod {pod_ref} unchanged: {e.message}")
                return AdmissionResponse(uid=request.uid, warnings=[e.message])
            logger.error(f"Rejecting pod {pod_ref}: {e.message}")
            return AdmissionResponse(
                uid=request.uid,
                allowed=False,
                status=AdmissionStatus(code=400, message=e.format_message()),
            )

        if not patch:
            logger.debug(f"Pod {pod_ref} already tolerates node-health taints")
            return AdmissionResponse(uid=request.uid)

        logger.info(f"Defaulted node-health tolerations for pod {pod_ref}")
        return AdmissionResponse(
            uid=request.uid,
            patch=base64.b64encode(json.dumps(patch).encode()).decode(),
            patch_type="JSONPatch",
        )

    def review(self, document: dict) -> dict:
        """Answer an AdmissionReview document.

        Args:
            document: AdmissionReview carrying a request

        Returns:
            AdmissionReview carrying the response

        Raises:
            AdmissionError: If the document is not a valid AdmissionReview request
        """
        if not isinstance(document, dict) or document.get("kind") != "AdmissionReview":
            raise AdmissionError(
                "Document is not an AdmissionReview",
                "Expected an object with kind: AdmissionReview",
            )

        if document.get("request") is None:
            raise AdmissionError("AdmissionReview has no request")

        try:
            request = AdmissionRequest.model_validate(document["request"])
        except ValidationError as e:
            raise AdmissionError("Malformed admission request", str(e)) from e

        response = self.admit(request)
        return {
            "apiVersion": document.get("apiVersion", ADMISSION_API_VERSION),
            "kind": "AdmissionReview",
            "response": response.to_dict(),
        }

    def reconcile_v1_pod(self, pod: V1Pod) -> ReconcileResult:
        """Reconcile the tolerations of a kubernetes client pod without changing it.

        Raises:
            TolerationDecodeError: If a toleration on the pod is invalid
        """
        existing = (pod.spec.tolerations if pod.spec else None) or []
        try:
            current = [Toleration.from_kubernetes(t) for t in existing]
        except ValidationError as e:
            raise TolerationDecodeError(
                "Invalid tolerations in spec.tolerations", str(e), location=SPEC_LOCATION
            ) from e
        return self.reconciler.reconcile(current)

    def default_v1_pod(self, pod: V1Pod) -> bool:
        """Mutation hook for kubernetes client pods.

        Appends the defaulted tolerations to ``pod.spec.tolerations``; existing
        V1Toleration objects are kept as they are.

        Returns:
            True if the pod was changed
        """
        if pod is None or pod.spec is None:
            return False

        result = self.reconcile_v1_pod(pod)
        if result.changed:
            existing = list(pod.spec.tolerations or [])
            added = result.tolerations[len(existing):]
            pod.spec.tolerations = existing + [t.to_kubernetes() for t in added]
        return result.changed
