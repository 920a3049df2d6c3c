"""Default tolerations for the node-health taints.

A pod that does not tolerate the not-ready and unreachable taints gets an
``Exists`` toleration for each of them, bounded by a configured number of
seconds. Tolerations the pod already carries always win, including their
``tolerationSeconds``.
"""

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field

from toleration_defaulter.logging_config import get_logger
from toleration_defaulter.models.toleration import (
    INT64_MAX,
    Taint,
    TaintEffect,
    Toleration,
    TolerationOperator,
)

logger = get_logger(__name__)

TAINT_NODE_NOT_READY = "node.kubernetes.io/not-ready"
TAINT_NODE_UNREACHABLE = "node.kubernetes.io/unreachable"

DEFAULT_TOLERATION_SECONDS = 300

# Output order of defaulted tolerations follows this tuple
NODE_HEALTH_TAINTS: tuple[Taint, ...] = (
    Taint(key=TAINT_NODE_NOT_READY, effect=TaintEffect.NO_EXECUTE),
    Taint(key=TAINT_NODE_UNREACHABLE, effect=TaintEffect.NO_EXECUTE),
)


def tolerates(toleration: Toleration, taint: Taint) -> bool:
    """Check whether a toleration matches a taint.

    Empty key and absent effect on the toleration act as wildcards.

    Args:
        toleration: Toleration declared on the pod
        taint: Taint carried by a node

    Returns:
        True if the toleration tolerates the taint
    """
    if toleration.effect is not None and toleration.effect != taint.effect:
        return False

    if toleration.key and toleration.key != taint.key:
        return False

    if toleration.evaluated_operator is TolerationOperator.EXISTS:
        return True

    return toleration.value == taint.value


class ReconcileResult(BaseModel):
    """Outcome of a reconciliation."""

    model_config = ConfigDict(frozen=True)

    tolerations: list[Toleration]
    changed: bool


class ToleranceReconciler(BaseModel):
    """Adds bounded tolerations for the node-health taints a pod lacks."""

    model_config = ConfigDict(frozen=True)

    default_toleration_seconds: int = Field(default=DEFAULT_TOLERATION_SECONDS, gt=0, le=INT64_MAX)

    def reconcile(self, tolerations: Sequence[Toleration] | None) -> ReconcileResult:
        """Compute the tolerations a pod should be admitted with.

        The input is never modified. Existing entries keep their order and new
        entries are appended in ``NODE_HEALTH_TAINTS`` order.

        Args:
            tolerations: Tolerations currently declared on the pod, or None

        Returns:
            ReconcileResult with the updated list and whether anything was added
        """
        current = list(tolerations or [])
        updated = list(current)

        for taint in NODE_HEALTH_TAINTS:
            if any(tolerates(t, taint) for t in current):
                logger.debug(f"Taint {taint} already tolerated")
                continue

            logger.debug(
                f"Defaulting toleration for {taint} to {self.default_toleration_seconds}s"
            )
            updated.append(
                Toleration(
                    key=taint.key,
                    operator=TolerationOperator.EXISTS,
                    effect=taint.effect,
                    toleration_seconds=self.default_toleration_seconds,
                )
            )

        return ReconcileResult(tolerations=updated, changed=len(updated) > len(current))
