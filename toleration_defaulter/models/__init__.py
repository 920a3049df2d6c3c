"""Data models for taints and tolerations."""

from toleration_defaulter.models.toleration import (
    Taint,
    TaintEffect,
    Toleration,
    TolerationOperator,
)

__all__ = [
    "Taint",
    "TaintEffect",
    "Toleration",
    "TolerationOperator",
]
