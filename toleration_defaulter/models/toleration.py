"""Data models for node taints and pod tolerations."""

from enum import Enum

from kubernetes.client import V1Toleration
from pydantic import BaseModel, ConfigDict, Field, field_validator

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class TaintEffect(str, Enum):
    """Effect a taint has on pods that do not tolerate it."""

    NO_SCHEDULE = "NoSchedule"
    PREFER_NO_SCHEDULE = "PreferNoSchedule"
    NO_EXECUTE = "NoExecute"


class TolerationOperator(str, Enum):
    """How a toleration compares itself against a taint."""

    EXISTS = "Exists"
    EQUAL = "Equal"


class Taint(BaseModel):
    """Kubernetes node taint."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str = ""
    effect: TaintEffect

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Validate the taint key is not empty."""
        if not v:
            raise ValueError("taint key cannot be empty")
        return v

    def __str__(self) -> str:
        """String representation in key[=value]:effect form."""
        if self.value:
            return f"{self.key}={self.value}:{self.effect.value}"
        return f"{self.key}:{self.effect.value}"


class Toleration(BaseModel):
    """Pod toleration.

    An empty ``key`` matches every taint key and an absent ``effect`` matches
    every effect. An empty key with ``Equal`` only matches taints whose value
    equals ``value``; the key/operator combination is left to API validation.
    An absent ``operator`` is kept as ``None`` so that re-encoding
    never rewrites what the pod author wrote; it is evaluated as ``Equal``.
    ``toleration_seconds`` of ``None`` means the taint is tolerated forever.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str = ""
    operator: TolerationOperator | None = None
    value: str = ""
    effect: TaintEffect | None = None
    toleration_seconds: int | None = Field(
        default=None, alias="tolerationSeconds", ge=INT64_MIN, le=INT64_MAX
    )

    @field_validator("key", "value", mode="before")
    @classmethod
    def absent_string_is_empty(cls, v):
        """Read a missing key or value as the empty string."""
        return "" if v is None else v

    @field_validator("operator", "effect", mode="before")
    @classmethod
    def empty_enum_is_absent(cls, v):
        """Read an empty operator or effect as absent."""
        return None if v == "" else v

    @property
    def evaluated_operator(self) -> TolerationOperator:
        """Operator used for matching, with the orchestrator's Equal default."""
        return self.operator or TolerationOperator.EQUAL

    def to_dict(self) -> dict:
        """Convert to the orchestrator's JSON form, omitting empty fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_defaults=True)

    @classmethod
    def from_kubernetes(cls, toleration: V1Toleration) -> "Toleration":
        """Build from a kubernetes client V1Toleration."""
        return cls(
            key=toleration.key,
            operator=toleration.operator,
            value=toleration.value,
            effect=toleration.effect,
            toleration_seconds=toleration.toleration_seconds,
        )

    def to_kubernetes(self) -> V1Toleration:
        """Convert to a kubernetes client V1Toleration."""
        return V1Toleration(
            key=self.key or None,
            operator=self.operator.value if self.operator else None,
            value=self.value or None,
            effect=self.effect.value if self.effect else None,
            toleration_seconds=self.toleration_seconds,
        )

    def __str__(self) -> str:
        """Human readable form used in CLI output."""
        key = self.key or "*"
        effect = self.effect.value if self.effect else "*"
        match = self.evaluated_operator.value
        if self.evaluated_operator is TolerationOperator.EQUAL:
            match = f"{match} {self.value!r}"
        duration = (
            "forever" if self.toleration_seconds is None else f"{self.toleration_seconds}s"
        )
        return f"{key}:{effect} ({match}, {duration})"
