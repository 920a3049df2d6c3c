"""Property-based tests for node-health toleration defaulting.

Feature: default-toleration-seconds, Properties 1-6: defaulting never
overrides explicit tolerations and converges after one pass.
"""

from hypothesis import given
from hypothesis import strategies as st

from toleration_defaulter.models.toleration import (
    INT64_MAX,
    INT64_MIN,
    TaintEffect,
    Toleration,
    TolerationOperator,
)
from toleration_defaulter.reconciler import (
    NODE_HEALTH_TAINTS,
    TAINT_NODE_NOT_READY,
    TAINT_NODE_UNREACHABLE,
    ToleranceReconciler,
    tolerates,
)

KNOWN_KEYS = ["", TAINT_NODE_NOT_READY, TAINT_NODE_UNREACHABLE, "dedicated", "example.com/gpu"]


# Custom strategies for generating valid test data
@st.composite
def toleration(draw):
    """Generate a valid toleration, biased towards the node-health keys."""
    key = draw(
        st.one_of(
            st.sampled_from(KNOWN_KEYS),
            st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-./", min_size=1, max_size=20),
        )
    )
    operator = draw(st.sampled_from([None, TolerationOperator.EXISTS, TolerationOperator.EQUAL]))

    value = "" if operator is TolerationOperator.EXISTS else draw(st.sampled_from(["", "true", "gpu"]))
    effect = draw(st.sampled_from([None, *TaintEffect]))
    seconds = draw(st.one_of(st.none(), st.integers(min_value=INT64_MIN, max_value=INT64_MAX)))

    return Toleration(
        key=key, operator=operator, value=value, effect=effect, toleration_seconds=seconds
    )


toleration_lists = st.lists(toleration(), max_size=8)
grace_periods = st.integers(min_value=1, max_value=INT64_MAX)


@given(current=toleration_lists, seconds=grace_periods)
def test_property_1_idempotence(current, seconds):
    """
    Feature: default-toleration-seconds, Property 1: Idempotence

    Reconciling the output of a reconciliation changes nothing.
    """
    reconciler = ToleranceReconciler(default_toleration_seconds=seconds)

    first = reconciler.reconcile(current)
    second = reconciler.reconcile(first.tolerations)

    assert second.changed is False
    assert second.tolerations == first.tolerations


@given(current=toleration_lists, seconds=grace_periods)
def test_property_2_non_destructive(current, seconds):
    """
    Feature: default-toleration-seconds, Property 2: Non-destructive

    The output starts with the input entries, in order and untouched.
    """
    snapshot = list(current)

    result = ToleranceReconciler(default_toleration_seconds=seconds).reconcile(current)

    assert current == snapshot
    assert len(result.tolerations) >= len(current)
    for before, after in zip(current, result.tolerations):
        assert after is before


@given(current=toleration_lists, seconds=grace_periods)
def test_property_3_output_tolerates_node_health_taints(current, seconds):
    """
    Feature: default-toleration-seconds, Property 3: Coverage

    Every reconciled list tolerates both node-health taints, and only the
    taints that were not tolerated before get a defaulted entry, in fixed order.
    """
    result = ToleranceReconciler(default_toleration_seconds=seconds).reconcile(current)

    for taint in NODE_HEALTH_TAINTS:
        assert any(tolerates(t, taint) for t in result.tolerations)

    missing = [
        taint for taint in NODE_HEALTH_TAINTS if not any(tolerates(t, taint) for t in current)
    ]
    added = result.tolerations[len(current):]
    assert [t.key for t in added] == [taint.key for taint in missing]
    assert result.changed == bool(missing)

    for t in added:
        assert t.operator is TolerationOperator.EXISTS
        assert t.effect is TaintEffect.NO_EXECUTE
        assert t.toleration_seconds == seconds


@given(
    before=toleration_lists,
    after=toleration_lists,
    wildcard_seconds=st.one_of(st.none(), st.integers(min_value=0, max_value=86400)),
    seconds=grace_periods,
)
def test_property_4_wildcard_absorption(before, after, wildcard_seconds, seconds):
    """
    Feature: default-toleration-seconds, Property 4: Wildcard absorption

    A toleration with empty key, empty effect and Exists covers both taints,
    wherever it appears in the list.
    """
    wildcard = Toleration(operator=TolerationOperator.EXISTS, toleration_seconds=wildcard_seconds)
    current = before + [wildcard] + after

    result = ToleranceReconciler(default_toleration_seconds=seconds).reconcile(current)

    assert result.changed is False
    assert result.tolerations == current


@given(
    explicit=st.one_of(st.none(), st.integers(min_value=0, max_value=INT64_MAX)),
    seconds=grace_periods,
)
def test_property_5_explicit_duration_preserved(explicit, seconds):
    """
    Feature: default-toleration-seconds, Property 5: Explicit duration preserved

    Explicit node-health tolerations keep their seconds whatever the default is.
    """
    current = [
        Toleration(
            key=taint.key,
            operator=TolerationOperator.EXISTS,
            effect=taint.effect,
            toleration_seconds=explicit,
        )
        for taint in NODE_HEALTH_TAINTS
    ]

    result = ToleranceReconciler(default_toleration_seconds=seconds).reconcile(current)

    assert result.changed is False
    assert [t.toleration_seconds for t in result.tolerations] == [explicit, explicit]


@given(seconds=grace_periods)
def test_property_6_full_defaulting(seconds):
    """
    Feature: default-toleration-seconds, Property 6: Full defaulting

    An empty list gets not-ready then unreachable, both bounded by the default.
    """
    result = ToleranceReconciler(default_toleration_seconds=seconds).reconcile([])

    assert result.changed is True
    assert result.tolerations == [
        Toleration(
            key=TAINT_NODE_NOT_READY,
            operator=TolerationOperator.EXISTS,
            effect=TaintEffect.NO_EXECUTE,
            toleration_seconds=seconds,
        ),
        Toleration(
            key=TAINT_NODE_UNREACHABLE,
            operator=TolerationOperator.EXISTS,
            effect=TaintEffect.NO_EXECUTE,
            toleration_seconds=seconds,
        ),
    ]


@given(current=toleration_lists)
def test_selective_defaulting_depends_only_on_coverage(current):
    """Two reconcilers with different defaults add the same keys."""
    short = ToleranceReconciler(default_toleration_seconds=30).reconcile(current)
    long = ToleranceReconciler(default_toleration_seconds=3000).reconcile(current)

    assert short.changed == long.changed
    assert [t.key for t in short.tolerations] == [t.key for t in long.tolerations]
