"""Property-based tests using Hypothesis.

These check properties that must hold for any input:
- cell identifier grammar acceptance/rejection
- set-then-get returns exactly what set reported
- failed sets never change the store
- parsing never raises anything but CommandParseError
- every stored value renders in both reply formats
"""

from __future__ import annotations

import math
import re

import orjson
from hypothesis import given, settings
from hypothesis import strategies as st

from rsheet.contracts.common import CommandParseError
from rsheet.engine.dispatcher import Dispatcher, render_reply
from rsheet.engine.evaluator import INT_MAX, INT_MIN
from rsheet.engine.parser import is_cell_name, parse_command

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

cell_names = st.from_regex(r"[A-Z]{1,3}[1-9][0-9]{0,4}", fullmatch=True)

ints = st.integers(min_value=-1_000_000, max_value=1_000_000)

safe_text = st.text(
    alphabet=st.characters(whitelist_categories=("L", "N", "Zs"), min_codepoint=32, max_codepoint=126),
    max_size=20,
)

literal_values = st.one_of(
    ints,
    st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False),
    safe_text,
    st.booleans(),
)


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------


@given(cell_names)
def test_generated_cell_names_are_valid(name):
    assert is_cell_name(name)


@given(cell_names)
def test_lowercase_is_rejected(name):
    assert not is_cell_name(name.lower())


@given(st.from_regex(r"[A-Z]{1,3}0[0-9]{0,3}", fullmatch=True))
def test_leading_zero_is_rejected(name):
    assert not is_cell_name(name)


@given(cell_names, st.from_regex(r"[A-Z]{1,2}", fullmatch=True))
def test_letter_after_digit_is_rejected(name, suffix):
    assert not is_cell_name(name + suffix)


@given(st.text(max_size=40))
def test_parse_only_raises_parse_errors(line):
    try:
        parse_command(line)
    except CommandParseError as e:
        assert str(e) in ("invalid command format", "invalid cell name")


# ---------------------------------------------------------------------------
# Store semantics through the dispatcher
# ---------------------------------------------------------------------------


@settings(max_examples=50)
@given(cell_names, literal_values)
def test_set_then_get_roundtrip(name, value):
    d = Dispatcher()
    set_reply = d.handle(f"set {name} {value!r}")
    assert set_reply.ok, set_reply.errors
    get_reply = d.handle(f"get {name}")
    assert get_reply.value == set_reply.value == value
    assert get_reply.kind == set_reply.kind


@given(cell_names)
def test_unset_cells_have_no_value(name):
    reply = Dispatcher().handle(f"get {name}")
    assert reply.ok
    assert reply.value is None
    assert reply.kind == "none"


@settings(max_examples=50)
@given(cell_names, cell_names, ints)
def test_reference_to_unset_cell_leaves_store_unchanged(target, missing, initial):
    if target == missing:
        return
    d = Dispatcher()
    d.handle(f"set {target} {initial}")
    reply = d.handle(f"set {target} {missing} + 1")
    assert not reply.ok
    assert re.match(r"^Expression error: Variable not found: ", reply.errors[0].message)
    assert d.handle(f"get {target}").value == initial


@settings(max_examples=50)
@given(cell_names, ints)
def test_repeated_set_is_idempotent(name, value):
    d = Dispatcher()
    first = d.handle(f"set {name} {value}")
    second = d.handle(f"set {name} {value}")
    assert first.value == second.value == d.handle(f"get {name}").value


@settings(max_examples=50)
@given(ints, ints)
def test_reference_arithmetic(a, b):
    d = Dispatcher()
    d.handle(f"set A1 {a}")
    d.handle(f"set B1 {b}")
    assert d.handle("set C1 A1 + B1").value == a + b


# ---------------------------------------------------------------------------
# Full-width values and rendering
# ---------------------------------------------------------------------------

# The most negative int has no literal form: its magnitude is out of range.
wide_ints = st.integers(min_value=INT_MIN + 1, max_value=INT_MAX)
wide_floats = st.floats(allow_nan=False, allow_infinity=False)
operators = st.sampled_from(["+", "-", "*", "//", "%", "**"])


def _assert_renders(reply):
    decoded = orjson.loads(render_reply(reply, "json"))
    assert decoded["value"] == reply.value
    assert decoded["kind"] == reply.kind
    text = render_reply(reply, "text")
    if reply.ok and isinstance(reply.value, float):
        assert float(text.split(" = ", 1)[1]) == reply.value


@settings(max_examples=100)
@given(cell_names, st.one_of(wide_ints, wide_floats))
def test_wide_values_roundtrip_through_both_formats(name, value):
    d = Dispatcher()
    set_reply = d.handle(f"set {name} {value!r}")
    assert set_reply.ok, set_reply.errors
    get_reply = d.handle(f"get {name}")
    assert get_reply.value == value
    _assert_renders(set_reply)
    _assert_renders(get_reply)


@settings(max_examples=200)
@given(wide_ints, operators, wide_ints)
def test_int_arithmetic_stays_in_range_or_fails(a, op, b):
    d = Dispatcher()
    reply = d.handle(f"set A1 ({a}) {op} ({b})")
    _assert_renders(reply)
    if reply.ok:
        if isinstance(reply.value, int):
            assert INT_MIN <= reply.value <= INT_MAX
        else:
            assert math.isfinite(reply.value)
        assert d.store.get("A1") == reply.value
    else:
        assert d.store.get("A1") is None


@settings(max_examples=200)
@given(wide_floats, st.sampled_from(["+", "-", "*", "/", "**"]), wide_floats)
def test_float_arithmetic_never_stores_non_finite(a, op, b):
    d = Dispatcher()
    reply = d.handle(f"set A1 ({a!r}) {op} ({b!r})")
    _assert_renders(reply)
    if reply.ok and isinstance(reply.value, float):
        assert math.isfinite(reply.value)
    if not reply.ok:
        assert d.store.get("A1") is None


@settings(max_examples=50)
@given(cell_names, st.integers(min_value=INT_MAX + 1, max_value=2**200))
def test_out_of_range_int_is_rejected_and_not_stored(name, value):
    d = Dispatcher()
    reply = d.handle(f"set {name} {value}")
    assert not reply.ok
    assert reply.errors[0].message == "Expression error: Arithmetic overflow"
    assert d.store.get(name) is None
