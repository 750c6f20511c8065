from __future__ import annotations

import pytest

from gridcore.models.result import ErrorKind, Result, ResultAccessError


class TestResult:
    def test_success_carries_value(self):
        r = Result.success(5)
        assert r.is_success and not r.is_failure
        assert r.value == 5
        assert r.value_or_default(0) == 5

    def test_failure_value_access_raises(self):
        r = Result.failure("boom", ErrorKind.OUT_OF_RANGE)
        assert r.is_failure
        assert r.kind is ErrorKind.OUT_OF_RANGE
        assert r.value_or_default("fallback") == "fallback"
        with pytest.raises(ResultAccessError):
            _ = r.value

    def test_map_and_bind_short_circuit_on_failure(self):
        r = Result.failure("nope", ErrorKind.NULL_INPUT)
        assert r.map(lambda v: v + 1) is r
        assert r.bind(lambda v: Result.success(v)) is r

    def test_map_converts_exception_to_fatal(self):
        r = Result.success(1).map(lambda v: v / 0)
        assert r.is_failure
        assert r.kind is ErrorKind.FATAL
        assert isinstance(r.cause, ZeroDivisionError)

    def test_bind_chains(self):
        r = Result.success(2).bind(lambda v: Result.success(v * 10))
        assert r.value == 20

    def test_taps_swallow_exceptions(self):
        seen = []

        def bad(_):
            raise RuntimeError("tap")

        ok = Result.success(1).on_success(seen.append).on_success(bad)
        assert ok.value == 1 and seen == [1]
        fail = Result.failure("x").on_failure(lambda r: seen.append(r.message)).on_failure(bad)
        assert fail.is_failure and seen == [1, "x"]

    def test_from_callable_wraps_unexpected_exception(self):
        def explode():
            raise ValueError("bad")

        r = Result.from_callable(explode, "loading")
        assert r.kind is ErrorKind.FATAL
        assert "loading: bad" == r.message
        assert Result.from_callable(lambda: 3).value == 3
