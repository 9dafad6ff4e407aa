"""Tests for oht.core.result module."""

import pytest

from oht.core.result import Err, Ok, Result, fold, is_err, is_ok


class TestOk:
    """Tests for Ok type."""

    def test_create_ok(self) -> None:
        result = Ok(42)
        assert result.value == 42

    def test_ok_is_ok(self) -> None:
        result = Ok(42)
        assert result.is_ok() is True
        assert result.is_err() is False

    def test_ok_unwrap(self) -> None:
        """Ok.unwrap() returns the value."""
        assert Ok(42).unwrap() == 42

    def test_ok_unwrap_or(self) -> None:
        """Ok.unwrap_or() returns the value, ignoring default."""
        assert Ok(42).unwrap_or(0) == 42

    def test_ok_map(self) -> None:
        assert Ok(21).map(lambda x: x * 2) == Ok(42)

    def test_ok_map_err(self) -> None:
        """Ok.map_err() returns self unchanged."""
        assert Ok(42).map_err(lambda e: f"error: {e}") == Ok(42)

    def test_ok_flat_map_to_ok(self) -> None:
        result: Result[int, str] = Ok(21)
        assert result.flat_map(lambda x: Ok(x * 2)) == Ok(42)

    def test_ok_flat_map_to_err(self) -> None:
        result: Result[int, str] = Ok(21)
        assert result.flat_map(lambda _: Err("failed")) == Err("failed")

    def test_ok_repr(self) -> None:
        assert repr(Ok("x")) == "Ok('x')"

    def test_ok_frozen(self) -> None:
        result = Ok(42)
        with pytest.raises(AttributeError):
            result.value = 1  # type: ignore[misc]


class TestErr:
    """Tests for Err type."""

    def test_err_is_err(self) -> None:
        result = Err("boom")
        assert result.is_err() is True
        assert result.is_ok() is False

    def test_err_unwrap_raises(self) -> None:
        with pytest.raises(ValueError, match="called unwrap on Err: boom"):
            Err("boom").unwrap()

    def test_err_unwrap_or(self) -> None:
        assert Err("boom").unwrap_or(7) == 7

    def test_err_map_is_noop(self) -> None:
        assert Err("boom").map(lambda x: x) == Err("boom")

    def test_err_map_err(self) -> None:
        assert Err("boom").map_err(lambda e: f"while testing: {e}") == Err("while testing: boom")

    def test_err_flat_map_is_noop(self) -> None:
        assert Err("boom").flat_map(lambda x: Ok(x)) == Err("boom")

    def test_err_repr(self) -> None:
        assert repr(Err("x")) == "Err('x')"


class TestTypeGuards:
    def test_is_ok(self) -> None:
        assert is_ok(Ok(1))
        assert not is_ok(Err(1))

    def test_is_err(self) -> None:
        assert is_err(Err(1))
        assert not is_err(Ok(1))


class TestFold:
    """Tests for fold()."""

    @staticmethod
    def _parse_int(s: str) -> Result[int, str]:
        if s.isdigit():
            return Ok(int(s))
        return Err(f"not a number: {s}")

    def test_fold_all_ok(self) -> None:
        result = fold(["1", "2", "3"], 0, lambda acc, s: self._parse_int(s).map(lambda n: acc + n))
        assert result == Ok(6)

    def test_fold_empty_returns_initial(self) -> None:
        result = fold([], "init", lambda acc, _: Ok(acc))
        assert result == Ok("init")

    def test_fold_stops_at_first_err(self) -> None:
        visited: list[str] = []

        def step(acc: int, s: str) -> Result[int, str]:
            visited.append(s)
            return self._parse_int(s).map(lambda n: acc + n)

        result = fold(["1", "x", "y", "3"], 0, step)

        assert result == Err("not a number: x")
        assert visited == ["1", "x"]
