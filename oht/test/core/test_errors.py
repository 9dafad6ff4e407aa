"""Tests for oht.core.errors module."""

from oht.core.errors import ErrorCode


class TestErrorCode:
    def test_values(self) -> None:
        assert int(ErrorCode.OK) == 0
        assert int(ErrorCode.USER_ERROR) == 1
        assert int(ErrorCode.ENV_ERROR) == 2
        assert int(ErrorCode.EXTERNAL_ERROR) == 3
        assert int(ErrorCode.IO_ERROR) == 5
        assert int(ErrorCode.INTERRUPTED) == 130

    def test_str_is_readable(self) -> None:
        assert str(ErrorCode.USER_ERROR) == "user error"

    def test_is_success(self) -> None:
        assert ErrorCode.OK.is_success
        assert not ErrorCode.USER_ERROR.is_success
