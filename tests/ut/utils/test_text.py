"""编辑距离与省略截断测试"""

import pytest

from cratekit.utils.text import ELLIPSIS, lev_distance, truncate_with_ellipsis


class TestLevDistance:
    @pytest.mark.parametrize(("a", "b", "expected"), [
        ("", "", 0),
        ("abc", "", 3),
        ("", "abc", 3),
        ("kitten", "sitting", 3),
        ("server", "serv", 2),
        ("same", "same", 0),
    ])
    def test_distance(self, a: str, b: str, expected: int) -> None:
        assert lev_distance(a, b) == expected

    def test_symmetric(self) -> None:
        assert lev_distance("flaw", "lawn") == lev_distance("lawn", "flaw") == 2


class TestTruncateWithEllipsis:
    def test_long_text_truncated(self) -> None:
        s = "x" * 200
        out = truncate_with_ellipsis(s, 128)
        assert out == "x" * 128 + ELLIPSIS
        assert out.count(ELLIPSIS) == 1

    def test_short_text_unchanged(self) -> None:
        s = "y" * 50
        assert truncate_with_ellipsis(s, 128) == s

    def test_exact_length_unchanged(self) -> None:
        s = "z" * 128
        assert truncate_with_ellipsis(s, 128) == s
