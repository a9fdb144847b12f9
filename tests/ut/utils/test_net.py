"""索引 URL 解析与查询编码测试"""

import pytest

from cratekit.core.exceptions import ConfigError
from cratekit.utils.net import parse_index_url, percent_encode_query


class TestParseIndexUrl:
    def test_https_ok(self) -> None:
        assert parse_index_url("https://example.com/index") == "https://example.com/index"

    def test_trailing_slash_stripped(self) -> None:
        assert parse_index_url("https://example.com/index/") == "https://example.com/index"

    def test_file_ok(self) -> None:
        assert parse_index_url("file:///srv/index").startswith("file:///srv/index")

    @pytest.mark.parametrize("url", ["ftp://evil.com/x", "not a url", "/local/path"])
    def test_rejected(self, url: str) -> None:
        with pytest.raises(ConfigError, match="invalid url"):
            parse_index_url(url)

    def test_missing_host(self) -> None:
        with pytest.raises(ConfigError, match="missing host"):
            parse_index_url("https:///index")

    def test_context_in_error(self) -> None:
        with pytest.raises(ConfigError, match="registry index"):
            parse_index_url("ftp://x", context="registry index")


class TestPercentEncodeQuery:
    def test_space(self) -> None:
        assert percent_encode_query("serde json") == "serde%20json"

    def test_reserved_chars(self) -> None:
        assert percent_encode_query("a&b=c/d") == "a%26b%3Dc%2Fd"
