"""HTTP 传输句柄

基于 urllib.request 的阻塞式请求。不设整体传输超时，只设：

  - 连接超时（默认 30s）
  - 低速中止：吞吐持续低于 low_speed_limit 字节/秒达 low_speed_time 秒即中止

这样大包的慢速下载不会被误杀，而卡死的传输能被识别出来。
没有重试，单次失败即让整个命令失败。
"""

from __future__ import annotations

import logging
import socket
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import IO

from cratekit.core.exceptions import TransportError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 16 * 1024


@dataclass
class HttpResponse:
    status: int
    body: bytes
    headers: dict[str, str]


@dataclass
class HttpHandle:
    """一次命令内复用的请求参数"""

    connect_timeout: float = 30.0
    low_speed_limit: int = 10  # 字节/秒
    low_speed_time: float = 30.0
    proxy: str | None = None

    def _opener(self) -> urllib.request.OpenerDirector:
        if self.proxy:
            # 显式代理覆盖环境变量代理
            return urllib.request.build_opener(
                urllib.request.ProxyHandler({"http": self.proxy, "https": self.proxy}),
            )
        return urllib.request.build_opener()

    def request(
        self,
        method: str,
        url: str,
        *,
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        """发出请求并读完响应体

        非 2xx 状态不抛异常，以 HttpResponse 返回，由调用方解释错误体；
        连接失败、超时、低速中止统一抛 TransportError。
        """
        req = urllib.request.Request(url, data=body, method=method, headers=headers or {})
        logger.debug("%s %s", method, url)
        try:
            resp = self._opener().open(req, timeout=self.connect_timeout)  # nosec B310
        except urllib.error.HTTPError as e:
            with e:
                data = self.read_body(e)
                return HttpResponse(e.code, data, dict(e.headers or {}))
        except (urllib.error.URLError, socket.timeout, OSError) as e:
            reason = getattr(e, "reason", e)
            raise TransportError(f"failed to connect to {url}: {reason}") from e

        with resp:
            self._limit_stall(resp)
            data = self.read_body(resp)
            return HttpResponse(resp.status, data, dict(resp.headers))

    def get(self, url: str, *, headers: dict[str, str] | None = None) -> HttpResponse:
        return self.request("GET", url, headers=headers)

    def _limit_stall(self, resp: object) -> None:
        """连接建立后把套接字超时收紧到低速窗口，完全停滞的传输在一个窗口内中止"""
        raw = getattr(getattr(resp, "fp", None), "raw", None)
        sock = getattr(raw, "_sock", None)
        if sock is not None:
            sock.settimeout(self.low_speed_time)

    def read_body(self, stream: IO[bytes]) -> bytes:
        """分块读取响应体并执行低速检测

        有 read1 的流（HTTPResponse / BufferedReader）每次只取已到达的数据，
        低速检测因此在每个到达的分块后执行，而不是等满 _CHUNK_SIZE 字节。
        """
        read = getattr(stream, "read1", stream.read)
        chunks: list[bytes] = []
        window_start = time.monotonic()
        window_bytes = 0
        try:
            while True:
                chunk = read(_CHUNK_SIZE)
                if not chunk:
                    break
                chunks.append(chunk)
                window_bytes += len(chunk)
                elapsed = time.monotonic() - window_start
                if elapsed >= self.low_speed_time:
                    if window_bytes / elapsed < self.low_speed_limit:
                        raise self._too_slow()
                    window_start = time.monotonic()
                    window_bytes = 0
        except socket.timeout as e:
            raise self._too_slow() from e
        except OSError as e:
            raise TransportError(f"failed to read response: {e}") from e
        return b"".join(chunks)

    def _too_slow(self) -> TransportError:
        return TransportError(
            f"transfer too slow: less than {self.low_speed_limit} "
            f"bytes/sec over the last {self.low_speed_time:g} seconds"
        )
