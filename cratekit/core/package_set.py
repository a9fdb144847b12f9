"""包集合：按需从来源解析包，每个包最多下载一次

PackageSet 在构造时固定一组 PackageId，每个 id 对应一个 MemoSlot。
get(id) 首次调用时经共享的 SourceMap 找到对应来源并 download，
结果写入槽位，后续调用直接返回，不再访问来源。

槽位状态机:

    EMPTY --claim--> PENDING --fill--> FILLED
                        |
                        +--abandon--> EMPTY   (下载失败)

  - 对 FILLED 槽位再次 fill 属于程序缺陷，直接抛 RuntimeError
  - 其他线程看到 PENDING 时等待在途结果
  - 同一线程在下载过程中再次解析同一 id（递归解析）直接拒绝
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Generic, TypeVar

from cratekit.core.exceptions import CrateKitError, NotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cratekit.core.models import Package, PackageId, SourceId
    from cratekit.core.protocols import Source

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SlotState(Enum):
    EMPTY = "empty"
    PENDING = "pending"
    FILLED = "filled"


class MemoSlot(Generic[T]):
    """只能填充一次的备忘槽"""

    def __init__(self) -> None:
        self._state = SlotState.EMPTY
        self._value: T | None = None
        self._owner: int | None = None
        self._done = threading.Event()
        self._guard = threading.Lock()

    @property
    def state(self) -> SlotState:
        return self._state

    @property
    def value(self) -> T:
        if self._state is not SlotState.FILLED:
            raise RuntimeError(f"memo slot is {self._state.value}, not filled")
        return self._value  # type: ignore[return-value]

    def claim(self) -> threading.Event | None:
        """尝试 EMPTY -> PENDING

        返回 None 表示当前线程已取得填充权（或槽位已 FILLED）；
        返回 Event 表示其他线程正在填充，调用方应等待后重试。
        """
        me = threading.get_ident()
        with self._guard:
            if self._state is SlotState.FILLED:
                return None
            if self._state is SlotState.PENDING:
                if self._owner == me:
                    raise CrateKitError(
                        "re-entrant resolution: the package is already being "
                        "downloaded further up this call stack"
                    )
                return self._done
            self._state = SlotState.PENDING
            self._owner = me
            return None

    def fill(self, value: T) -> None:
        with self._guard:
            if self._state is SlotState.FILLED:
                raise RuntimeError("memo slot filled twice")
            self._value = value
            self._state = SlotState.FILLED
            self._owner = None
            self._done.set()

    def abandon(self) -> None:
        """PENDING -> EMPTY，唤醒等待者让其重新争取填充权"""
        with self._guard:
            if self._state is not SlotState.PENDING:
                return
            self._state = SlotState.EMPTY
            self._owner = None
            done, self._done = self._done, threading.Event()
        done.set()


class SourceMap:
    """SourceId -> Source 的有序映射"""

    def __init__(self, sources: Iterable[Source] = ()) -> None:
        self._map: dict[SourceId, Source] = {}
        for source in sources:
            self.insert(source)

    def insert(self, source: Source) -> None:
        self._map[source.source_id] = source

    def get(self, source_id: SourceId) -> Source | None:
        return self._map.get(source_id)

    def view(self) -> Mapping[SourceId, Source]:
        return MappingProxyType(self._map)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._map

    def __len__(self) -> int:
        return len(self._map)

    def __iter__(self) -> Iterator[Source]:
        return iter(list(self._map.values()))


class PackageSet:
    """一组已知 PackageId 及其按需解析的 Package"""

    def __init__(self, package_ids: Iterable[PackageId], sources: SourceMap) -> None:
        self._slots: dict[PackageId, MemoSlot[Package]] = {}
        for pid in package_ids:
            if pid in self._slots:
                raise ValueError(f"duplicate package id `{pid}` in package set")
            self._slots[pid] = MemoSlot()
        self._sources = sources
        # 同一时刻只允许一次查找访问 SourceMap；RLock 允许下载过程中解析其他 id
        self._sources_lock = threading.RLock()

    def package_ids(self) -> Iterator[PackageId]:
        """每次调用返回一个新的迭代器，不消耗集合本身"""
        return iter(tuple(self._slots))

    def sources(self) -> Mapping[SourceId, Source]:
        return self._sources.view()

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, package_id: object) -> bool:
        return package_id in self._slots

    def get(self, package_id: PackageId) -> Package:
        slot = self._slots.get(package_id)
        if slot is None:
            raise NotFoundError(f"couldn't find `{package_id}` in package set")

        while True:
            waiter = slot.claim()
            if waiter is None:
                break
            waiter.wait()

        if slot.state is SlotState.FILLED:
            return slot.value

        try:
            pkg = self._download(package_id)
        except BaseException:
            slot.abandon()
            raise
        slot.fill(pkg)
        return pkg

    def _download(self, package_id: PackageId) -> Package:
        with self._sources_lock:
            source = self._sources.get(package_id.source_id)
            if source is None:
                raise NotFoundError(f"couldn't find source for `{package_id}`")
            logger.debug("下载 %s", package_id)
            try:
                return source.download(package_id)
            except Exception as e:
                raise CrateKitError(f"unable to get packages from source: {e}") from e
