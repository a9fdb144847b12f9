"""文本工具：编辑距离与省略截断"""

from __future__ import annotations

ELLIPSIS = "…"


def lev_distance(a: str, b: str) -> int:
    """Levenshtein 编辑距离（插入 / 删除 / 替换各计 1）"""
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            cur.append(min(
                prev[j] + 1,
                cur[j - 1] + 1,
                prev[j - 1] + (ca != cb),
            ))
        prev = cur
    return prev[-1]


def truncate_with_ellipsis(s: str, max_length: int) -> str:
    """超过 max_length 时保留前 max_length 个字符并追加一个省略号"""
    if len(s) <= max_length:
        return s
    return s[:max_length] + ELLIPSIS
