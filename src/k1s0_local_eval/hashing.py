"""パーセンテージ振り分けと ID リスト照合のハッシュ関数"""

from __future__ import annotations

import base64
import hashlib

# 振り分けの分解能（0.01% 単位）
_BUCKET_COUNT = 10_000


def compute_bucket(salt: str, rule_name: str, unit_id: str) -> float:
    """salt・ルール名・ユニット ID から [0, 100) の決定的なバケットを返す。

    sha256("<salt>.<rule_name>.<unit_id>") の先頭 8 バイトを
    ビッグエンディアンの符号なし整数として 10000 で剰余を取り、100 で割る。
    """
    digest = hashlib.sha256(f"{salt}.{rule_name}.{unit_id}".encode("utf-8")).digest()
    return (int.from_bytes(digest[:8], byteorder="big", signed=False) % _BUCKET_COUNT) / 100


def passes_percentage(pass_percentage: float, salt: str, rule_name: str, unit_id: str) -> bool:
    if pass_percentage >= 100:
        return True
    if pass_percentage <= 0:
        return False
    return compute_bucket(salt, rule_name, unit_id) < pass_percentage


def hash_unit_id(value: str) -> str:
    """ID リストに格納される形式（sha256 の base64 先頭 8 文字）に変換する。"""
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")[:8]
