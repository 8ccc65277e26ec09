"""Unique identifier generators: snowflake ids, UUID v4 strings, simple ids."""

from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass

SNOWFLAKE_EPOCH_MS = 1288834974657  # 2010-11-04 09:42:54 UTC

_TIMESTAMP_MASK = 0x1FFFFFFFFFF  # 41 bits
_MACHINE_MASK = 0x3FF  # 10 bits
_SEQUENCE_MASK = 0xFFF  # 12 bits

_lock = threading.Lock()
_snowflake_sequence = 0
_simple_counter = 0

# Fixed once per process, from the thread that loaded the module.
_MACHINE_ID = hash(threading.get_ident()) & _MACHINE_MASK
_SIMPLE_THREAD_ID = hash(threading.get_ident()) & 0xFFFF

_local = threading.local()


@dataclass(frozen=True)
class UniquenessInfo:
    """Describes how unique one kind of identifier is and where to use it."""

    type: str
    collision_probability: str
    recommended_use: str


def _random_generator() -> random.Random:
    gen = getattr(_local, "generator", None)
    if gen is None:
        gen = random.Random()
        _local.generator = gen
    return gen


def _next_snowflake_sequence() -> int:
    global _snowflake_sequence
    with _lock:
        value = _snowflake_sequence
        _snowflake_sequence = (_snowflake_sequence + 1) & 0xFFFFFFFF
    return value


def _next_simple_counter() -> int:
    global _simple_counter
    with _lock:
        value = _simple_counter
        _simple_counter = (_simple_counter + 1) & 0xFFFFFFFF
    return value


def generate_snowflake_id() -> int:
    """Return a 64-bit id: 41-bit timestamp, 10-bit machine id, 12-bit sequence."""
    now_ms = time.time_ns() // 1_000_000
    timestamp = (now_ms - SNOWFLAKE_EPOCH_MS) & _TIMESTAMP_MASK
    seq = _next_snowflake_sequence() & _SEQUENCE_MASK
    return (timestamp << 22) | (_MACHINE_ID << 12) | seq


def generate_uuid_v4() -> str:
    """Return a random RFC 4122 version 4 UUID in canonical text form."""
    gen = _random_generator()
    data1 = gen.getrandbits(64)
    data2 = gen.getrandbits(64)

    time_low = data1 & 0xFFFFFFFF
    time_mid = (data1 >> 32) & 0xFFFF
    time_hi_version = ((data1 >> 48) & 0x0FFF) | 0x4000
    clock_seq_hi = ((data2 >> 8) & 0x3F) | 0x80
    clock_seq_low = data2 & 0xFF
    node = (data2 >> 16) & 0xFFFFFFFFFFFF

    return (
        f"{time_low:08x}-{time_mid:04x}-{time_hi_version:04x}-"
        f"{clock_seq_hi:02x}{clock_seq_low:02x}-{node:012x}"
    )


def generate_simple_uid() -> int:
    """Return a 64-bit id: 32-bit microsecond time, 16-bit thread id, 16-bit counter."""
    now_us = time.time_ns() // 1_000
    cnt = _next_simple_counter() & 0xFFFF
    return ((now_us & 0xFFFFFFFF) << 32) | (_SIMPLE_THREAD_ID << 16) | cnt


def generate_session_id() -> str:
    """Return a readable session id built from a snowflake id."""
    return f"sess_{generate_snowflake_id():x}"


def uniqueness_info() -> list[UniquenessInfo]:
    """Describe the collision behaviour of each generator."""
    return [
        UniquenessInfo("UUID v4", "2^-122 (事实上永不碰撞)", "全局唯一标识符，最高安全级别"),
        UniquenessInfo("Snowflake ID", "同毫秒4096个才碰撞", "分布式系统，时间有序"),
        UniquenessInfo("Simple UID", "同微秒65536个才碰撞", "单机高性能场景"),
        UniquenessInfo("Session ID", "基于Snowflake", "会话管理，可读性好"),
    ]


def thread_id_str() -> str:
    """Return the current thread's identifier as text."""
    return str(threading.get_ident())