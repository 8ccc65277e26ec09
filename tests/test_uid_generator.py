import re
import threading
import time
import uuid

from echolab.uid_generator import (
    SNOWFLAKE_EPOCH_MS,
    generate_session_id,
    generate_simple_uid,
    generate_snowflake_id,
    generate_uuid_v4,
    thread_id_str,
    uniqueness_info,
)

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")


def test_uuid_v4_format_and_version():
    for _ in range(200):
        text = generate_uuid_v4()
        assert UUID_RE.match(text)
        parsed = uuid.UUID(text)
        assert parsed.version == 4
        assert parsed.variant == uuid.RFC_4122
        assert str(parsed) == text


def test_uuid_v4_unique():
    values = {generate_uuid_v4() for _ in range(2000)}
    assert len(values) == 2000


def test_snowflake_timestamp_matches_clock():
    before = (time.time_ns() // 1_000_000) - SNOWFLAKE_EPOCH_MS
    sid = generate_snowflake_id()
    after = (time.time_ns() // 1_000_000) - SNOWFLAKE_EPOCH_MS
    assert before <= sid >> 22 <= after
    assert sid < 1 << 63


def test_snowflake_sequence_and_machine_id():
    first = generate_snowflake_id()
    second = generate_snowflake_id()
    assert (second & 0xFFF) == ((first & 0xFFF) + 1) & 0xFFF
    assert (first >> 12) & 0x3FF == (second >> 12) & 0x3FF


def test_snowflake_ids_unique():
    ids = [generate_snowflake_id() for _ in range(1000)]
    assert len(set(ids)) == len(ids)


def test_simple_uid_layout():
    first = generate_simple_uid()
    second = generate_simple_uid()
    assert (second & 0xFFFF) == ((first & 0xFFFF) + 1) & 0xFFFF
    assert (first >> 16) & 0xFFFF == (second >> 16) & 0xFFFF
    now_us = (time.time_ns() // 1_000) & 0xFFFFFFFF
    assert (now_us - (second >> 32)) % (1 << 32) < 10_000_000


def test_session_id_wraps_snowflake():
    sid = generate_session_id()
    assert sid.startswith("sess_")
    value = int(sid[len("sess_"):], 16)
    assert format(value, "x") == sid[len("sess_"):]
    elapsed = (time.time_ns() // 1_000_000) - SNOWFLAKE_EPOCH_MS
    assert abs((value >> 22) - elapsed) < 10_000


def test_uniqueness_info_entries():
    info = uniqueness_info()
    assert [item.type for item in info] == ["UUID v4", "Snowflake ID", "Simple UID", "Session ID"]
    assert info[3].collision_probability == "基于Snowflake"


def test_thread_id_str_per_thread():
    assert thread_id_str() == str(threading.get_ident())
    seen = {}

    def record():
        seen["text"] = thread_id_str()
        seen["ident"] = threading.get_ident()

    worker = threading.Thread(target=record)
    worker.start()
    worker.join()
    assert seen["text"] == str(seen["ident"])