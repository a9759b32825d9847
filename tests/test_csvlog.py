import pytest

from sigharvest.csvlog import detect_columns, find_column, load_csv


def _write(tmp_path, text, name="log.csv"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_load_basic_columns(tmp_path):
    path = _write(tmp_path, "time,bus,id,data\n0.0,0,0x123,01 02\n0.5,1,291,AABB\n")
    messages = load_csv(str(path))
    assert [m.id for m in messages] == [0x123, 291]
    assert [m.bus for m in messages] == [0, 1]
    assert messages[0].data == bytes([0x01, 0x02])
    assert messages[1].data == bytes([0xAA, 0xBB])


def test_relative_time_is_preserved(tmp_path):
    path = _write(tmp_path, "time,bus,id,data\n0.0,0,1,00\n0.5,0,2,00\n1.5,0,3,00\n")
    first, second, third = load_csv(path)
    assert (second.timestamp - first.timestamp).total_seconds() == 0.5
    assert (third.timestamp - second.timestamp).total_seconds() == 1.0


def test_small_backward_step_keeps_timestamp(tmp_path):
    path = _write(tmp_path, "time,bus,id,data\n1.0,0,1,00\n0.95,0,2,00\n")
    first, second = load_csv(path)
    assert first.timestamp == second.timestamp


def test_session_reset_moves_forward_slightly(tmp_path):
    path = _write(tmp_path, "time,bus,id,data\n5.0,0,1,00\n0.0,0,2,00\n0.5,0,3,00\n")
    first, second, third = load_csv(path)
    step = (second.timestamp - first.timestamp).total_seconds()
    assert 0.0 <= step < 0.001
    assert (third.timestamp - second.timestamp).total_seconds() == pytest.approx(0.5)


def test_alternative_column_names(tmp_path):
    path = _write(tmp_path, "timestamp,channel,can_id,payload\n0.1,2,0x7FF,DEADBEEF\n")
    (msg,) = load_csv(path)
    assert msg.bus == 2
    assert msg.id == 0x7FF
    assert msg.data == bytes([0xDE, 0xAD, 0xBE, 0xEF])


def test_header_match_is_case_insensitive(tmp_path):
    path = _write(tmp_path, "Time,BUS,Id,Data\n0,0,16,FF\n")
    (msg,) = load_csv(path)
    assert msg.id == 16
    assert msg.data == b"\xff"


def test_unparsable_bus_and_time_default(tmp_path):
    path = _write(tmp_path, "time,bus,id,data\nabc,xyz,5,00\n")
    (msg,) = load_csv(path)
    assert msg.bus == 0
    assert msg.id == 5


def test_bad_can_id_raises(tmp_path):
    path = _write(tmp_path, "time,bus,id,data\n0,0,zz,00\n")
    with pytest.raises(ValueError, match="CAN ID"):
        load_csv(path)


def test_bad_hex_data_raises(tmp_path):
    path = _write(tmp_path, "time,bus,id,data\n0,0,1,ABC\n")
    with pytest.raises(ValueError, match="even length"):
        load_csv(path)


def test_missing_column_raises(tmp_path):
    path = _write(tmp_path, "time,id,data\n0,1,00\n")
    with pytest.raises(ValueError, match="Could not find column"):
        load_csv(path)


def test_ragged_row_raises(tmp_path):
    path = _write(tmp_path, "time,bus,id,data\n0,0,1,00,extra\n")
    with pytest.raises(ValueError, match="Failed to read CSV row"):
        load_csv(path)


def test_empty_file_raises(tmp_path):
    path = _write(tmp_path, "")
    with pytest.raises(ValueError, match="Could not find column"):
        load_csv(path)


def test_detect_columns_any_order():
    assert detect_columns(["data", "id", "bus", "time"]) == (3, 2, 1, 0)


def test_find_column_returns_first_match():
    assert find_column(["x", "ts", "time"], ["time", "ts"]) == 1


def test_find_column_error_lists_names():
    with pytest.raises(ValueError, match='"bus", "channel"'):
        find_column(["a"], ["bus", "channel"])