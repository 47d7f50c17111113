import pytest

from chronikdb.outpoint_data import (
    OutpointData,
    OutpointEntry,
    decode_tx_num,
    encode_tx_num,
)


def test_encode_tx_num_is_big_endian():
    assert encode_tx_num(1) == b"\x00" * 7 + b"\x01"


@pytest.mark.parametrize("n", [0, 1, 255, 256, 2**40 + 7, 2**64 - 1])
def test_tx_num_roundtrip(n):
    assert decode_tx_num(encode_tx_num(n)) == n


def test_tx_num_byte_order_matches_numeric_order():
    numbers = [0, 1, 255, 256, 65535, 2**32, 2**63]
    encoded = [encode_tx_num(n) for n in numbers]
    assert sorted(encoded) == encoded


@pytest.mark.parametrize("n", [-1, 2**64])
def test_tx_num_out_of_range(n):
    with pytest.raises(ValueError):
        encode_tx_num(n)


def test_decode_tx_num_wrong_length():
    with pytest.raises(ValueError):
        decode_tx_num(b"\x00" * 7)


def test_outpoint_data_roundtrip():
    data = OutpointData(123456, 7)
    raw = data.to_bytes()
    assert len(raw) == OutpointData.SIZE
    assert OutpointData.from_bytes(raw) == data


def test_outpoint_data_ordering_matches_bytes():
    items = [OutpointData(2, 0), OutpointData(1, 5), OutpointData(1, 2), OutpointData(300, 1)]
    assert [i.to_bytes() for i in sorted(items)] == sorted(i.to_bytes() for i in items)
    assert sorted(items)[0] == OutpointData(1, 2)


def test_outpoint_data_bad_input():
    with pytest.raises(ValueError):
        OutpointData.from_bytes(b"\x00" * 11)
    with pytest.raises(ValueError):
        OutpointData(1, 2**32).to_bytes()


def test_outpoint_entry_ordering():
    assert OutpointEntry(1, 9) < OutpointEntry(2, 0)
    assert OutpointEntry(1, 1) < OutpointEntry(1, 2)