import pytest

from chronikdb.outpoint_data import encode_tx_num
from chronikdb.outputs import (
    CF_OUTPUTS,
    OutputsConf,
    OutputsReader,
    OutputsWriter,
    OutputsWriterCache,
)
from chronikdb.script import Script
from chronikdb.script_payload import PayloadPrefix
from chronikdb.script_txs import key_for_script_payload
from chronikdb.store import Db, WriteBatch
from chronikdb.tx import OutPoint, Tx, TxInput, TxOutput

P = PayloadPrefix

SCRIPT1, PAYLOAD1 = Script.p2pkh(bytes([1] * 20)), bytes([1] * 20)
SCRIPT2, PAYLOAD2 = Script.p2pkh(bytes([2] * 20)), bytes([2] * 20)
SCRIPT3, PAYLOAD3 = Script.p2sh(bytes([3] * 20)), bytes([3] * 20)
SCRIPT4, PAYLOAD4 = Script.p2sh(bytes([4] * 20)), bytes([4] * 20)
SCRIPT5, PAYLOAD5 = Script.p2pk(bytes([5] * 33)), bytes([5] * 33)
SCRIPT6, PAYLOAD6 = Script.p2tr(bytes([6] * 33), None), bytes([6] * 33)
SCRIPT7 = Script.p2tr(bytes([7] * 33), bytes([8] * 32))
PAYLOAD7, PAYLOAD8 = bytes([7] * 33), bytes([8] * 32)
SCRIPT9, PAYLOAD9 = Script.p2sh(bytes([9] * 20)), bytes([9] * 20)
SCRIPT10, PAYLOAD10 = Script.p2sh(bytes([10] * 20)), bytes([10] * 20)

TXS_BLOCKS = [
    [([], [SCRIPT1, SCRIPT2])],
    [
        ([], [SCRIPT1, SCRIPT2, SCRIPT1, SCRIPT1]),
        ([(0, 0)], [SCRIPT4, SCRIPT1]),
        ([(2, 1)], [SCRIPT5, SCRIPT1]),
        ([(3, 0)], [SCRIPT1, SCRIPT3, SCRIPT1, SCRIPT1]),
    ],
    [
        ([], [SCRIPT6, SCRIPT1]),
        ([(3, 1), (0, 1)], [SCRIPT7, SCRIPT1]),
    ],
    [
        ([], [SCRIPT10]),
        ([], [SCRIPT10]),
        ([], [SCRIPT10]),
        ([], [SCRIPT10]),
        ([], [SCRIPT10]),
        ([], [SCRIPT9]),
    ],
]


def _build_blocks():
    all_outputs = [scripts for block in TXS_BLOCKS for _, scripts in block]
    blocks = []
    num_txs = 0
    for block in TXS_BLOCKS:
        first_tx_num = num_txs
        txs = []
        spent_scripts = []
        for inputs, output_scripts in block:
            num_txs += 1
            txs.append(
                Tx(
                    version=1,
                    inputs=[
                        TxInput(OutPoint(bytes([tx_num] * 32), out_idx))
                        for tx_num, out_idx in inputs
                    ],
                    outputs=[TxOutput(0, script) for script in output_scripts],
                )
            )
            spent_scripts.append(
                [all_outputs[tx_num][out_idx] for tx_num, out_idx in inputs]
            )
        blocks.append((first_tx_num, txs, spent_scripts[1:]))
    return blocks


BLOCKS = _build_blocks()


def _make_db(page_size=4):
    db = Db()
    OutputsWriter.add_cfs(db)
    conf = OutputsConf(page_size)
    return db, OutputsWriter(db, conf), OutputsReader(db, conf)


def _connect(writer, db, height, cache):
    first_tx_num, txs, spent = BLOCKS[height]
    batch = WriteBatch()
    writer.insert_block_txs(batch, first_tx_num, txs, lambda p, i: spent[p][i], cache)
    db.write_batch(batch)


def _disconnect(writer, db, height, cache):
    first_tx_num, txs, spent = BLOCKS[height]
    batch = WriteBatch()
    writer.delete_block_txs(batch, first_tx_num, txs, lambda p, i: spent[p][i], cache)
    db.write_batch(batch)


def _check_pages(reader, prefix, payload, expected):
    assert reader.num_pages_by_payload(prefix, payload) == len(expected)
    for page_num, tx_nums in enumerate(expected):
        assert reader.page_txs(page_num, prefix, payload) == tx_nums
        key = key_for_script_payload(bytes([int(prefix)]) + payload, page_num)
        raw = reader.db.get(CF_OUTPUTS, key)
        assert raw == b"".join(encode_tx_num(n) for n in tx_nums)


def test_scripts():
    db, writer, r = _make_db()
    cache = OutputsWriterCache(4)
    assert r.page_size() == 4

    _check_pages(r, P.P2PKH, PAYLOAD1, [])

    _connect(writer, db, 0, cache)
    _check_pages(r, P.P2PKH, PAYLOAD1, [[0]])
    _check_pages(r, P.P2PKH, PAYLOAD2, [[0]])
    _check_pages(r, P.P2PK, PAYLOAD2, [])

    _disconnect(writer, db, 0, cache)
    _check_pages(r, P.P2PKH, PAYLOAD1, [])
    _check_pages(r, P.P2PKH, PAYLOAD2, [])

    _connect(writer, db, 0, cache)
    _connect(writer, db, 1, cache)
    _check_pages(r, P.P2PKH, PAYLOAD1, [[0, 1, 2, 3], [4]])
    _check_pages(r, P.P2PKH, PAYLOAD2, [[0, 1]])
    _check_pages(r, P.P2SH, PAYLOAD3, [[4]])
    _check_pages(r, P.P2SH, PAYLOAD4, [[2]])
    _check_pages(r, P.P2PK, PAYLOAD5, [[3, 4]])

    _connect(writer, db, 2, cache)
    _check_pages(r, P.P2PKH, PAYLOAD1, [[0, 1, 2, 3], [4, 5, 6]])
    _check_pages(r, P.P2PKH, PAYLOAD2, [[0, 1, 6]])
    _check_pages(r, P.P2SH, PAYLOAD3, [[4]])
    _check_pages(r, P.P2SH, PAYLOAD4, [[2]])
    _check_pages(r, P.P2PK, PAYLOAD5, [[3, 4]])
    _check_pages(r, P.P2TR_COMMITMENT, PAYLOAD6, [[5]])
    _check_pages(r, P.P2TR_COMMITMENT, PAYLOAD7, [[6]])
    _check_pages(r, P.P2TR_STATE, PAYLOAD8, [[6]])

    _disconnect(writer, db, 2, cache)
    _check_pages(r, P.P2PKH, PAYLOAD1, [[0, 1, 2, 3], [4]])
    _check_pages(r, P.P2PKH, PAYLOAD2, [[0, 1]])
    _check_pages(r, P.P2SH, PAYLOAD3, [[4]])
    _check_pages(r, P.P2SH, PAYLOAD4, [[2]])
    _check_pages(r, P.P2PK, PAYLOAD5, [[3, 4]])
    _check_pages(r, P.P2TR_COMMITMENT, PAYLOAD6, [])
    _check_pages(r, P.P2TR_COMMITMENT, PAYLOAD7, [])
    _check_pages(r, P.P2TR_STATE, PAYLOAD8, [])

    _disconnect(writer, db, 1, cache)
    _check_pages(r, P.P2PKH, PAYLOAD1, [[0]])
    _check_pages(r, P.P2PKH, PAYLOAD2, [[0]])
    _check_pages(r, P.P2SH, PAYLOAD3, [])
    _check_pages(r, P.P2SH, PAYLOAD4, [])
    _check_pages(r, P.P2PK, PAYLOAD5, [])

    _disconnect(writer, db, 0, cache)
    _check_pages(r, P.P2PKH, PAYLOAD1, [])
    _check_pages(r, P.P2PKH, PAYLOAD2, [])
    _check_pages(r, P.P2SH, PAYLOAD3, [])
    _check_pages(r, P.P2SH, PAYLOAD4, [])
    _check_pages(r, P.P2PK, PAYLOAD5, [])

    # Disabled cache
    for height in range(4):
        _connect(writer, db, height, OutputsWriterCache(0))
    _check_pages(r, P.P2SH, PAYLOAD9, [[12]])
    _check_pages(r, P.P2SH, PAYLOAD10, [[7, 8, 9, 10], [11]])


def test_cache_holds_at_most_capacity_entries():
    db, writer, _ = _make_db()
    cache = OutputsWriterCache(2)
    _connect(writer, db, 1, cache)
    assert len(cache) == 2


def test_disabled_cache_stays_empty():
    db, writer, reader = _make_db()
    cache = OutputsWriterCache(0)
    _connect(writer, db, 0, cache)
    assert len(cache) == 0
    assert reader.page_txs(0, P.P2PKH, PAYLOAD1) == [0]


def test_page_txs_of_unknown_payload_is_empty():
    _, _, reader = _make_db()
    assert reader.page_txs(0, P.P2SH, PAYLOAD3) == []
    assert reader.num_pages_by_payload(P.P2SH, PAYLOAD3) == 0


def test_delete_more_than_indexed_raises():
    db, writer, _ = _make_db()
    with pytest.raises(ValueError):
        _disconnect(writer, db, 0, OutputsWriterCache(0))


def test_missing_column_family_raises():
    with pytest.raises(KeyError):
        OutputsReader(Db(), OutputsConf(4))


def test_invalid_page_size_raises():
    with pytest.raises(ValueError):
        OutputsConf(0)


def test_negative_cache_capacity_raises():
    with pytest.raises(ValueError):
        OutputsWriterCache(-1)


def test_page_size_one_puts_each_tx_on_its_own_page():
    db, writer, reader = _make_db(page_size=1)
    _connect(writer, db, 0, OutputsWriterCache(4))
    _connect(writer, db, 1, OutputsWriterCache(4))
    assert reader.num_pages_by_payload(P.P2PKH, PAYLOAD2) == 2
    assert reader.page_txs(0, P.P2PKH, PAYLOAD2) == [0]
    assert reader.page_txs(1, P.P2PKH, PAYLOAD2) == [1]