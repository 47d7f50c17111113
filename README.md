# chronikdb

Indexes for a UTXO blockchain, kept in a small in-memory, ordered key-value
store with column families and merge operators.

## Modules

- `chronikdb.store`: `Db`, `WriteBatch` and the ordered-list merge operator.
  A `Db` holds named column families (`Db.add_column_family`), each an ordered
  map of bytes to bytes. `WriteBatch` collects `put`, `merge` and `delete`
  calls; `Db.write_batch` applies them all or, if any merge fails, none.
  `Db.iterate_from` walks keys forwards from the first key `>=` a start key,
  or backwards from the last key `<=` it. Merge operands are a one-byte flag
  (`I` to insert, `D` to delete) followed by a fixed-size item;
  `full_merge_ordered_list` and `ordered_list_merge_operator` keep the stored
  value a sorted, duplicate-free concatenation of items. A malformed operand
  raises `MergeError`.
- `chronikdb.script`: `Script`, with constructors `p2pk`, `p2pk_legacy`,
  `p2pkh`, `p2sh` and `p2tr`, plus `is_opreturn` and `parse_variant`, which
  returns a `ScriptVariant` tagged with a `ScriptKind`.
- `chronikdb.script_payload`: `PayloadPrefix`, `ScriptPayload` and
  `script_payloads`, which maps a script to the prefix-tagged payloads it is
  indexed under (none for OP_RETURN scripts; two partial payloads for a P2TR
  script carrying a state). `ScriptPayload.into_bytes` gives the stored form and
  `ScriptPayload.reconstruct_script` rebuilds the script where the payload is
  complete.
- `chronikdb.outpoint_data`: `encode_tx_num` / `decode_tx_num` (8 bytes,
  big-endian), `OutpointEntry`, and `OutpointData` with `to_bytes` / `from_bytes`.
- `chronikdb.index`: `Index`, a hash index that stores sorted lists of serials
  per hash bucket and resolves collisions by looking each candidate serial up
  in a lookup column family. Subclass `Indexable` to give `serial_size`,
  `hash` and `value_key` (and optionally `serial_sort_key`). A serial missing
  from the lookup column family raises `InconsistentDatabaseError`.
- `chronikdb.tx`: `OutPoint`, `TxInput`, `TxOutput`, `Tx` and `Coin`.
- `chronikdb.mempool_data`: `MempoolData`, which tracks mempool transactions,
  the transactions touching each script, per-script UTXO deltas (`UtxoDelta`)
  and spends. `delete_mempool_tx` takes a `MempoolDeleteMode` (`REMOVE` for
  eviction, `MINED` for inclusion in a block). Inconsistent updates raise
  subclasses of `MempoolDataError`.
- `chronikdb.script_txs` and `chronikdb.outputs`: paged per-script
  transaction lists, written with `ScriptTxsWriter` / `OutputsWriter` and read
  with `ScriptTxsReader` / `OutputsReader`. Page keys are the script payload
  followed by a 4-byte big-endian page number (`key_for_script_payload`).
  `ScriptTxsWriterCache` and `OutputsWriterCache` are LRU caches of per-script
  counts; a capacity of 0 disables them.

## Example

```python
from chronikdb.store import Db, WriteBatch
from chronikdb.script import Script
from chronikdb.script_payload import PayloadPrefix
from chronikdb.script_txs import (
    ScriptTxsConf, ScriptTxsReader, ScriptTxsWriter, ScriptTxsWriterCache,
)
from chronikdb.tx import Tx, TxOutput

db = Db()
ScriptTxsWriter.add_cfs(db)
conf = ScriptTxsConf(page_size=4)
writer = ScriptTxsWriter(db, conf)
reader = ScriptTxsReader(db, conf)
cache = ScriptTxsWriterCache(4)

script = Script.p2pkh(bytes([1] * 20))
coinbase = Tx(outputs=[TxOutput(value=0, script=script)])

batch = WriteBatch()
writer.insert_block_txs(batch, 0, [coinbase], lambda tx_pos, input_idx: None, cache)
db.write_batch(batch)

assert reader.num_pages_by_payload(PayloadPrefix.P2PKH, bytes([1] * 20)) == 1
assert reader.page_txs(0, PayloadPrefix.P2PKH, bytes([1] * 20)) == [0]
```

## What it does not do

- The store lives in memory only; nothing is written to disk.
- There is no index of blocks, block statistics, transactions by txid, UTXOs,
  spends or token data, and no component that ties the indexes together to
  connect or disconnect whole blocks.
- `MempoolData` handles one transaction at a time; there is no batch insert
  that orders transactions by dependency, and no token validation.
- There is no command-line program or server.

## Running the tests

```
pip install -e .[test]
pytest
```