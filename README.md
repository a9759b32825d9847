# sigharvest

Tools for interpreting CAN bus traffic, written in plain Python with no
third-party dependencies:

- **DBC files**: parse, edit, validate and write message and signal
  definitions (`sigharvest.dbc`: `DbcFile`, `DbcMessage`, `DbcSignal`,
  `ByteOrder`, `ValueType`, `ValueDescription`).
- **Raw frames**: `sigharvest.message.CanMessage` holds a bus number, an ID,
  the payload bytes and a UTC timestamp. `parse_hex` turns text such as
  `"12 34 AB"` or `"0x1234AB"` into bytes.
- **Decoding**: pull signal values out of frames and write values back into
  payloads (`sigharvest.decoder`: `SignalDecoder`, `extract_bits`,
  `insert_bits`, `sign_extend`).
- **Signal values**: `sigharvest.signal` has `Signal`, `SignalValue`,
  `SignalPoint` and `SignalSeries` for decoded values and time series.
- **Log input**: load recorded traffic from CSV logs with flexible column
  names (`sigharvest.csvlog.load_csv`), or detect the format first
  (`sigharvest.loader.detect_format`, `sigharvest.loader.load_file`).
- **SLCAN protocol**: build Lawicel/SLCAN commands and parse received frame
  lines (`sigharvest.slcan`: `bitrate_command`, `open_command`,
  `close_command`, `tx_command`, `parse_frame`, `LineAssembler`).

## Installation

```
pip install sigharvest
```

## Decoding a frame with a DBC

```python
from sigharvest.dbc import DbcFile
from sigharvest.decoder import SignalDecoder
from sigharvest.message import CanMessage

dbc = DbcFile.load("vehicle.dbc")
decoder = SignalDecoder()
decoder.set_dbc(dbc)

frame = CanMessage(bus=0, id=0x123, data=bytes([100]))
for signal in decoder.decode_message(frame):
    print(signal.name, signal.physical_value, signal.unit)
```

`SignalDecoder.encode_signal(data, signal, value)` writes a physical value
into a `bytearray` in place and returns `False` if it cannot be written.

The DBC reader handles `VERSION`, `BO_`, `SG_` and `VAL_` lines and skips
everything else. `DbcMessage.validate()` returns a list of problems: a DLC
above 8, overlapping signals, and signals running past the end of the
message.

## Loading a CSV log

The CSV file needs a header row with a time column (`time`, `timestamp`,
`t`, `ts`), a bus column (`bus`, `channel`, `interface`), an ID column
(`id`, `addr`, `msg_id`, `can_id`, `message_id`) and a data column (`data`,
`payload`, `hex`, `bytes`); header names are matched case-insensitively.
IDs may be decimal or `0x`-prefixed hex, data is hex with optional spaces.
Times are relative seconds and are laid out starting from the current time.

```python
from sigharvest.loader import load_file

messages = load_file("drive.csv")
```

`load_file` raises `ValueError` for files it does not recognise. Files
starting with `bz` are detected as rlog logs, but reading them is not
supported and also raises `ValueError`.

## Working with SLCAN text

```python
from sigharvest.slcan import LineAssembler, parse_frame, tx_command
from sigharvest.message import CanMessage

lines = LineAssembler()
for line in lines.feed("t1232AABB\rT000001FF1"):
    print(parse_frame(line, bus_id=0))
print(lines.pending)  # "T000001FF1", waiting for its terminator

print(tx_command(CanMessage(bus=0, id=0x123, data=b"\x01\x02")))  # b"t12320102\r"
```

## What this package does not do

The package does not open serial ports or any other CAN hardware, and has
no background capture, live message buffering or bus management. The
`sigharvest.slcan` module only builds and parses the protocol's text; moving
those bytes to and from an adapter is left to the caller. There is no
command-line program and no graphical interface.

## Running the tests

```
pip install -e .[test]
pytest
```