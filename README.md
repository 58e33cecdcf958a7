# dumpmask

`dumpmask` reads a SQL dump on standard input, masks e-mail addresses and
phone numbers in it, and writes the result to standard output. It works line
by line, so dumps of any size can be piped through it. It has no
dependencies beyond the Python standard library.

## Installation

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Usage

```
mysqldump mydb | dumpmask --mask-email light-hash --mask-phone light-mask > masked.sql
```

Options (each may also be written with a single dash, e.g. `-mask-email`):

| Option | Meaning |
| --- | --- |
| `--mask-email light-hash` | Mask e-mail addresses. |
| `--mask-phone light-mask` | Mask phone numbers. |
| `--no-cache` | Do not read or write the masking cache. |
| `--config PATH` | Read settings from the given JSON file. |

Any other algorithm name is rejected with `Error: unsupported ... algorithm`
and exit status 1. A configuration that cannot be used (invalid JSON, a bad
regular expression, an unreadable white or skip list) ends the run with
`Config error: ...` and exit status 1.

With neither masking option, lines pass through unchanged, except that:

* `INSERT INTO` lines for tables on the skip list are dropped;
* lines that are empty or hold only whitespace are dropped;
* a last line that does not end in a newline is not written.

## How values are masked

Each kind of value has a rule made of a **target** (which characters to
replace) and a **value** (what to put there).

Targets are 1-based positions:

* `2-5` – positions 2 to 5; `2-` – from 2 to the end; `-2` – from the start to 2.
* `2~1` – everything except the first 2 and the last 1 characters; `2~` and
  `~2` keep only the start or only the end.
* `1,3,5` – the listed positions; positions past the end are ignored.

For e-mail addresses the target may start with `username:` or `domain:` to
limit it to one side of the `@`; otherwise it applies to the whole address.

Values:

* `*` – each masked character becomes `*`.
* `hash:N` – the first N hex digits of the MD5 of the part being masked. For
  e-mail addresses, when the targeted positions form one continuous run, the
  whole run is replaced by these N characters, so the length may change.
* `hash` – hash characters are written over the masked positions one by one
  (hex digits of MD5 for e-mail, the decimal digits of SHA-256 for phones).

For phones only the digits are masked; brackets, spaces, dashes and a
leading `+` stay where they were.

With the default e-mail rule (`username:2-`, `hash:6`),
`test@example.com` becomes `t098f6b@example.com`. The default phone rule
masks digits 2, 3, 5, 6, 8 and 10 with `hash`.

Masking is deterministic: the same input always gives the same output, which
keeps joins and unique keys consistent across tables.

## Configuration

Without `--config`, the file `maskdump.conf` in the directory of the running
program is used if it exists; if no file can be read, the defaults apply.
The file is JSON. Every key is optional; missing or empty keys keep their
defaults.

```json
{
  "cache_path": "/var/tmp/dumpmask_cache.json",
  "email_regex": "\\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\\.[a-zA-Z]{2,6}\\b",
  "email_white_list": "emails.txt",
  "phone_white_list": "phones.txt",
  "memory_limit_mb": 4096,
  "cache_flush_count": 10000,
  "skip_insert_into_table_list": "skip_tables.txt",
  "masking": {
    "email": {"target": "username:2-", "value": "hash:6"},
    "phone": {"target": "2,3,5,6,8,10", "value": "hash"}
  },
  "processing_tables": {
    "users": {"email": ["email"], "phone": ["phone", "mobile"]}
  }
}
```

* **Regular expressions** – `email_regex` and `phone_regex` choose what is
  masked; they are compiled in ASCII mode.
* **White lists** – text files with one value per line; listed addresses and
  numbers are left as they are.
* **Skip list** – a text file with one table name per line; lines starting
  with ``INSERT INTO `name` `` for those tables are dropped from the output.
* **processing_tables** – when given, only the named columns of the named
  tables are masked, and nothing outside them. Column positions are learned
  from the `CREATE TABLE` statements earlier in the dump; an
  ``INSERT INTO `table` VALUES (...)`` line for a table whose structure has
  not been seen is left unchanged. Without this key, every match in every
  line is masked.
* **Cache** – masked values are remembered in a JSON file (by default
  `.maskdump_cache.json` in `$HOME`). It is read at the start and written at
  the end of a run. Every `cache_flush_count` lines, if the process uses more
  than `memory_limit_mb` megabytes, the cache is written out and cleared.
  A cache file that cannot be parsed gives a warning and an empty cache.

## Use as a library

```python
from dumpmask.config import MaskType
from dumpmask.masking import apply_masking, parse_target_positions

positions = parse_target_positions("2-", len("test"))
print(apply_masking("test", positions, "hash:6", MaskType.EMAIL))  # t098f6b
```

A whole stream can be processed with the same pieces the command uses:

```python
import io

from dumpmask.cli import LineProcessor, run
from dumpmask.config import MaskOptions, load_config
from dumpmask.masking import Masker

settings = load_config(None)
options = MaskOptions(email_algorithm="light-hash", cache_enabled=False)
processor = LineProcessor(options, settings, Masker(settings))
print(processor.process("INSERT INTO `t` VALUES ('test@example.com');\n"), end="")

out = io.StringIO()
run(options, io.StringIO("a test@example.com line\n"), out)
```

Main pieces:

* `dumpmask.config` – `load_config`, `validate_algorithms`, `Settings`,
  `Config`, `MaskOptions`, `MaskType`, `ConfigError`.
* `dumpmask.masking` – `parse_target_positions`, `apply_masking`,
  `replace_positions`, `Masker`, `Cache`, `load_cache`, `save_cache`.
* `dumpmask.tables` – `TableAnalyzer`, `parse_tuple`, `process_dump_line`.
* `dumpmask.cli` – `LineProcessor`, `parse_args`, `run`, `main`.

## What it does not do

`dumpmask` does not connect to a database and does not read or write dump
files by name: it only filters a stream. Per-column masking understands only
single-line ``INSERT INTO `table` VALUES ...`` statements with back-quoted
table names, as written by MySQL-style dumps.