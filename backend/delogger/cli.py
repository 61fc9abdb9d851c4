#!/usr/bin/env python
import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

from .core import config

COLUMNS = ["timestamp", "level", "message", "raw"]


def read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8", errors="replace")


def submit(log_text: str, url: str = config.API_URL, timeout: int = config.CLIENT_TIMEOUT_S) -> List[Dict[str, Any]]:
    r = requests.post(
        url,
        data=log_text.encode("utf-8"),
        headers={"Content-Type": "text/plain; charset=utf-8"},
        timeout=timeout,
    )
    r.raise_for_status()
    return r.json()


def entries_frame(entries: List[Dict[str, Any]]) -> pd.DataFrame:
    # raw-строки не содержат timestamp/level/message, structured не содержат raw
    return pd.DataFrame(entries).reindex(columns=COLUMNS)


def summarize(entries: List[Dict[str, Any]]) -> Dict[str, int]:
    raw = sum(1 for e in entries if "raw" in e)
    return {"lines": len(entries), "structured": len(entries) - raw, "raw": raw}


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="delogger-submit", description="Send a log file to the delogger API")
    ap.add_argument("path", nargs="?", default="-", help="файл с логом ('-' = stdin)")
    ap.add_argument("--url", default=config.API_URL)
    ap.add_argument("--timeout", type=int, default=config.CLIENT_TIMEOUT_S)
    ap.add_argument("--csv", default=None, help="сохранить таблицу в CSV")
    args = ap.parse_args(argv)

    try:
        entries = submit(read_input(args.path), url=args.url, timeout=args.timeout)
    except requests.RequestException as e:
        print(f"Request failed: {e}", file=sys.stderr)
        return 1

    df = entries_frame(entries)
    if not df.empty:
        print(df.fillna("").to_string(index=False))
    print("Summary:", summarize(entries))

    if args.csv:
        df.to_csv(args.csv, index=False)
        print("Saved:", args.csv)
    return 0


if __name__ == "__main__":
    sys.exit(main())
