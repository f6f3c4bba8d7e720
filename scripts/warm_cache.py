#!/usr/bin/env python3
"""Warm the store: refresh exchanges, then the symbol lists of the given exchanges,
then quotes + fundamentals for a handful of tickers.

Pass "bulk" as the third argument to also bulk-fetch fundamentals for every
symbol of each exchange."""
import json
import sys

import requests

API = "http://localhost:8080/api/v1"


def refresh_exchanges() -> int:
    resp = requests.post(f"{API}/exchanges/refresh", timeout=120)
    resp.raise_for_status()
    return resp.json()["count"]


def refresh_symbols(code: str) -> None:
    resp = requests.post(f"{API}/exchanges/{code}/symbols/refresh", timeout=600)
    if resp.status_code != 204:
        body = resp.json()
        raise RuntimeError(f"{body.get('code')}: {body.get('error')}")


def bulk_fetch_fundamentals(code: str) -> dict:
    resp = requests.post(f"{API}/exchanges/{code}/symbols/bulk-fetch-fundamentals", timeout=None)
    resp.raise_for_status()
    return resp.json()


def warm_details(ticker: str) -> dict:
    resp = requests.get(f"{API}/stocks/{ticker}/details", params={"force_refresh": "true"}, timeout=120)
    resp.raise_for_status()
    details = resp.json()
    return {
        "ticker": ticker,
        "quote": details["quote"] is not None,
        "fundamentals": details["fundamentals"] is not None,
    }


def main():
    exchanges = sys.argv[1].split(",") if len(sys.argv) > 1 else ["US"]
    tickers = sys.argv[2].split(",") if len(sys.argv) > 2 else ["AAPL", "MSFT"]
    bulk = len(sys.argv) > 3 and sys.argv[3] == "bulk"

    print(f"Refreshed {refresh_exchanges()} exchanges")

    for code in exchanges:
        print(f"Symbols for {code}...", end=" ", flush=True)
        try:
            refresh_symbols(code)
            print("✓")
            if bulk:
                report = bulk_fetch_fundamentals(code)
                print(f"  fundamentals: {report['successful']}/{report['processed']} fetched, "
                      f"{report['skipped_no_data']} skipped (no data)")
        except Exception as e:
            print(f"✗ {e}")

    results = []
    for ticker in tickers:
        try:
            results.append(warm_details(ticker))
        except Exception as e:
            results.append({"ticker": ticker, "error": str(e)})
    print(json.dumps(results, indent=2))


if __name__ == "__main__":
    main()
