# scripts/smoke.py
"""HTTP smoke checks against a running policy monitor (health + one cycle)."""
import json
import os
import sys
from pathlib import Path

import requests
from dotenv import load_dotenv

# Load .env if present
if Path(".env").exists():
    load_dotenv(".env", override=True)

BASE = os.getenv("SMOKE_BASE_URL", "http://127.0.0.1:8000").rstrip("/")
API_KEY = os.getenv("DASH_API_KEY")
RUN_CYCLE = os.getenv("SMOKE_RUN_CYCLE", "0") in ("1", "true", "True")


def _headers():
    return {"X-API-Key": API_KEY} if API_KEY else {}


def check_root() -> bool:
    try:
        r = requests.get(f"{BASE}/", timeout=5)
    except requests.RequestException as e:
        print(f"/ request failed: {e}")
        return False
    print(f"/ -> {r.status_code} {r.text[:120]}")
    return r.ok


def check_health() -> bool:
    try:
        r = requests.get(f"{BASE}/health", timeout=5)
    except requests.RequestException as e:
        print(f"/health request failed: {e}")
        return False
    print(f"/health -> {r.status_code}")
    body = r.json()
    print("  status:", body.get("status"))
    if body.get("missing"):
        print("  [WARN] missing credentials:", ", ".join(body["missing"]))
    return r.ok


def check_run_monitoring() -> bool:
    if not RUN_CYCLE:
        print("[INFO] SMOKE_RUN_CYCLE not set; skipping /run-monitoring (it mutates ads unless DRY_RUN=true).")
        return True
    try:
        r = requests.get(f"{BASE}/run-monitoring", headers=_headers(), timeout=300)
    except requests.RequestException as e:
        print(f"/run-monitoring request failed: {e}")
        return False
    print(f"/run-monitoring -> {r.status_code}")
    print("  response:", json.dumps(r.json())[:800])
    return r.status_code in (200, 202)


if __name__ == "__main__":
    print(f"[SMOKE] HTTP endpoint checks against {BASE} ...")
    results = [check_root(), check_health(), check_run_monitoring()]
    sys.exit(0 if all(results) else 1)
