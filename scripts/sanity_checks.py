import os
import sys

import httpx


def check(endpoint: str, headers: dict | None = None) -> bool:
    url = f"{BASE_URL}{endpoint}"
    try:
        res = httpx.get(url, headers=headers, timeout=10)
    except httpx.HTTPError:
        print(f"FAIL {endpoint}: request error")
        return False
    if res.status_code != 200:
        print(f"FAIL {endpoint}: HTTP {res.status_code}")
        return False
    print(f"OK   {endpoint}")
    return True


def login(email: str, password: str) -> dict | None:
    try:
        res = httpx.post(f"{BASE_URL}/auth/login", json={"email": email, "password": password}, timeout=10)
    except httpx.HTTPError:
        print("FAIL /auth/login: request error")
        return None
    if res.status_code != 200:
        print(f"FAIL /auth/login: HTTP {res.status_code}")
        return None
    print("OK   /auth/login")
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


BASE_URL = os.getenv("FACILITA_API_BASE_URL", "http://127.0.0.1:8000/api")
MASTER_EMAIL = os.getenv("MASTER_ADMIN_EMAIL", "admin@master.com")
MASTER_PASSWORD = os.getenv("MASTER_ADMIN_PASSWORD", "admin")

ok = check("/health")
headers = login(MASTER_EMAIL, MASTER_PASSWORD)
ok = headers is not None and ok
if headers:
    ok = check("/console/tenants", headers) and ok

sys.exit(0 if ok else 1)
