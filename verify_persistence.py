import time
import subprocess
import httpx
import sys
import os
import signal

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"

SERVER_CMD = [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"]

def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        except httpx.HTTPError as e:
            print(f"Connect error: {e}")
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False

def stop(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()

def run_verification():
    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = subprocess.Popen(
        SERVER_CMD,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env={**os.environ, "DB_ECHO": "True"} # Enable echo to see SQL
    )

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Create User and Trip
        print("\n--- [Step 2] Creating User and Trip (Persistence Test) ---")
        user_payload = {"full_name": "Persist Driver", "phone_number": "+15550009999"}
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/users", json=user_payload)

        if resp.status_code == 400 and "already registered" in resp.text:
            print("⚠️ User already exists (persistence working from previous run?)")
            users = httpx.get(f"{BASE_URL}{API_PREFIX}/users").json()
            user = next(u for u in users if u["phone_number"] == user_payload["phone_number"])
        elif resp.status_code == 201:
            user = resp.json()
            print("✅ User Created Successfully")
            print(user)
        else:
            print(f"❌ User Creation Failed: {resp.status_code} {resp.text}")
            raise Exception("User creation failed")

        trip_payload = {
            "driver_id": user["id"],
            "pickup": {"lat": 40.7128, "lng": -74.0060},
            "drop_off": {"lat": 40.7831, "lng": -73.9712},
            "departure_time": "2030-01-15T08:00:00Z",
            "seats_offered": 3,
        }
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/trips", json=trip_payload)
        if resp.status_code != 201:
            print(f"❌ Trip Creation Failed: {resp.status_code} {resp.text}")
            raise Exception("Trip creation failed")
        trip = resp.json()
        print(f"✅ Trip Created: {trip['id']}")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        stop(proc)

    time.sleep(2) # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = subprocess.Popen(SERVER_CMD, stdout=subprocess.PIPE, stderr=subprocess.PIPE)

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        # 4. Read back
        print("\n--- [Step 5] Reading Trip (Post-Restart) ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/trips/{trip['id']}")
        if resp.status_code == 200:
            print("✅ Trip Persisted!")
            print(resp.json())
        else:
            print(f"❌ Trip Lookup Failed (Persistence Issue?): {resp.status_code} {resp.text}")
            raise Exception("Trip missing after restart")

        print("\n--- [Step 6] Listing Driver Trips ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/trips/driver/{user['id']}")
        if resp.status_code == 200 and any(t["id"] == trip["id"] for t in resp.json()):
            print("✅ Driver trip listing includes the trip")
        else:
            print(f"❌ Driver trip listing failed: {resp.status_code}")

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop(proc2)

if __name__ == "__main__":
    run_verification()
