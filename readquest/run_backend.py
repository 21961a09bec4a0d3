#!/usr/bin/env python
"""
Persistent runner for the ReadQuest streak service.
Keeps uvicorn running even if it crashes.
"""
import subprocess
import time
import sys
import os

PORT = os.getenv("PORT", "8000")

while True:
    print(f"\n[INFO] Starting streak service on port {PORT}...")
    try:
        subprocess.run([sys.executable, "-m", "uvicorn", "readquest.main:app", "--port", PORT], check=False)
    except KeyboardInterrupt:
        print("\n[INFO] Shutting down streak service...")
        break

    print("[INFO] Service stopped, will restart in 2 seconds...")
    time.sleep(2)
