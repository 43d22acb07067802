#!/usr/bin/env python3
import sys
import os

print("Running preflight import check...")
try:
    # Local defaults so settings load without a .env
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
    os.environ.setdefault("STORE_BACKEND", "memory")

    import smsverify.main
    print("Import smsverify.main: OK")

    import smsverify.queue.jobs
    print("Import smsverify.queue.jobs: OK")

    from smsverify.core.facade import get_facade
    facade = get_facade()
    print(f"Facade store: {type(facade.store).__name__}, sender: {type(facade.sms_sender).__name__}")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
