"""
============================================================================
FILE: start_all.py
LOCATION: start_all.py
============================================================================

PURPOSE:
    Launch the SemNotes API and both Streamlit apps for local development.

USAGE:
    python start_all.py                 # API + student UI + admin UI
    python start_all.py --mock          # same, against the local mock backend
    python start_all.py --no-admin      # skip the admin console
============================================================================
"""

import argparse
import os
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import List


@dataclass
class Service:
    label: str
    port: int
    command: List[str]


def build_services(api_port: int, ui_port: int, admin_port: int, include_admin: bool) -> List[Service]:
    python = sys.executable
    services = [
        Service("API", api_port,
                [python, "-m", "uvicorn", "api.main:app", "--reload", "--port", str(api_port)]),
        Service("Student UI", ui_port,
                [python, "-m", "streamlit", "run", "UI/main.py", "--server.port", str(ui_port)]),
    ]
    if include_admin:
        services.append(Service("Admin UI", admin_port,
                                [python, "-m", "streamlit", "run", "UI/admin.py", "--server.port", str(admin_port)]))
    return services


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run SemNotes locally")
    parser.add_argument("--api-port", type=int, default=8000)
    parser.add_argument("--ui-port", type=int, default=8501)
    parser.add_argument("--admin-port", type=int, default=8502)
    parser.add_argument("--no-admin", action="store_true", help="Do not start the admin console")
    parser.add_argument("--mock", action="store_true", help="Use the file-backed mock Firebase backend")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    services = build_services(args.api_port, args.ui_port, args.admin_port, not args.no_admin)

    env = dict(os.environ)
    env["API_BASE_URL"] = f"http://localhost:{args.api_port}"
    if args.mock:
        env["USE_REAL_FIREBASE"] = "false"
        env["USE_MOCK_DB"] = "true"

    root = os.path.dirname(os.path.abspath(__file__))
    processes = []

    print("=" * 50)
    print("              SEMNOTES STARTING")
    print("=" * 50)
    try:
        for index, service in enumerate(services, start=1):
            print(f"[{index}/{len(services)}] Launching {service.label} on port {service.port}...")
            processes.append((service, subprocess.Popen(service.command, cwd=root, env=env)))
            if index == 1:
                time.sleep(2)  # API first, the UIs call it on load

        print()
        for service in services:
            print(f"{service.label + ':':<12} http://localhost:{service.port}")
        print("\nPress Ctrl+C to stop all services.")

        while True:
            time.sleep(1)
            for service, process in processes:
                if process.poll() is not None:
                    print(f"\n{service.label} exited with code {process.returncode}. Shutting down...")
                    return process.returncode or 1
    except KeyboardInterrupt:
        print("\nStopping all services...")
    finally:
        for _, process in processes:
            if process.poll() is None:
                process.terminate()
                try:
                    process.wait(timeout=3)
                except subprocess.TimeoutExpired:
                    process.kill()
        print("Services stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
