#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Launcher for the Score Library API.

This script:
  1) optionally updates config.json (catalog file, legacy genre file, log level)
  2) finds a free localhost port (default preference: 8000)
  3) starts the FastAPI backend (uvicorn) as a child process
  4) waits until the server is reachable and opens the API docs

The server stops when this process stops (close the terminal window).
"""

from __future__ import annotations

import argparse
import os
import socket
import subprocess
import sys
import time
import webbrowser

from scorelib.config import load_config, save_config


def _is_port_free(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(0.2)
        try:
            return s.connect_ex((host, port)) != 0
        except OSError:
            return False


def _find_free_port(host: str, preferred: int, max_tries: int = 50) -> int:
    if preferred <= 0 or preferred > 65535:
        preferred = 8000
    port = preferred
    for _ in range(max_tries):
        if _is_port_free(host, port):
            return port
        port += 1
        if port > 65535:
            port = 1024
    raise RuntimeError("No free TCP port found on localhost.")


def _wait_until_up(host: str, port: int, timeout_sec: float = 10.0) -> bool:
    deadline = time.time() + timeout_sec
    while time.time() < deadline:
        if not _is_port_free(host, port):
            return True
        time.sleep(0.1)
    return False


def _update_config(args: argparse.Namespace) -> None:
    cfg = load_config()
    changed = False
    if args.catalog:
        cfg.catalog_file = os.path.abspath(args.catalog)
        changed = True
    if args.legacy_genres is not None:
        cfg.legacy_genres_file = os.path.abspath(args.legacy_genres) if args.legacy_genres else ""
        changed = True
    if args.log_level:
        cfg.log_level = args.log_level.upper()
        changed = True
    if changed:
        save_config(cfg)
        print(f"Saved configuration (catalog: {cfg.catalog_file})")


def main() -> int:
    parser = argparse.ArgumentParser(description="Start Score Library and open the browser.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000, help="Preferred port (auto-fallback if occupied)")
    parser.add_argument("--catalog", help="Catalog JSON file to use (saved to config.json)")
    parser.add_argument("--legacy-genres", help="Per-device genre list to migrate at start-up ('' to clear)")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper)
    parser.add_argument("--no-browser", action="store_true", help="Do not open the browser")
    parser.add_argument("--reload", action="store_true", help="Enable uvicorn auto-reload (developer mode)")
    args = parser.parse_args()

    # Run from the project root so "scorelib" is importable by the child process.
    os.chdir(os.path.dirname(os.path.abspath(__file__)))

    _update_config(args)

    port = _find_free_port(args.host, args.port)
    url = f"http://{args.host}:{port}/docs"

    cmd = [sys.executable, "-m", "uvicorn", "scorelib.main:app", "--host", args.host, "--port", str(port)]
    if args.reload:
        cmd.append("--reload")

    print("\n=== Score Library ===")
    print(f"Starting server on: {args.host}:{port}")
    print("Close this window to stop the server.")

    proc = subprocess.Popen(cmd, stdout=None, stderr=None)

    if not args.no_browser:
        if _wait_until_up(args.host, port, timeout_sec=12.0):
            try:
                webbrowser.open(url)
                print(f"Opened browser: {url}")
            except webbrowser.Error:
                print(f"Server is running. Please open: {url}")
        else:
            print(f"Server may still be starting. Please open: {url}")

    try:
        return proc.wait()
    except KeyboardInterrupt:
        proc.terminate()
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
