#!/usr/bin/env python3
import os
import sys
import subprocess
import time
import platform
import argparse
import socket

# --- Configuration ---
SERVICES = {
    "api-gateway": ("services.api_gateway.main:app", 8000),
    "payments-service": ("services.payments_service.main:app", 8001),
    "translation-service": ("services.translation_service.main:app", 8002),
    "leads-service": ("services.leads_service.main:app", 8003),
}

# --- Colors ---
class Colors:
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'

if platform.system() == "Windows":
    os.system('color')  # Enable ANSI colors in Windows terminal

def log(msg, color=Colors.ENDC, bold=False):
    prefix = Colors.BOLD if bold else ""
    print(f"{prefix}{color}{msg}{Colors.ENDC}")

def print_header():
    log("\n" + "═" * 40, Colors.HEADER)
    log("TRADING ACADEMY SERVICES - LOCAL START", Colors.HEADER, bold=True)
    log("═" * 40 + "\n", Colors.HEADER)

# --- Port Management ---

def get_process_on_port(port):
    """Finds the PID of the process listening on the given port."""
    try:
        if platform.system() == "Windows":
            result = subprocess.run(f'netstat -ano | findstr :{port}', shell=True,
                                    stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
            for line in result.stdout.strip().split('\n'):
                if f":{port}" in line and "LISTENING" in line:
                    return line.strip().split()[-1]
        else:
            result = subprocess.run(['lsof', '-t', f'-i:{port}'],
                                    stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
            if result.returncode == 0 and result.stdout:
                return result.stdout.strip().split('\n')[0]
    except OSError as e:
        log(f"Error checking port {port}: {e}", Colors.WARNING)
    return None

def kill_process(pid):
    try:
        if platform.system() == "Windows":
            subprocess.run(f"taskkill /F /PID {pid}", shell=True, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        else:
            subprocess.run(['kill', '-9', str(pid)], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        return True
    except OSError as e:
        log(f"  └─ Failed to kill PID {pid}: {e}", Colors.FAIL)
        return False

def clean_ports():
    log("[1/3] Checking ports...", Colors.BLUE, bold=True)
    for name, (_, port) in SERVICES.items():
        pid = get_process_on_port(port)
        if pid and kill_process(pid):
            log(f"✓ Port {port} ({name}): freed PID {pid}", Colors.WARNING)
        else:
            log(f"✓ Port {port} ({name}): AVAILABLE", Colors.GREEN)

# --- Process Management ---

def start_services(reload=False):
    log("\n[2/3] Starting services...", Colors.BLUE, bold=True)
    env = dict(os.environ)
    for name, (_, port) in SERVICES.items():
        key = name.upper().replace("-", "_") + "_URL"
        env.setdefault(key, f"http://localhost:{port}")

    processes = {}
    for name, (target, port) in SERVICES.items():
        cmd = [sys.executable, "-m", "uvicorn", target, "--port", str(port)]
        if reload:
            cmd.append("--reload")
        processes[name] = subprocess.Popen(cmd, env=env)
        log(f"✓ {name} starting on port {port}", Colors.CYAN)
    return processes

def wait_for_ports():
    log("\n[3/3] Verifying services...", Colors.BLUE, bold=True)
    for name, (_, port) in SERVICES.items():
        healthy = False
        for _ in range(30):
            try:
                with socket.create_connection(("localhost", port), timeout=1):
                    pass
                healthy = True
                break
            except OSError:
                time.sleep(1)
        log(f"{name} on port {port}: {'LISTENING' if healthy else 'TIMEOUT/FAILED'}",
            Colors.GREEN if healthy else Colors.FAIL)

def stop_services(processes):
    for name, proc in processes.items():
        proc.terminate()
    for name, proc in processes.items():
        try:
            proc.wait(timeout=10)
        except subprocess.TimeoutExpired:
            proc.kill()
    log("✓ Services stopped", Colors.GREEN)

# --- Main ---

def main():
    parser = argparse.ArgumentParser(description="Free ports and start all services with uvicorn")
    parser.add_argument("--reload", action="store_true", help="Restart services on code changes")
    args = parser.parse_args()

    print_header()
    clean_ports()
    processes = start_services(reload=args.reload)
    wait_for_ports()

    log("\nAccess your API:")
    log(f"- API Gateway: {Colors.BLUE}http://localhost:8000{Colors.ENDC}")
    log(f"- Health:      {Colors.BLUE}http://localhost:8000/health{Colors.ENDC}")
    log("\nPress Ctrl+C to stop all services.", Colors.CYAN)

    try:
        while all(proc.poll() is None for proc in processes.values()):
            time.sleep(1)
        log("A service exited unexpectedly, shutting down.", Colors.FAIL)
    finally:
        stop_services(processes)

if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        log("\nAborted by user.", Colors.WARNING)
        sys.exit(0)
