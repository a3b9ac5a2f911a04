from __future__ import annotations

import socket


class PortUnavailableError(RuntimeError):
    pass


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port(start_port: int, max_attempts: int = 10, host: str = "127.0.0.1") -> int:
    for offset in range(max_attempts):
        port = start_port + offset
        if is_port_available(port, host):
            return port
    raise PortUnavailableError(
        f"No available port found between {start_port} and {start_port + max_attempts - 1}"
    )
