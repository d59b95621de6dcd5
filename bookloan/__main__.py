"""Package entry point for `python -m bookloan` (starts the server)."""

from bookloan.cli import run_server

if __name__ == "__main__":
    run_server()
