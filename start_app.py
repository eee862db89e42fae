# start_app.py
"""Apply Alembic migrations, then serve the POS API with uvicorn."""

from __future__ import annotations

import argparse
import os
import subprocess
import sys

import uvicorn
from dotenv import load_dotenv

import config

ALEMBIC_INI = "pos_api/alembic.ini"
APP = "pos_api.app.main:app"


def run_migrations(ini: str = ALEMBIC_INI) -> None:
    """Upgrade the database to ``head``; exit with Alembic's code on failure."""

    try:
        subprocess.run(
            [sys.executable, "-m", "alembic", "-c", ini, "upgrade", "head"],
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        if exc.stdout:
            sys.stdout.write(exc.stdout)
        if exc.stderr:
            sys.stderr.write(exc.stderr)
        print(f"database migration failed (exit code {exc.returncode})", file=sys.stderr)
        raise SystemExit(exc.returncode)


def _skip_from_env() -> bool:
    flag = os.getenv("SKIP_DB_MIGRATIONS", "")
    return bool(flag) and flag.lower() not in {"0", "false"}


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Start the POS API")
    parser.add_argument(
        "--skip-db-migrations",
        action="store_true",
        help="Start without running Alembic migrations",
    )
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))  # nosec B104
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    args = parser.parse_args(argv)

    if not (args.skip_db_migrations or _skip_from_env()):
        run_migrations()

    settings = config.get_settings()
    uvicorn.run(APP, host=args.host, port=args.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
