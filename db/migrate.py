from __future__ import annotations

import hashlib
import importlib.util
import inspect
import re
from datetime import datetime, timezone
from pathlib import Path

from db.backend import StorageBackend


MIGRATION_RE = re.compile(r"^(\d{4})_([a-zA-Z0-9_]+)\.py$")
DEFAULT_MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _checksum_file(path: Path) -> str:
    data = path.read_bytes()
    return hashlib.sha256(data).hexdigest()


async def _ensure_migration_table(backend: StorageBackend) -> None:
    await backend.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at_utc TEXT NOT NULL
        )
        """
    )


async def _load_applied(backend: StorageBackend) -> dict[str, tuple[str, str, str]]:
    rows = await backend.fetch_all("SELECT version, name, checksum, applied_at_utc FROM schema_migrations")
    out: dict[str, tuple[str, str, str]] = {}
    for row in rows:
        out[str(row["version"])] = (str(row["name"]), str(row["checksum"]), str(row["applied_at_utc"]))
    return out


async def _run_py(backend: StorageBackend, path: Path) -> None:
    mod_name = f"relay_migration_{path.stem}"
    spec = importlib.util.spec_from_file_location(mod_name, str(path))
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Could not load migration module: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    upgrade = getattr(module, "upgrade", None)
    if not callable(upgrade):
        raise RuntimeError(f"Python migration missing upgrade(backend): {path}")
    result = upgrade(backend)
    if inspect.isawaitable(result):
        await result


def discover_migrations(migrations_dir: str | Path) -> list[tuple[str, str, Path]]:
    base = Path(migrations_dir)
    if not base.exists():
        raise RuntimeError(f"Migrations directory not found: {migrations_dir}")

    files: list[tuple[str, str, Path]] = []
    for p in sorted(base.iterdir()):
        if not p.is_file():
            continue
        m = MIGRATION_RE.match(p.name)
        if not m:
            continue
        files.append((m.group(1), m.group(2), p))
    return files


async def apply_migrations(backend: StorageBackend, migrations_dir: str | Path = DEFAULT_MIGRATIONS_DIR) -> list[str]:
    await _ensure_migration_table(backend)
    applied = await _load_applied(backend)

    newly_applied: list[str] = []
    for version, name, path in discover_migrations(migrations_dir):
        checksum = _checksum_file(path)
        existing = applied.get(version)
        if existing:
            old_name, old_checksum, _applied_at = existing
            if old_name != name or old_checksum != checksum:
                raise RuntimeError(
                    f"Migration version {version} already applied with different content "
                    f"(existing name={old_name}, file name={name})."
                )
            continue

        print(f"[DB] Applying migration {version}_{name}.py ({backend.dialect})")
        await _run_py(backend, path)

        await backend.execute(
            """
            INSERT INTO schema_migrations (version, name, checksum, applied_at_utc)
            VALUES (?, ?, ?, ?)
            """,
            (version, name, checksum, _utc_now_iso()),
        )
        newly_applied.append(f"{version}_{name}")
    return newly_applied


async def list_schema_migrations(backend: StorageBackend, limit: int = 200) -> list[tuple[str, str, str]]:
    rows = await backend.fetch_all(
        """
        SELECT version, name, applied_at_utc
        FROM schema_migrations
        ORDER BY version DESC
        LIMIT ?
        """,
        (max(1, min(int(limit), 500)),),
    )
    return [(str(r["version"]), str(r["name"]), str(r["applied_at_utc"])) for r in rows]
