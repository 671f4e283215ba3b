"""CLI entry point for the skillset service."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


def _serve() -> int:
    import uvicorn

    from skillset_service.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "skillset_service.app:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.server.log_level,
    )
    return 0


def _seed(seed_path: Path) -> int:
    from skillset_service.config import get_settings
    from skillset_service.services.skillset_store import SkillsetStore
    from skillset_service.services.task_catalog import TaskCatalog, load_seed_file

    settings = get_settings()

    try:
        entries = load_seed_file(seed_path)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    Path(settings.database.path).parent.mkdir(parents=True, exist_ok=True)
    store = SkillsetStore(db_path=settings.database.path)
    try:
        inserted = TaskCatalog(store=store).seed_tasks(entries)
        total = store.count_tasks()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

    print(f"Inserted {inserted} task(s); catalog now holds {total}", file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="skillset_service",
        description="Run the skillset service or manage its task catalog.",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="Run the HTTP server (default).")
    seed_parser = subparsers.add_parser("seed", help="Insert tasks from a YAML/JSON seed file.")
    seed_parser.add_argument("file", type=str, metavar="FILE", help="Path to the seed file.")
    args = parser.parse_args(argv)

    if args.command == "seed":
        return _seed(Path(args.file))
    return _serve()


if __name__ == "__main__":
    sys.exit(main())
