"""
Context catalog management CLI.

Usage:
    python -m contexts.manage validate
    python -m contexts.manage list
    python -m contexts.manage add fertility_concerns --name "Fertility" \\
        --description "Fertility and family planning" --prompt "You are..." \\
        --keywords "fertility, pregnancy"
    python -m contexts.manage backup --dir ./backups
"""

import argparse
import json
import logging
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.settings import get_settings

from .catalog import METADATA_PREFIX, ContextCatalog

logger = logging.getLogger(__name__)


class CatalogManager:
    """File-level operations on the context catalog resource."""

    def __init__(self, path: str, backup_dir: str = "./backups"):
        self.path = Path(path)
        self.backup_dir = Path(backup_dir)

    def read_raw(self) -> Dict[str, Any]:
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def write_raw(self, raw: Dict[str, Any]):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(raw, f, indent=2, ensure_ascii=False)
            f.write("\n")

    def validate(self) -> bool:
        """Print a per-context report and return whether the catalog is valid."""
        catalog = ContextCatalog(str(self.path))
        snapshot = catalog.snapshot
        result = catalog.validate(snapshot)

        print(f"Validating context catalog: {self.path}\n")
        for key, ctx in snapshot.contexts.items():
            print(f"{key}")
            for field_name in ("name", "description", "system_prompt"):
                value = getattr(ctx, field_name)
                mark = "ok " if value else "MISSING"
                print(f"  [{mark}] {field_name}: {value[:50]}")
            print()

        for error in result.errors:
            print(f"ERROR: {error}")
        print(f"Total contexts: {result.count}")
        print(f"Validation: {'PASSED' if result.valid else 'FAILED'}")
        return result.valid

    def list(self) -> List[str]:
        """Print every context and return the keys."""
        catalog = ContextCatalog(str(self.path))
        keys = []
        for ctx in catalog.load().values():
            keys.append(ctx.key)
            print(f"- {ctx.key}")
            print(f"    Name: {ctx.name}")
            print(f"    Description: {ctx.description}")
            if ctx.keywords:
                print(f"    Keywords: {', '.join(ctx.keywords)}")
        return keys

    def add(
        self,
        key: str,
        name: str,
        description: str,
        prompt: str,
        keywords: Optional[List[str]] = None,
    ):
        """
        Append a context to the catalog file.

        Raises:
            ValueError: if the key is reserved or already present
        """
        if key.startswith(METADATA_PREFIX):
            raise ValueError(f"Context key may not start with '{METADATA_PREFIX}'")

        raw = self.read_raw()
        if key in raw:
            raise ValueError(f"Context '{key}' already exists")

        raw[key] = {
            "name": name,
            "description": description,
            "keywords": [k for k in (keywords or []) if k],
            "system_prompt": prompt,
        }

        info = raw.get("_info")
        if isinstance(info, dict):
            info["totalContexts"] = len([k for k in raw if not k.startswith(METADATA_PREFIX)])
            info["lastUpdated"] = datetime.utcnow().date().isoformat()

        self.write_raw(raw)
        logger.info(f"Context '{key}' added to {self.path}")

    def backup(self) -> Path:
        """Copy the catalog file into a timestamped backup."""
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.utcnow().strftime("%Y-%m-%dT%H-%M-%S")
        target = self.backup_dir / f"{self.path.stem}-{stamp}{self.path.suffix}"
        shutil.copy2(self.path, target)
        logger.info(f"Backup created: {target}")
        return target


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="RadioCare context catalog manager")
    parser.add_argument("--file", default=settings.contexts_path, help="Path to the catalog JSON")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("validate", help="Validate the catalog")
    sub.add_parser("list", help="List all contexts")

    add = sub.add_parser("add", help="Add a new context")
    add.add_argument("key")
    add.add_argument("--name", required=True)
    add.add_argument("--description", required=True)
    add.add_argument("--prompt", required=True, help="System prompt for the context")
    add.add_argument("--keywords", default="", help="Comma-separated keywords")

    backup = sub.add_parser("backup", help="Back up the catalog file")
    backup.add_argument("--dir", default=settings.contexts_backup_dir, help="Backup directory")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    manager = CatalogManager(args.file, getattr(args, "dir", settings.contexts_backup_dir))

    if args.command == "validate":
        return 0 if manager.validate() else 1
    if args.command == "list":
        manager.list()
        return 0
    if args.command == "add":
        try:
            manager.add(
                args.key,
                name=args.name,
                description=args.description,
                prompt=args.prompt,
                keywords=[k.strip() for k in args.keywords.split(",")],
            )
        except (ValueError, OSError) as e:
            logger.error(f"Could not add context: {e}")
            return 1
        print(f"Context '{args.key}' added")
        return 0
    if args.command == "backup":
        try:
            target = manager.backup()
        except OSError as e:
            logger.error(f"Backup failed: {e}")
            return 1
        print(f"Backup created: {target}")
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
