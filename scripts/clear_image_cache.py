#!/usr/bin/env python3
"""Clear cached image entries from the durable (on-disk) tier.

Usage:
  python scripts/clear_image_cache.py [--yes] [--dry-run]
                                      [--contains SUBSTR]
                                      [--config PATH] [--dir DIR]

By default the script reads `config.json` in the repo root and uses
`image_loader_config.durable_dir`.

Options:
  --yes             Actually perform deletions. Without this the script runs in dry-run mode.
  --dry-run         Explicit dry run (default if --yes omitted).
  --contains STR    Only delete entries whose original URL contains this substring
                    (e.g. a host name).
  --config PATH     Alternate config.json.
  --dir DIR         Durable directory to clean, overrides the config.

The memory tier lives inside the running process and is not affected.
This is a convenience script intended for development/testing. Use with care.
"""

import argparse
import json
import os
import sys

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, REPO_ROOT)

from image_retrieval_manager.storage.local_storage import ENTRY_SUFFIX, read_entry_file  # noqa: E402


def load_config(cfg_path: str | None = None) -> dict:
    if cfg_path is None:
        cfg_path = os.path.join(REPO_ROOT, "config.json")
    if not os.path.exists(cfg_path):
        raise FileNotFoundError(f"config.json not found at {cfg_path}")
    with open(cfg_path, "r", encoding="utf-8") as f:
        cfg = json.load(f)
    return cfg.get("image_loader_config", {})


def clear_durable_dir(
    durable_dir: str | None,
    contains: str | None = None,
    dry_run: bool = True,
) -> int:
    if not durable_dir:
        print("[durable] durable_dir not provided, skipping")
        return 0
    durable_dir = os.path.expanduser(durable_dir)
    if not os.path.exists(durable_dir):
        print(f"[durable] dir not found: {durable_dir}")
        return 0

    removed = 0
    print(f"[durable] scanning {durable_dir} (dry_run={dry_run})")
    for root, _dirs, files in os.walk(durable_dir):
        for fn in files:
            if not fn.endswith(ENTRY_SUFFIX):
                continue
            path = os.path.join(root, fn)
            if contains:
                try:
                    url, _ = read_entry_file(path)
                except (OSError, ValueError) as e:
                    print("[durable] unreadable entry, skipping", path, e)
                    continue
                if not url or contains not in url:
                    continue
            if dry_run:
                print("[durable] would remove", path)
            else:
                try:
                    os.remove(path)
                    print("[durable] removed", path)
                    removed += 1
                except OSError as e:
                    print("[durable] failed to remove", path, e)
    return removed


def main():
    p = argparse.ArgumentParser(description="Clear durable image cache entries")
    p.add_argument("--yes", action="store_true", help="Actually delete files.")
    p.add_argument("--dry-run", action="store_true", help="Only print what would be removed.")
    p.add_argument("--contains", default=None, help="Only entries whose URL contains this substring.")
    p.add_argument("--config", default=None, help="Path to config.json.")
    p.add_argument("--dir", default=None, help="Durable directory (overrides config).")
    args = p.parse_args()

    dry = not args.yes or args.dry_run

    durable_dir = args.dir
    if durable_dir is None:
        cfg = load_config(args.config)
        durable_dir = cfg.get("durable_dir")

    n = clear_durable_dir(durable_dir, contains=args.contains, dry_run=dry)
    print("[durable] total removed:", n)

    if dry:
        print("\nDRY RUN completed. To actually delete, re-run with --yes")


if __name__ == "__main__":
    main()
