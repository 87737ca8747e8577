#!/usr/bin/env python3
"""Scan the durable image cache and verify every entry is a decodable data URL.

Usage:
  python scripts/verify_cache_integrity.py [--config config.json] [--dir DIR] [--delete-invalid]

Outputs a summary of valid vs invalid entries. If --delete-invalid is passed, it will
remove ONLY the entry files that fail validation (does not touch other files).
"""
import os
import sys
import json
import base64
import binascii
import argparse
from typing import List, Tuple

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, REPO_ROOT)

from image_retrieval_manager.storage.local_storage import ENTRY_SUFFIX, read_entry_file  # noqa: E402


def load_config(path: str):
    with open(path, 'r', encoding='utf-8') as f:
        raw = json.load(f)
    return raw.get('image_loader_config', {})


def check_entry(path: str) -> Tuple[bool, str]:
    try:
        url, entry = read_entry_file(path)
    except (OSError, ValueError) as e:
        return False, f'unreadable: {e}'
    if not url:
        return False, 'missing url header'
    if not entry.startswith('data:') or ';base64,' not in entry:
        return False, 'not a base64 data url'
    payload = entry.split(';base64,', 1)[1]
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        return False, f'bad base64: {e}'
    return True, url


def scan(durable_dir: str) -> Tuple[List[str], List[Tuple[str, str]]]:
    valid: List[str] = []
    invalid: List[Tuple[str, str]] = []
    for root, _dirs, files in os.walk(durable_dir):
        for fn in files:
            if not fn.endswith(ENTRY_SUFFIX):
                continue
            path = os.path.join(root, fn)
            ok, info = check_entry(path)
            if ok:
                valid.append(path)
            else:
                invalid.append((path, info))
    return valid, invalid


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument('--config', default=os.path.join(REPO_ROOT, 'config.json'))
    ap.add_argument('--dir', default=None, help='Durable directory (overrides config)')
    ap.add_argument('--delete-invalid', action='store_true', help='Delete only entries that fail validation')
    args = ap.parse_args()

    durable_dir = args.dir or load_config(args.config).get('durable_dir') or '/tmp/image_cache'
    durable_dir = os.path.expanduser(durable_dir)
    if not os.path.exists(durable_dir):
        print('[integrity] durable dir not found:', durable_dir)
        return

    valid, invalid = scan(durable_dir)
    print(f'[integrity] valid={len(valid)} invalid={len(invalid)}')
    for path, reason in invalid:
        print(f'  INVALID {path}: {reason}')

    if args.delete_invalid and invalid:
        deleted = 0
        for path, _ in invalid:
            try:
                os.remove(path)
                deleted += 1
            except OSError as e:
                print('[integrity] failed to delete', path, e)
        print(f'[integrity] deleted {deleted} invalid entries')


if __name__ == '__main__':
    main()
