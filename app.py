from __future__ import annotations

import argparse
import json
import os
import sys
import uuid
from typing import List, Optional

from bespoke.core.config import ConfigFsPaths, default_root, load_config
from bespoke.core.errors import BespokeError
from bespoke.core.events import EventLogger
from bespoke.core.logger import setup_logging
from bespoke.core.modules import ModuleManager
from bespoke.core.modules.cli import batch_result_lines, modules_list_lines, modules_show_payload
from bespoke.core.modules.vault import Vault


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="bespoke", description="Bespoke module manager")
    ap.add_argument("--root", default=None, help="Bespoke directory (default: platform config dir or $BESPOKE_ROOT).")
    ap.add_argument("-v", "--verbose", action="store_true", help="Show progress messages on the console.")
    sub = ap.add_subparsers(dest="command", required=True)

    pkg = sub.add_parser("pkg", help="Manage modules")
    actions = pkg.add_subparsers(dest="action", required=True)

    add = actions.add_parser("add", help="Install module(s) from metadata URL(s)")
    add.add_argument("murl", nargs="+")
    add.add_argument("--jobs", type=int, default=4, help="Parallel installs when several URLs are given.")

    for name, help_text in (
        ("rem", "Uninstall module"),
        ("update", "Update installed module"),
        ("enable", "Enable installed module"),
        ("disable", "Disable installed module"),
        ("show", "Show installed module"),
    ):
        p = actions.add_parser(name, help=help_text)
        p.add_argument("id")

    actions.add_parser("list", help="List modules in the vault")
    actions.add_parser("init", help="Create an empty vault")
    return ap


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    fs = ConfigFsPaths(args.root or default_root())
    logger = setup_logging(fs.logs_dir, verbose=args.verbose)
    trace_id = uuid.uuid4().hex

    try:
        if args.action == "init":
            os.makedirs(fs.modules_dir, exist_ok=True)
            Vault.create_empty(fs.vault)
            print(f"vault ready at {fs.vault}")
            return 0

        cfg = load_config(fs)
        logger = setup_logging(fs.logs_dir, level=cfg.log_level, verbose=args.verbose)
        mm = ModuleManager.from_config(fs=fs, cfg=cfg, logger=logger, event_logger=EventLogger(fs.events))

        if args.action == "add":
            if len(args.murl) == 1:
                module = mm.install(args.murl[0], trace_id=trace_id)
                print(f"installed {module.identifier} {module.metadata.version}")
                return 0
            results = mm.install_many(list(args.murl), max_workers=args.jobs, trace_id=trace_id)
            for line in batch_result_lines(results):
                print(line)
            return 0 if all(r.ok for r in results) else 1
        if args.action == "rem":
            mm.remove(args.id, trace_id=trace_id)
            print(f"removed {args.id}")
        elif args.action == "update":
            res = mm.update(args.id, trace_id=trace_id)
            if res.changed:
                print(f"updated {res.identifier} {res.old_version} -> {res.new_version}")
            else:
                print(f"{res.identifier} is up to date ({res.old_version})")
        elif args.action == "enable":
            mm.enable(args.id, trace_id=trace_id)
            print(f"enabled {args.id}")
        elif args.action == "disable":
            mm.disable(args.id, trace_id=trace_id)
            print(f"disabled {args.id}")
        elif args.action == "list":
            for line in modules_list_lines(module_manager=mm):
                print(line)
        elif args.action == "show":
            print(json.dumps(modules_show_payload(module_manager=mm, identifier=args.id), indent=2, ensure_ascii=False))
        return 0
    except BespokeError as e:
        print(f"error: {e.code}: {e.user_message}", file=sys.stderr)
        return 1


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
