"""Entry point: python -m membank <command>

- "projects":                     List projects with their friendly names
- "rebuild-index":                Recreate the project index from disk
- "history PROJECT [FILE]":       Ledger entries of a project or one file
- "state PROJECT TIMESTAMP":      Files as they were at a point in time
- "diff PROJECT FILE FROM [TO]":  Unified diff between versions
"""

from __future__ import annotations

import asyncio
import logging
import sys

from membank.config import MembankConfig, load_config
from membank.errors import MembankError

_USAGE = """\
Usage: python -m membank <command> [args]
  projects                     List projects
  rebuild-index                Rebuild the project index from disk
  history PROJECT [FILE]       Show ledger history
  state PROJECT TIMESTAMP      Show files at a point in time
  diff PROJECT FILE FROM [TO]  Diff two versions (TO defaults to working copy)"""


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


async def _run(config: MembankConfig, cmd: str, args: list[str]) -> None:
    from membank.core import MemoryBank

    bank = MemoryBank(config)
    try:
        if cmd == "projects":
            for info in await bank.list_projects():
                if info.friendly_name != info.name:
                    print(f"{info.name}\t{info.friendly_name}")
                else:
                    print(info.name)

        elif cmd == "rebuild-index":
            report = await bank.rebuild_index()
            print(
                f"{report.total} projects indexed "
                f"({report.with_metadata} with metadata, "
                f"{report.without_metadata} without)"
            )

        elif cmd == "history":
            if len(args) > 1:
                entries = await bank.file_history(args[0], args[1])
            else:
                entries = await bank.project_history(args[0])
            for e in entries:
                print(f"{e.timestamp}  v{e.version:<4} {e.action:<8} {e.file}  ({e.actor})")

        elif cmd == "state":
            state = await bank.state_at_time(args[0], args[1])
            print(f"# {args[0]} at {state.timestamp}")
            for name, content in sorted(state.files.items()):
                print(f"\n== {name} ==")
                print(content)

        elif cmd == "diff":
            version_to = int(args[3]) if len(args) > 3 else None
            result = await bank.file_history_diff(args[0], args[1], int(args[2]), version_to)
            sys.stdout.write(result.diff or "No differences.\n")
    finally:
        await bank.aclose()


_ARITY = {
    "projects": (0, 0),
    "rebuild-index": (0, 0),
    "history": (1, 2),
    "state": (2, 2),
    "diff": (3, 4),
}


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    args = sys.argv[2:]

    arity = _ARITY.get(cmd)
    if arity is None or not arity[0] <= len(args) <= arity[1]:
        print(_USAGE)
        sys.exit(1)

    config = load_config()
    _setup_logging(config.log_level)

    try:
        asyncio.run(_run(config, cmd, args))
    except (MembankError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
