import argparse
import logging
import sys
from pathlib import Path
from typing import TextIO

from mini_vcs.commands import USAGE, VCS
from mini_vcs.repository import create_repository

logger = logging.getLogger(__name__)


def ask_yes_no(question: str) -> bool:
    answer = input(f"{question} (y/n): ")
    return answer.strip().lower().startswith("y")


def run_shell(
    vcs: VCS, stdin: TextIO | None = None, stdout: TextIO | None = None
) -> None:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    print(f"Mini VCS running. {USAGE}", file=stdout)
    while True:
        print(">> ", end="", file=stdout, flush=True)
        line = stdin.readline()
        if not line:
            break
        line = line.strip()
        if line == "exit":
            break
        if not line:
            continue
        print(vcs.run_command(line), file=stdout)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Minimal version control shell")
    parser.add_argument(
        "--work-dir", default=".", help="Directory holding the tracked files"
    )
    parser.add_argument(
        "--archive-dir",
        default=None,
        help="Commit archive directory (default: <work-dir>/.vcs)",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="SQLAlchemy URL for a persistent history (default: in memory)",
    )
    parser.add_argument(
        "--keep-archive",
        action="store_true",
        help="Do not remove the archive directory on exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    repo = create_repository(Path(args.work_dir), args.archive_dir, args.db_url)
    repo.open()
    logger.debug("Repository opened in %s", Path(args.work_dir).absolute())
    try:
        run_shell(VCS(repo, repo.content, prompt=ask_yes_no))
    finally:
        if not args.keep_archive:
            repo.close()


if __name__ == "__main__":
    main()
