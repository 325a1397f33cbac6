import logging
from typing import Callable

from mini_vcs.base import (
    CheckoutIncomplete,
    CommitAborted,
    ContentProvider,
    FileNotTracked,
    NotFound,
    NothingToCommit,
    StorageError,
    WorkingFile,
)
from mini_vcs.repository import Repository

logger = logging.getLogger(__name__)

# Asks the user a yes/no question, returns True for yes
Prompt = Callable[[str], bool]

USAGE = (
    "Commands: add <file>, edit <file> <content>, commit <msg>, log, status, "
    "checkout <id>, exit"
)


class VCS:
    """
    Command surface over a repository.

    Owns the working set and turns every repository outcome, including
    errors, into a message for the user.
    """

    def __init__(
        self,
        repo: Repository,
        content: ContentProvider,
        prompt: Prompt | None = None,
    ) -> None:
        self.repo = repo
        self.content = content
        self.prompt = prompt
        self.working_set: dict[str, WorkingFile] = {}

    def _create(self, name: str, create: bool | None) -> WorkingFile | None:
        if create is None:
            if self.prompt is None:
                return None
            create = self.prompt("File does not exist on disk. Create new?")
        if not create:
            return None

        self.content.save(name, b"")
        return WorkingFile(name)

    def add(self, name: str, create: bool | None = None) -> str:
        f = self.working_set.get(name)
        created = False
        if f is None:
            try:
                content = self.content.load(name)
                if content is not None:
                    f = WorkingFile(name, content)
                else:
                    f = self._create(name, create)
                    created = f is not None
            except StorageError as e:
                return f"Error: {e}"
            if f is None:
                return f"File '{name}' does not exist on disk."
            self.working_set[name] = f

        self.repo.add_file(f)
        if created:
            return f"File created. Added file to staging: {name}"
        return f"Added file to staging: {name}"

    def get_file(self, name: str) -> WorkingFile:
        f = self.working_set.get(name)
        if f is None:
            raise FileNotTracked(name)
        return f

    def edit(self, name: str, content: str | bytes) -> str:
        try:
            f = self.get_file(name)
        except FileNotTracked as e:
            return f"{e}!"

        if isinstance(content, str):
            content = content.encode("utf-8")
        f.stage(content)
        self.repo.add_file(f)
        return (
            f"{name} updated in memory (not saved to disk). "
            "Changes are staged, use 'commit <msg>' to save them."
        )

    def commit(self, message: str) -> str:
        try:
            commit = self.repo.commit(message)
        except NothingToCommit:
            return "No edited files to commit! Edit files first."
        except CommitAborted as e:
            details = "; ".join(str(err) for err in e.failures.values())
            return f"Commit aborted, nothing was saved ({details})."
        return f"Commit {commit.id} done! Changes saved to archive and files updated."

    def log(self) -> str:
        return self.repo.format_log()

    def checkout(self, commit_id: int) -> str:
        try:
            self.repo.checkout(commit_id, self.working_set)
        except CheckoutIncomplete as e:
            return str(e)
        except NotFound:
            return "Commit ID not found!"
        return f"Checked out commit {commit_id}, files restored on disk."

    def status(self) -> str:
        lines = ["Current Working Files:"]
        for name in sorted(self.working_set):
            f = self.working_set[name]
            marker = " (modified)" if f.dirty else ""
            lines.append(f"  {name}: {f.text}{marker}")
        return "\n".join(lines)

    def run_command(self, line: str) -> str:
        command, _, rest = line.strip().partition(" ")
        rest = rest.strip()

        if command == "add" and rest:
            return self.add(rest)
        if command == "edit" and rest:
            name, _, content = rest.partition(" ")
            return self.edit(name, content)
        if command == "commit" and rest:
            return self.commit(rest)
        if command == "log" and not rest:
            return self.log()
        if command == "status" and not rest:
            return self.status()
        if command == "checkout" and rest:
            try:
                commit_id = int(rest)
            except ValueError:
                return f"Invalid commit id: {rest}"
            return self.checkout(commit_id)

        logger.debug("Rejected command %r", line)
        return f"Unknown command! {USAGE}"
