import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from captainhook.config.logging import get_logger

logger = get_logger(__name__)


class CommandError(Exception):
    """An external command could not be run or exited non-zero."""

    def __init__(self, args: Sequence[str], returncode: Optional[int], output: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output
        if returncode is None:
            message = f"command not found: {self.args_list[0]}"
        else:
            message = f"{' '.join(self.args_list)} exited with status {returncode}"
        super().__init__(message)


class CommandRunner:
    """
    Runs host commands and file operations for the provisioner.

    With ``dry_run`` nothing touches the host: every action is logged and
    reported as successful.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def run(
        self,
        args: Sequence[str],
        check: bool = True,
        capture: bool = False,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        args = [str(a) for a in args]
        if self.dry_run:
            logger.info("dry_run_command", command=args)
            return subprocess.CompletedProcess(args, 0, stdout="", stderr="")

        logger.debug("running_command", command=args)
        full_env = {**os.environ, **env} if env else None
        try:
            result = subprocess.run(
                args,
                capture_output=capture,
                text=True,
                env=full_env,
                check=False,
            )
        except FileNotFoundError:
            if check:
                raise CommandError(args, None)
            logger.warning("command_not_found", command=args)
            return subprocess.CompletedProcess(args, 127, stdout="", stderr="")

        if result.returncode != 0:
            if check:
                raise CommandError(args, result.returncode, result.stderr or "")
            logger.warning("command_failed_ignored", command=args, returncode=result.returncode)
        return result

    def which(self, name: str) -> Optional[str]:
        return shutil.which(name)

    def make_dirs(self, path: Path):
        if self.dry_run:
            logger.info("dry_run_mkdir", path=str(path))
            return
        Path(path).mkdir(parents=True, exist_ok=True)

    def write_file(self, path: Path, content: str, mode: Optional[int] = None):
        if self.dry_run:
            logger.info("dry_run_write", path=str(path), size=len(content))
            return
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        if mode is not None:
            os.chmod(path, mode)
        logger.info("file_written", path=str(path))

    def symlink(self, target: Path, link: Path):
        """Point ``link`` at ``target``, replacing whatever is there (ln -sf)."""
        if self.dry_run:
            logger.info("dry_run_symlink", target=str(target), link=str(link))
            return
        link = Path(link)
        link.parent.mkdir(parents=True, exist_ok=True)
        if link.is_symlink() or link.exists():
            link.unlink()
        link.symlink_to(target)

    def remove(self, path: Path):
        if self.dry_run:
            logger.info("dry_run_remove", path=str(path))
            return
        Path(path).unlink(missing_ok=True)

    def copy_tree(self, src: Path, dst: Path, ignore: Optional[Callable] = None):
        if self.dry_run:
            logger.info("dry_run_copy", src=str(src), dst=str(dst))
            return
        shutil.copytree(src, dst, ignore=ignore, dirs_exist_ok=True)
