"""Run the external search tool and pick the output dialect.

Tool choice: git grep inside a work tree, otherwise ripgrep when installed,
otherwise the system grep (GNU or BSD, probed via ``--version``).
"""

import os
import shutil
import subprocess

from loguru import logger

from vgrep.backends import BackendDialect, parse_lines
from vgrep.cache import current_directory
from vgrep.errors import SearchError
from vgrep.matches import MatchStore

GNU_GREP_COLORS = "ms=01;31:mc=:sl=:cx=:fn=:ln=:se=:bn="


def run_command(args: list[str], env: dict | None = None) -> list[str]:
    """Run ``args`` and return stdout split into lines.

    Exit status 1 means "no matches" for every supported tool and is not an
    error. Any other failure raises SearchError with the first stderr line.
    """
    logger.debug("run_command(args={})", args)
    try:
        proc = subprocess.run(args, capture_output=True, env=env)
    except OSError as e:
        raise SearchError(f"{e.strerror or e} [{args[0]}]") from e

    if proc.returncode not in (0, 1):
        first = proc.stderr.decode(errors="replace").split("\n")[0]
        raise SearchError(f"{first} [{args[0]}]")
    if proc.returncode == 1:
        logger.debug("ignoring exit status 1 (no matches found)")

    return proc.stdout.decode(errors="replace").splitlines()


def inside_git_tree() -> bool:
    try:
        out = run_command(["git", "rev-parse", "--is-inside-work-tree"])
    except SearchError:
        out = []
    inside = bool(out) and out[0] == "true"
    logger.debug("inside_git_tree() -> {}", inside)
    return inside


def ripgrep_available() -> bool:
    return shutil.which("rg") is not None


def system_grep_dialect() -> BackendDialect:
    try:
        out = run_command(["grep", "--version"])
    except SearchError:
        out = []
    if out and "GNU" in out[0] and "BSD" not in out[0]:
        return BackendDialect.GNU
    return BackendDialect.BSD


def select_dialect(no_git: bool = False, no_ripgrep: bool = False) -> BackendDialect:
    if not no_git and inside_git_tree():
        return BackendDialect.GIT
    if not no_ripgrep and ripgrep_available():
        return BackendDialect.RIP
    return system_grep_dialect()


def build_command(dialect: BackendDialect, args: list[str]) -> tuple[list[str], dict]:
    """Command line and environment for running ``args`` with ``dialect``."""
    env = dict(os.environ)
    if dialect is BackendDialect.GIT:
        # ignore user config that could change the output layout
        env["HOME"] = ""
        cmd = ["git", "-c", "color.grep.match=red bold",
               "grep", "-z", "-In", "--color=always"] + args
    elif dialect is BackendDialect.RIP:
        cmd = ["rg", "--null", "--with-filename", "--line-number", "--no-heading",
               "--color=always", "--colors=path:none", "--colors=line:none",
               "--colors=match:fg:red", "--colors=match:style:bold"] + args
    elif dialect is BackendDialect.GNU:
        env["GREP_COLORS"] = GNU_GREP_COLORS
        cmd = ["grep", "-ZIn", "--color=always"] + args + ["-r", "."]
    else:
        env["GREP_COLOR"] = "01;31"
        cmd = ["grep", "-In", "--color=always"] + args + ["-r", "."]
    return cmd, env


def search(args: list[str], no_git: bool = False, no_ripgrep: bool = False) -> MatchStore:
    """Run a fresh search in the current directory and return its matches."""
    dialect = select_dialect(no_git=no_git, no_ripgrep=no_ripgrep)
    cmd, env = build_command(dialect, args)
    lines = run_command(cmd, env=env)
    records = parse_lines(lines, dialect)
    logger.debug("Found {} matches ({} raw lines, dialect {})", len(records), len(lines), dialect.value)
    return MatchStore(records, working_directory=current_directory())
