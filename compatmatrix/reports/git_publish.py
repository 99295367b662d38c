"""
Publish matrix reports to a branch of a git repository.

Workflow, all through the ``git`` CLI in a local working clone:

1. reset   - init the clone if needed, point ``origin`` at the remote, check
             out the remote branch (or start an orphan branch when it does
             not exist yet) and delete every file not matched by a preserve
             pattern
2. copy    - write the report files into the clone
3. commit  - ``add -A`` and commit only if ``status --porcelain`` shows changes
4. push    - push the branch to ``origin``

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
import json
import os
import shutil
import subprocess
import logging

from compatmatrix.errors import CompatMatrixError
from compatmatrix.matrix.models import MatrixReport
from compatmatrix.reports.sinks import ReportSink, render_html

log = logging.getLogger(__name__)

CREDENTIAL_HELPER = "!f() { echo username=$GIT_USERNAME; echo password=$GIT_PASSWORD; }; f"
# `git config --unset-all` exit code when the key is not set
CONFIG_KEY_NOT_SET = 5


class GitPublishError(CompatMatrixError):
    """A git command of the publish workflow failed."""

    def __init__(self, args: Sequence[str], returncode: int, output: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output
        super().__init__(f"'{' '.join(args)}' failed with exit code {returncode}: {output.strip()}")


class GitPublishSink(ReportSink):
    """
    Commit the report to ``branch`` of ``repo_uri`` and push it.

    ``index.html`` and ``report.json`` are always written. Extra files or
    directories in ``contents`` are copied into the clone root under their
    own names. Paths matching ``preserve`` (relative to the clone, glob
    syntax) survive the reset; ``.git`` is always preserved.
    """

    def __init__(
        self,
        repo_uri: str,
        repo_dir: Union[str, Path],
        branch: str = "compat-matrix",
        contents: Optional[List[Union[str, Path]]] = None,
        preserve: Optional[List[str]] = None,
        commit_message: str = "Update compatibility matrix",
        sign_commit: Optional[bool] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        fetch_depth: Optional[int] = None,
        reference_repo_uri: Optional[str] = None,
        title: str = "Compatibility Matrix",
        git: str = "git",
    ):
        self.repo_uri = repo_uri
        self.repo_dir = Path(repo_dir)
        self.branch = branch
        self.contents = [Path(p) for p in (contents or [])]
        self.preserve = list(preserve) if preserve is not None else [".git/**"]
        self.commit_message = commit_message
        self.sign_commit = sign_commit
        self.username = username
        self.password = password
        self.fetch_depth = fetch_depth
        self.reference_repo_uri = reference_repo_uri
        self.title = title
        self.git = git

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def _env(self) -> Optional[Dict[str, str]]:
        if not self.has_credentials:
            return None
        env = dict(os.environ)
        env["GIT_USERNAME"] = self.username
        env["GIT_PASSWORD"] = self.password
        return env

    def _git(self, *args: str, check: bool = True, stdin: Optional[str] = None) -> subprocess.CompletedProcess:
        cmd = [self.git, *args]
        log.debug(f"Running in {self.repo_dir}: {' '.join(cmd)}")
        completed = subprocess.run(
            cmd,
            cwd=str(self.repo_dir),
            input=stdin,
            capture_output=True,
            text=True,
            env=self._env(),
        )
        if check and completed.returncode != 0:
            raise GitPublishError(cmd, completed.returncode, completed.stderr or completed.stdout)
        return completed

    # -------------------------------------------------------------------------
    # reset
    # -------------------------------------------------------------------------

    def _preserved(self, relative: str) -> bool:
        if relative == ".git" or relative.startswith(".git/"):
            return True
        return any(fnmatch(relative, pattern) for pattern in self.preserve)

    def link_reference(self):
        """
        Borrow objects from a local clone of the same project through
        ``.git/objects/info/alternates`` so the fetch only transfers what the
        reference lacks. A shallow reference is skipped.
        """
        uri = str(self.reference_repo_uri)
        reference = Path(uri[len("file://"):] if uri.startswith("file://") else uri)
        git_dir = reference / ".git" if (reference / ".git").is_dir() else reference
        if (git_dir / "shallow").exists():
            log.warning(f"Reference repository {reference} is shallow, not using it")
            return
        objects = git_dir / "objects"
        if not objects.is_dir():
            log.warning(f"Reference repository {reference} has no objects database, not using it")
            return
        alternates = self.repo_dir / ".git" / "objects" / "info" / "alternates"
        alternates.parent.mkdir(parents=True, exist_ok=True)
        alternates.write_text(f"{objects.resolve()}\n")
        log.info(f"Using objects from {objects.resolve()}")

    def reset(self):
        self.repo_dir.mkdir(parents=True, exist_ok=True)
        if not (self.repo_dir / ".git").exists():
            self._git("init", f"--initial-branch={self.branch}")

        if self.has_credentials:
            # blank out inherited helpers first so ours is the only one
            self._git("config", "--local", "--replace-all", "credential.helper", "")
            self._git("config", "--local", "--add", "credential.helper", CREDENTIAL_HELPER)
        else:
            result = self._git("config", "--unset-all", "--local", "credential.helper", check=False)
            if result.returncode not in (0, CONFIG_KEY_NOT_SET):
                raise GitPublishError(result.args, result.returncode, result.stderr)

        if self._git("remote", "add", "origin", self.repo_uri, check=False).returncode != 0:
            self._git("remote", "set-url", "origin", self.repo_uri)

        if self.reference_repo_uri and not self.fetch_depth:
            self.link_reference()

        has_branch = self._git("ls-remote", "--exit-code", "origin", self.branch, check=False).returncode == 0
        if has_branch:
            refspec = f"+refs/heads/{self.branch}:refs/remotes/origin/{self.branch}"
            fetch = ["fetch"]
            if self.fetch_depth:
                fetch += ["--depth", str(self.fetch_depth)]
            self._git(*fetch, "--no-tags", "origin", refspec)
            self._git("switch", "--force-create", self.branch, f"origin/{self.branch}")
        else:
            log.info(f"Branch {self.branch} does not exist on {self.repo_uri}, starting an orphan branch")
            self._git("switch", "--orphan", self.branch)

        self._git("clean", "-fdx")

        removed = 0
        for path in sorted(self.repo_dir.rglob("*")):
            if not path.is_file() and not path.is_symlink():
                continue
            relative = path.relative_to(self.repo_dir).as_posix()
            if self._preserved(relative):
                continue
            path.unlink()
            removed += 1
        log.debug(f"Removed {removed} file(s) not matched by preserve patterns")

        # directories are not tracked, staging the file removals is enough
        self._git("add", "-A")

    # -------------------------------------------------------------------------
    # copy / commit / push
    # -------------------------------------------------------------------------

    def copy_contents(self, report: MatrixReport):
        with open(self.repo_dir / "report.json", "w") as f:
            json.dump(report.to_dict(), f, indent=2)
            f.write("\n")
        with open(self.repo_dir / "index.html", "w") as f:
            f.write(render_html(report, self.title))

        for source in self.contents:
            if not source.exists():
                log.warning(f"Publish content {source} does not exist, skipping")
                continue
            target = self.repo_dir / source.name
            if source.is_dir():
                shutil.copytree(str(source), str(target), dirs_exist_ok=True)
            else:
                shutil.copy2(str(source), str(target))

    def commit(self) -> bool:
        """Commit staged changes. Returns False when there was nothing to commit."""
        self._git("add", "-A")
        status = self._git("status", "--porcelain")
        if not status.stdout.strip():
            log.info("No changes to publish")
            return False

        args = ["commit"]
        if self.sign_commit is not None:
            args.append("--gpg-sign" if self.sign_commit else "--no-gpg-sign")
        args += ["--file", "-"]
        self._git(*args, stdin=self.commit_message)
        return True

    def push(self) -> bool:
        """Push the branch. Returns False when the remote was already up to date."""
        refspec = f"refs/heads/{self.branch}:refs/heads/{self.branch}"
        result = self._git("push", "--porcelain", "--set-upstream", "origin", refspec)
        return "[up to date]" not in result.stdout

    def publish(self, report: MatrixReport):
        log.info(f"Publishing report to {self.repo_uri} branch {self.branch}")
        self.reset()
        self.copy_contents(report)
        committed = self.commit()
        pushed = self.push()
        if committed or pushed:
            log.info(f"Published report to {self.repo_uri} branch {self.branch}")
        else:
            log.info(f"Branch {self.branch} on {self.repo_uri} already up to date")
