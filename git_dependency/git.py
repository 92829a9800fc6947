"""
Git collaborators: locating the working copy and running git commands.
"""

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class RepositoryNotFoundError(Exception):
    """Raised when no git working copy can be located"""


class GitRepository:
    """A git working copy and the commands git-dependency runs in it"""

    def __init__(self, wc_path):
        self.wc_path = Path(wc_path)

    @classmethod
    def locate(cls, start=None):
        """Find the working copy root containing ``start`` (default: cwd)"""
        try:
            result = subprocess.run(
                ["git", "rev-parse", "--show-toplevel"],
                cwd=start,
                capture_output=True,
                text=True,
                check=True
            )
        except FileNotFoundError:
            raise RepositoryNotFoundError("Git not found. Please install git first.")
        except subprocess.CalledProcessError as e:
            message = e.stderr.strip() if e.stderr else "not a git repository"
            raise RepositoryNotFoundError(message)

        wc_path = result.stdout.strip()
        logger.debug("Located working copy: %s", wc_path)
        return cls(wc_path)

    def command(self, *args):
        """Run ``git <args>`` in the working copy and return its stdout"""
        logger.info("Running: git %s", " ".join(args))

        result = subprocess.run(
            ["git"] + list(args),
            cwd=self.wc_path,
            capture_output=True,
            text=True,
            check=True
        )
        return result.stdout

    def interactive_commit(self):
        """Run ``git commit`` attached to the terminal so the editor can open"""
        logger.info("Running: git commit (interactive)")
        subprocess.run(["git", "commit"], cwd=self.wc_path, check=True)
