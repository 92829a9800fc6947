"""
Dependency registry: the ``dependency`` section of the package manifest.

Each dependency is a named record keyed by its local path:

    [dependency "my/package/path"]
      branch = master
      commit = HEAD
      path = my/package/path
      url = https://example.com/owner/my-info-my.package.path.git
"""

import logging
import re

from .manifest import Manifest

logger = logging.getLogger(__name__)

PACKAGE_FILE_NAME = ".gitpackage"

DEPENDENCY = "dependency"

VAR_URL = "url"
VAR_PATH = "path"
VAR_BRANCH = "branch"
VAR_COMMIT = "commit"

BRANCH_MASTER = "master"
COMMIT_HEAD = "HEAD"


def parse_path(repo_url):
    """
    Derive a local dependency path from a repository location.

    Only the last path component is used, ignoring trailing slashes.
    Everything through its last dash is dropped (owner/org prefix), then a
    ``.git`` extension, and finally dots become directory separators.

        >>> parse_path("https://example.com/owner/my-info-my.package.path.git")
        'my/package/path'
    """
    path = repo_url.rstrip("/").split("/")[-1]
    path = re.sub(r"^([^-]*-)*", "", path)
    path = re.sub(r"\.git$", "", path, flags=re.IGNORECASE)
    return path.replace(".", "/")


class DependencyRegistry:
    """Record oriented access to the dependencies of one repository"""

    parse_path = staticmethod(parse_path)

    def __init__(self, repository, file_name=PACKAGE_FILE_NAME,
                 default_branch=BRANCH_MASTER, default_commit=COMMIT_HEAD):
        self.repository = repository
        self.default_branch = default_branch
        self.default_commit = default_commit
        self.manifest = Manifest(repository.wc_path / file_name)

    @property
    def package_file(self):
        return self.manifest.file

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def dependencies(self):
        """Sorted dependency paths"""
        if not self.manifest.is_named(DEPENDENCY):
            return []
        return self.manifest.keys_of(DEPENDENCY)

    def dependency(self, path):
        """Variables of one dependency, empty if it is not registered"""
        return self.manifest.values_of(DEPENDENCY, path)

    def has_dependency(self, path):
        return bool(self.dependency(path))

    def dependency_setting(self, path, variable):
        return self.manifest.named_setting(DEPENDENCY, path, variable)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_dependency(self, repo_url, path=None, branch=None, commit=None, reset=False,
                       store=False, commit_changes=False, message=None):
        """
        Register (or rewrite) a dependency record.

        Args:
            repo_url: Repository URL or filesystem path
            path: Local path; derived from repo_url when not given
            branch: Branch to track; falls back to the existing record's value
                (unless reset) and then to the default branch
            commit: Tag, branch name or commit hash to pin; same fallback
                as branch with the default commit
            reset: Ignore the existing record's branch and commit
            store: Write the manifest file afterwards
            commit_changes: Store, stage and commit the manifest file
            message: Commit message; an editor is opened when not given

        Returns:
            The dependency path used as the record key
        """
        if not path:
            path = self.parse_path(repo_url)

        current = {} if reset else self.dependency(path)

        record = {
            VAR_URL: repo_url,
            VAR_PATH: path,
            VAR_BRANCH: branch or current.get(VAR_BRANCH) or self.default_branch,
            VAR_COMMIT: commit or current.get(VAR_COMMIT) or self.default_commit,
        }

        logger.info("Setting dependency %s: %s", path, record)
        self.manifest.replace_record(DEPENDENCY, path, record)

        if store or commit_changes:
            self.persist(commit_changes, message)
        return path

    def remove_dependencies(self, paths=None, store=False, commit_changes=False, message=None):
        """
        Remove the given dependencies, or all of them when no paths are given.

        Returns:
            Paths that were registered and are now removed
        """
        if paths:
            removed = [path for path in paths if self.has_dependency(path)]
            for path in paths:
                self.manifest.remove_named_setting(DEPENDENCY, path)
        else:
            removed = self.dependencies()
            self.manifest.remove_named_setting(DEPENDENCY)

        logger.info("Removed dependencies: %s", removed)

        if store or commit_changes:
            self.persist(commit_changes, message)
        return removed

    def persist(self, commit_changes=False, message=None):
        """Store the package file, then optionally stage and commit it"""
        self.store()

        if commit_changes:
            self.commit_package_file(message)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def render_dependency_list(self):
        """Human readable listing of every dependency"""
        packages = self.dependencies()

        if not packages:
            return "No dependencies registered."

        width = max(len(package) for package in packages)
        lines = []

        for package in packages:
            variables = self.dependency(package)

            lines.append("")
            lines.append(" {:<{width}}  [  {}  ]".format(package, variables.get(VAR_URL, ""), width=width))
            lines.append("")

            for variable, value in variables.items():
                lines.append(" {:>{width}}     {} = {}".format("", variable, value, width=width))

        lines.append("")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # File storage
    # ------------------------------------------------------------------

    def load(self):
        self.manifest.load()

    def store(self):
        self.manifest.store()

    # ------------------------------------------------------------------
    # Git
    # ------------------------------------------------------------------

    def commit_package_file(self, message=None):
        """Stage the package file and commit it"""
        self.repository.command("add", str(self.package_file))

        if message:
            self.repository.command("commit", "-m", message)
        else:
            self.repository.interactive_commit()
