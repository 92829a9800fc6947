"""
git-dependency: Git Package Manager plugin

Declares a repository's dependencies (other repositories pinned to a url,
branch, commit and local path) in a ``.gitpackage`` manifest in the working
copy root, and manages them with ``git dependency add|edit|list|remove``.
"""

__version__ = "0.1.0"

from .dependency import DependencyRegistry, parse_path
from .git import GitRepository, RepositoryNotFoundError
from .manifest import Manifest, ManifestError, SectionKindError

__all__ = [
    "DependencyRegistry",
    "GitRepository",
    "Manifest",
    "ManifestError",
    "RepositoryNotFoundError",
    "SectionKindError",
    "parse_path",
]
