"""
git-dependency command line interface.

Installed as ``git-dependency`` so git picks it up as ``git dependency``:

    git dependency add [-c] [-m MSG] [-p PATH] [-b BRANCH] [-r REV] [--dir DIR] URL...
    git dependency edit [-c] [-m MSG] [-u URL] [-b BRANCH] [-r REV] [--reset] PATH
    git dependency list
    git dependency remove [-c] [-m MSG] [PATH...]
    git dependency config [--global] [--unset] [--list] [KEY] [VALUE]
"""

import argparse
import logging
import subprocess
import sys

from . import __version__
from .config import (
    KNOWN_KEYS,
    build_settings,
    default_config,
    get_project_config_path,
    get_user_config_path,
    load_config,
    load_config_file,
    write_config_file,
)
from .dependency import VAR_BRANCH, VAR_COMMIT, VAR_URL, DependencyRegistry
from .git import GitRepository, RepositoryNotFoundError
from .manifest import ManifestError

logger = logging.getLogger(__name__)


def setup_logging(settings):
    """Route diagnostics to stderr: warnings, -v for info, -d for debug"""
    level = logging.WARNING
    if settings.debug:
        level = logging.DEBUG
    elif settings.verbose:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(name)s: %(message)s",
        stream=sys.stderr
    )
    logging.getLogger().setLevel(level)


def print_dependency(registry, path):
    variables = registry.dependency(path)
    print("  Path:   {}".format(path))
    print("  Url:    {}".format(variables.get(VAR_URL, "")))
    print("  Branch: {}".format(variables.get(VAR_BRANCH, "")))
    print("  Commit: {}".format(variables.get(VAR_COMMIT, "")))


def report_commit(settings):
    if settings.commit:
        print("✓ Committed {}".format("with message" if settings.message else "from editor"))


def cmd_add(registry, settings, urls, path=None, branch=None, revision=None, directory=None):
    """Add dependencies to the package file"""
    print("📦 git dependency add")

    if path and len(urls) > 1:
        print("✗ --path can only be used with a single repository")
        return 1

    for url in urls:
        dep_path = path or registry.parse_path(url)
        if not dep_path:
            print("✗ Could not derive a dependency path from '{}', use --path".format(url))
            return 1

        if directory:
            dep_path = "{}/{}".format(directory.rstrip("/"), dep_path)

        if registry.has_dependency(dep_path):
            print("⚠️  Replacing existing dependency '{}'".format(dep_path))

        registry.set_dependency(url, path=dep_path, branch=branch, commit=revision, reset=True)

        print("✓ Dependency '{}' added".format(dep_path))
        print_dependency(registry, dep_path)

    registry.persist(commit_changes=settings.commit, message=settings.message)
    print("✓ Saved {}".format(registry.package_file.name))
    report_commit(settings)

    return 0


def cmd_edit(registry, settings, path, url=None, branch=None, revision=None, reset=False):
    """Change an existing dependency"""
    print("📦 git dependency edit")

    if not registry.has_dependency(path):
        print("✗ Dependency '{}' does not exist yet".format(path))
        print("  Use 'git dependency add' to register it")
        return 1

    url = url or registry.dependency_setting(path, VAR_URL)

    registry.set_dependency(
        url,
        path=path,
        branch=branch,
        commit=revision,
        reset=reset,
        store=True,
        commit_changes=settings.commit,
        message=settings.message
    )

    print("✓ Dependency '{}' updated".format(path))
    print_dependency(registry, path)
    report_commit(settings)

    return 0


def cmd_list(registry, settings):
    """List registered dependencies"""
    print(registry.render_dependency_list())
    return 0


def cmd_remove(registry, settings, paths=None):
    """Remove some or all dependencies from the package file"""
    print("🗑️  git dependency remove")

    for path in paths or []:
        if not registry.has_dependency(path):
            print("⚠️  Dependency '{}' not found, skipping".format(path))

    known = [path for path in paths or [] if registry.has_dependency(path)]
    if (paths and not known) or not registry.dependencies():
        print("Nothing to remove.")
        return 0

    removed = registry.remove_dependencies(
        known,
        store=True,
        commit_changes=settings.commit,
        message=settings.message
    )

    for path in removed:
        print("  ✓ Removed {}".format(path))

    if not registry.dependencies():
        print("✓ No dependencies left, removed {}".format(registry.package_file.name))
    report_commit(settings)

    return 0


def print_known_keys(key):
    print()
    print("Error: Unknown configuration key '{}'".format(key))
    print()
    print("Valid configuration keys:")
    for k, desc in sorted(KNOWN_KEYS.items()):
        print("  {:<20} - {}".format(k, desc))
    print()


def cmd_config(project_root, key=None, value=None, is_global=False, unset=False, list_all=False):
    """Manage git-dependency configuration"""
    if is_global:
        config_path = get_user_config_path()
        config_type = "user"
    else:
        config_path = get_project_config_path(project_root)
        config_type = "project"

    if list_all:
        print("⚙️  git dependency config")
        print()

        defaults = default_config()
        user_config = load_config_file(get_user_config_path(), "user config")
        project_config = load_config_file(get_project_config_path(project_root), "project config")

        for config_key in sorted(KNOWN_KEYS):
            if config_key in project_config:
                val, source = project_config[config_key], "project"
            elif config_key in user_config:
                val, source = user_config[config_key], "user"
            else:
                val, source = defaults[config_key], "default"

            print("{}={} ({})".format(config_key, val, source))

        print()
        return 0

    if not key:
        print("Usage:")
        print("  git dependency config <key>                    # Get value")
        print("  git dependency config <key> <value>            # Set value (project)")
        print("  git dependency config --global <key> <value>   # Set value (user)")
        print("  git dependency config --unset <key>            # Unset value (project)")
        print("  git dependency config --list                   # List all settings")
        return 1

    if key not in KNOWN_KEYS:
        print_known_keys(key)
        return 1

    if unset:
        current_config = load_config_file(config_path, "{} config".format(config_type))
        if key in current_config:
            del current_config[key]
            write_config_file(config_path, current_config)
            print("✓ Unset {} in {} config".format(key, config_type))
        return 0

    if value is None:
        print(load_config(project_root)[key])
        return 0

    current_config = load_config_file(config_path, "{} config".format(config_type))
    current_config[key] = value
    write_config_file(config_path, current_config)

    print("✓ Set {} = {} in {} config".format(key, value, config_type))
    return 0


def build_parser():
    display_parser = argparse.ArgumentParser(add_help=False)
    display_parser.add_argument("-v", "--verbose", action="store_true", help="Display more information")
    display_parser.add_argument("-d", "--debug", action="store_true", help="Display debugging information")

    commit_parser = argparse.ArgumentParser(add_help=False)
    commit_parser.add_argument("-c", "--commit", action="store_true", help="Commit the package file after this operation")
    commit_parser.add_argument(
        "-m", "--message",
        help="Commit message; without one an editor is opened, like git commit"
    )

    parser = argparse.ArgumentParser(
        prog="git dependency",
        description="git-dependency: package manager interface over git submodules",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--version", action="version", version="git-dependency {}".format(__version__))

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    add_parser = subparsers.add_parser(
        "add", parents=[commit_parser, display_parser], help="Add dependencies to the package file"
    )
    add_parser.add_argument("urls", nargs="+", metavar="repository", help="Url or path of the repository")
    add_parser.add_argument("-p", "--path", help="Dependency path (derived from the url by default)")
    add_parser.add_argument("-b", "--branch", help="Branch to track (default from config, master)")
    add_parser.add_argument("-r", "--revision", help="Tag, branch or commit to pin (default from config, HEAD)")
    add_parser.add_argument("--dir", dest="directory", help="Source directory to place dependencies under")

    edit_parser = subparsers.add_parser(
        "edit", parents=[commit_parser, display_parser], help="Change an existing dependency"
    )
    edit_parser.add_argument("path", help="Dependency path")
    edit_parser.add_argument("-u", "--url", help="New repository url")
    edit_parser.add_argument("-b", "--branch", help="Branch to track")
    edit_parser.add_argument("-r", "--revision", help="Tag, branch or commit to pin")
    edit_parser.add_argument(
        "--reset",
        action="store_true",
        help="Revert branch and revision to the defaults unless given"
    )

    subparsers.add_parser("list", parents=[display_parser], help="List registered dependencies")

    remove_parser = subparsers.add_parser(
        "remove", parents=[commit_parser, display_parser], help="Remove dependencies (all when no path given)"
    )
    remove_parser.add_argument("paths", nargs="*", metavar="path", help="Dependency path")

    config_parser = subparsers.add_parser(
        "config", parents=[display_parser], help="Get or set configuration values"
    )
    config_parser.add_argument("key", nargs="?", help="Configuration key (e.g., default_branch, default_commit)")
    config_parser.add_argument("value", nargs="?", help="Value to set")
    config_parser.add_argument(
        "--global",
        dest="is_global",
        action="store_true",
        help="Use user-level config (~/.git-dependency/config)"
    )
    config_parser.add_argument("--unset", action="store_true", help="Remove a configuration value")
    config_parser.add_argument(
        "--list",
        dest="list_all",
        action="store_true",
        help="List all configuration values with sources"
    )

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        repository = GitRepository.locate()
    except RepositoryNotFoundError as e:
        print("✗ {}".format(e))
        return 1

    # The config command reports broken config files itself.
    if args.command == "config":
        config = default_config()
    else:
        config = load_config(repository.wc_path)

    settings = build_settings(
        config,
        verbose=args.verbose,
        debug=args.debug,
        commit=getattr(args, "commit", False),
        message=getattr(args, "message", None)
    )

    setup_logging(settings)
    logger.info("Repository path: %s", repository.wc_path)
    logger.debug("Settings: %s", settings)

    if args.command == "config":
        return cmd_config(
            repository.wc_path,
            key=args.key,
            value=args.value,
            is_global=args.is_global,
            unset=args.unset,
            list_all=args.list_all
        )

    registry = DependencyRegistry(
        repository,
        default_branch=settings.default_branch,
        default_commit=settings.default_commit
    )

    try:
        if args.command == "add":
            return cmd_add(
                registry, settings, args.urls,
                path=args.path, branch=args.branch, revision=args.revision, directory=args.directory
            )
        elif args.command == "edit":
            return cmd_edit(
                registry, settings, args.path,
                url=args.url, branch=args.branch, revision=args.revision, reset=args.reset
            )
        elif args.command == "list":
            return cmd_list(registry, settings)
        elif args.command == "remove":
            return cmd_remove(registry, settings, args.paths)
    except ManifestError as e:
        print("✗ {}".format(e))
        return 1
    except subprocess.CalledProcessError as e:
        error_msg = e.stderr.strip() if e.stderr else str(e)
        print("✗ Git command failed: {}".format(error_msg))
        return 1
    except OSError as e:
        print("✗ Failed to write {}: {}".format(registry.package_file.name, e))
        return 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
