#!/usr/bin/env python3
import importlib
import json
import os
import subprocess
import sys

from . import config as chipmgr_config
from .build_logic import TargetResolver
from .descriptor import render_memory_block
from .errors import ChipConfigError

COMMANDS = ("resolve", "layout", "debug", "fetch", "report", "all")


def find_projects(root_dir='.'):
    """Finds all project directories (prefixed with 'prj_') in the root directory."""
    return [
        item for item in os.listdir(root_dir)
        if os.path.isdir(os.path.join(root_dir, item)) and item.startswith("prj_")
    ]


def print_usage(projects):
    """Prints the available commands and their descriptions."""
    print("\nUsage: chipmgr <project_name> [command] [elf_path]")
    print("\nAvailable projects:")
    if projects:
        for proj in sorted(projects):
            print(f"  - {proj}")
    else:
        print("  No projects found (expected directories in the current folder starting with 'prj_').")

    print("\nCommands:")
    print("  resolve  (default) Resolves chip, packages, layout and descriptors; prints them as JSON.")
    print("  layout   Prints the planned memory layout as a linker MEMORY block.")
    print("  debug    Prints the debug launch descriptor as JSON.")
    print("  fetch    Resolves and fetches the packages into the local cache.")
    print("  report   Checks a built image (default: build/<project>/<target>.elf) against the layout.")
    print("  all      Resolves, fetches and prints the full descriptor.")
    sys.exit(1)


def _print_json(data):
    print(json.dumps(data, indent=2))


def run(resolver, command, args):
    """Executes one command for an already-configured TargetResolver."""
    target = resolver.resolve()
    if command == "resolve":
        _print_json(target.to_dict())
    elif command == "layout":
        print(render_memory_block(target.layout), end="")
    elif command == "debug":
        _print_json(target.debug.to_dict())
    elif command == "fetch":
        paths = resolver.fetch_packages(target, retries=chipmgr_config.FETCH_RETRIES)
        for ref, path in paths.items():
            print(f"  - {ref}: {path}")
    elif command == "report":
        elf_path = args[0] if args else None
        artifact = resolver.report(target, elf_path)
        _print_json(artifact.to_dict())
        # Never let an overflowing image reach the flashing step.
        artifact.raise_for_overflow()
    elif command == "all":
        resolver.fetch_packages(target, retries=chipmgr_config.FETCH_RETRIES)
        _print_json(target.to_dict())


def main(argv=None):
    """Parses command-line arguments and executes the corresponding command."""
    argv = sys.argv[1:] if argv is None else argv
    project_root = os.getcwd()
    available_projects = find_projects(project_root)

    if not argv or argv[0] not in available_projects:
        print("\n❌ Error: Project name not specified or not found.")
        print_usage(available_projects)
        return

    project_name = argv[0]
    command = argv[1] if len(argv) > 1 else "resolve"
    if command not in COMMANDS:
        print(f"\n❌ Error: Unknown command '{command}'")
        print_usage(available_projects)
        return

    # Dynamically import the project's config file
    if project_root not in sys.path:
        sys.path.insert(0, project_root)
    try:
        config = importlib.import_module(f"{project_name}.config")
    except ImportError as e:
        print(f"\n❌ Error: Could not import configuration for project '{project_name}'.", file=sys.stderr)
        print(f"   Reason: {e}", file=sys.stderr)
        print(f"   Ensure '{project_name}/config.py' exists and is valid.", file=sys.stderr)
        sys.exit(1)

    resolver = TargetResolver(config, project_name)
    try:
        run(resolver, command, argv[2:])
    except ChipConfigError as e:
        print(f"\n❌ Error: {e}", file=sys.stderr)
        if e.retryable:
            print("   This failure is transient; running the command again may succeed.", file=sys.stderr)
        sys.exit(1)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        print(f"\n❌ Error: Command failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
