"""
Playbook CLI entrypoint for deploy-helper.

Usage:
    deploy-helper --version
    deploy-helper deploy.yml
    deploy-helper -i servers.yml -e "env=prod" deploy.yml
"""

import argparse
import json
import platform
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from deploy_helper import __version__
from deploy_helper.engine.errors import ExitCode, ParseError
from deploy_helper.engine.output import Output
from deploy_helper.engine.values import from_config


def get_version_string() -> str:
    """Generate a detailed version string."""
    python_version = platform.python_version()
    os_info = f"{platform.system()} {platform.release()}"
    return (
        f"deploy-helper {__version__}\n"
        f"  python: {python_version}\n"
        f"  platform: {os_info}"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for deploy-helper."""
    parser = argparse.ArgumentParser(
        prog="deploy-helper",
        description="Deployment helper tool: run YAML playbooks on local and SSH hosts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  deploy-helper deploy.yml
  deploy-helper -i servers.yml deploy.yml
  deploy-helper deploy.yml -e "version=1.2 env=prod"
  deploy-helper deploy.yml -e '{"version": "1.2"}'
  deploy-helper deploy.yml -e @vars.yml
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=get_version_string(),
    )

    parser.add_argument(
        "playbook",
        help="The deployment YAML file",
    )

    parser.add_argument(
        "-i", "--inventory",
        dest="inventory",
        default="servers.yml",
        help="The server configuration YAML file (default: servers.yml)",
    )

    parser.add_argument(
        "-e", "--extra-vars",
        dest="extra_vars",
        action="append",
        default=[],
        help="Set additional variables as key=value, JSON, or @file (can be repeated)",
    )

    parser.add_argument(
        "--no-color",
        dest="color",
        action="store_false",
        default=None,
        help="Disable colored output",
    )

    return parser


def parse_extra_vars(extra_vars_list: List[str]) -> Dict[str, Any]:
    """
    Parse extra vars from command line.

    Each item is either ``@path`` to a YAML file, a JSON object, or
    space-separated ``key=value`` pairs (values stay strings).

    Raises:
        ParseError: If a vars file is missing or a value is malformed
    """
    result: Dict[str, Any] = {}
    for item in extra_vars_list:
        item = item.strip()

        if item.startswith('@'):
            path = Path(item[1:])
            if not path.exists():
                raise ParseError(f"Extra vars file not found: {path}")
            try:
                file_vars = from_config(yaml.safe_load(path.read_text(encoding='utf-8')))
            except yaml.YAMLError as e:
                raise ParseError(f"YAML syntax error: {e}", file_path=str(path))
            if file_vars is None:
                continue
            if not isinstance(file_vars, dict):
                raise ParseError("Extra vars file must contain a mapping", file_path=str(path))
            result.update(file_vars)
            continue

        if item.startswith('{'):
            try:
                json_vars = json.loads(item)
            except json.JSONDecodeError as e:
                raise ParseError(f"Invalid JSON in extra vars: {e}")
            if not isinstance(json_vars, dict):
                raise ParseError("Extra vars JSON must be an object")
            result.update(json_vars)
            continue

        for pair in item.split():
            key, sep, value = pair.partition('=')
            if sep and key:
                result[key] = value

    return result


def main(args: Optional[List[str]] = None) -> int:
    """Main entrypoint for deploy-helper CLI."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    output = Output(color=parsed.color)

    try:
        extra_vars = parse_extra_vars(parsed.extra_vars)
    except ParseError as e:
        output.error(f"{e.kind}: {e}")
        return int(ExitCode.PARSE_ERROR)

    # Create and run the playbook runner
    from deploy_helper.engine.runner import PlaybookRunner

    runner = PlaybookRunner(
        playbook_path=parsed.playbook,
        inventory_source=parsed.inventory,
        extra_vars=extra_vars,
        output=output,
    )

    return runner.run()


if __name__ == "__main__":
    sys.exit(main())
