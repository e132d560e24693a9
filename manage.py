#!/usr/bin/env python3
import configparser
import os
import sys
from collections import defaultdict
from typing import Dict, List, Optional

from django.core.management import ManagementUtility, get_commands
from django.core.management.color import color_style
from typing_extensions import override


def get_filtered_commands() -> Dict[str, str]:
    """Because Gatehouse uses management commands in production,
    `manage.py help` is a form of documentation for administrators.
    Here we exclude from that documentation built-in commands that are
    not constructive for them to run.
    """
    all_commands = get_commands()
    documented_commands = dict()
    documented_apps = [
        # "auth" removed because its commands are not applicable to
        #   accounts without passwords.
        # "contenttypes" removed because we don't use that subsystem.
        # "social_django" removed because its tables are social-core
        #   internals.
        "django.core",
        "gserver",
    ]
    documented_command_subsets = {
        "django.core": {
            "dbshell",
            "makemigrations",
            "migrate",
            "shell",
            "showmigrations",
            "test",
        },
    }
    for command, app in all_commands.items():
        if app not in documented_apps:
            continue
        if app in documented_command_subsets and command not in documented_command_subsets[app]:
            continue

        documented_commands[command] = app
    return documented_commands


class FilteredManagementUtility(ManagementUtility):
    """Replaces the main_help_text function of ManagementUtility with one
    that calls our get_filtered_commands(), rather than the default
    get_commands() function.
    """

    @override
    def main_help_text(self, commands_only: bool = False) -> str:
        """Return the script's main help text, as a string."""
        if commands_only:
            usage = sorted(get_filtered_commands())
        else:
            usage = [
                "",
                f"Type '{self.prog_name} help <subcommand>' for help on a specific subcommand.",
                "",
                "Available subcommands:",
            ]
            commands_dict = defaultdict(list)
            for name, app in get_filtered_commands().items():
                if app == "django.core":
                    app = "django"
                else:
                    app = app.rpartition(".")[-1]
                commands_dict[app].append(name)
            style = color_style()
            for app in sorted(commands_dict):
                usage.append("")
                usage.append(style.NOTICE(f"[{app}]"))
                usage.extend(f"    {name}" for name in sorted(commands_dict[app]))
            # Output an extra note if settings are not properly configured
            if self.settings_exception is not None:
                usage.append(
                    style.NOTICE(
                        "Note that only Django core commands are listed "
                        f"as settings are not properly configured (error: {self.settings_exception})."
                    )
                )

        return "\n".join(usage)


def execute_from_command_line(argv: Optional[List[str]] = None) -> None:
    """Run a FilteredManagementUtility."""
    utility = FilteredManagementUtility(argv)
    utility.execute()


if __name__ == "__main__":
    config_file = configparser.RawConfigParser()
    config_file.read("/etc/gatehouse/gatehouse.conf")
    PRODUCTION = config_file.has_option("machine", "deploy_type")
    HAS_SECRETS = os.access("/etc/gatehouse/gatehouse-secrets.conf", os.R_OK)

    if PRODUCTION and not HAS_SECRETS:
        # The secrets file is only readable by root and the gatehouse
        # user, so this is how we detect manage.py being run as someone
        # else before importing anything that would need it.
        print(
            "Error accessing Gatehouse secrets; manage.py in production must be run as the gatehouse user."
        )
        sys.exit(1)

    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "gproject.settings")
    from django.core.management.base import CommandError

    if "--no-traceback" not in sys.argv and len(sys.argv) > 1:
        sys.argv.append("--traceback")
    try:
        execute_from_command_line(sys.argv)
    except CommandError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
