"""Entry point for the ``appscout`` console script."""

import os
import sys


def main():
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")
    from django.core.management import execute_from_command_line

    execute_from_command_line(["appscout", "scout", *sys.argv[1:]])


if __name__ == "__main__":
    main()
