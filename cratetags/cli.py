#!/usr/bin/env python3

from cratetags.commands.update import update_handler

# Single command: `cratetags TAGS_KIND`
cli = update_handler


def main():
    cli()

if __name__ == "__main__":
    main()
