# main.py
# -*- coding: utf-8 -*-
import argparse
import logging
import sys

import config


def setup_logging(verbose=False, log_file=None):
    """Configure the root logger: console plus an optional log file."""
    log_format = '%(asctime)s - %(levelname)s - %(message)s'
    log_datefmt = '%H:%M:%S'
    log_formatter = logging.Formatter(log_format, log_datefmt)
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_formatter)
    # Keep the console quiet unless asked, command output goes to stdout
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(log_formatter)
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    logging.debug("Logging configured.")


def build_parser():
    parser = argparse.ArgumentParser(prog="gamesl", description=f'{config.APP_NAME} game save backup manager.')
    parser.add_argument("--version", action="version", version=f"{config.APP_NAME} {config.APP_VERSION}")
    parser.add_argument("--work-dir", help="Folder holding config.json and the backup folder.")
    parser.add_argument("--steam-uid", help="Steam account id used for {SteamUID}.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging.")
    parser.add_argument("--log-file", help="Also write the log to this file.")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("games", help="List games and their save paths.")
    sub.add_parser("accounts", help="List Steam accounts.")

    p = sub.add_parser("backup", help="Back up a game.")
    p.add_argument("game")
    p.add_argument("--remark", help="Note stored with the backup.")

    p = sub.add_parser("backups", help="List the backups of a game.")
    p.add_argument("game")

    p = sub.add_parser("remark", help="Edit (or clear, with an empty text) a backup remark.")
    p.add_argument("game")
    p.add_argument("file")
    p.add_argument("text")

    for name, help_text in (("delete", "Move a backup to the trash."),
                            ("restore", "Restore a backup over the current save.")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("game")
        p.add_argument("file")
        p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation.")

    p = sub.add_parser("move", help="Change the position of a game in the list.")
    p.add_argument("game")
    p.add_argument("direction", choices=["up", "down", "top"])

    p = sub.add_parser("set", help="Change a preference.")
    p.add_argument("name", choices=["relative-time", "extra-backup"])
    p.add_argument("value", choices=["on", "off"])

    sub.add_parser("settings", help="Show preferences.")
    sub.add_parser("open-folder", help="Open the backup folder.")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    import game_saver_cli
    return game_saver_cli.run(args)


if __name__ == "__main__":
    sys.exit(main())
