#!/usr/bin/env python3
"""Connection parameters from Percona-toolkit DSNs, MySQL option files and CLI flags"""
import configparser
import os
from collections import namedtuple

from random_data_load_utils import debug_print

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3306
DEFAULT_CONFIG_FILE = "~/.my.cnf"
CONFIG_SECTION = "client"

# DSN key -> ConnectionParams field
DSN_KEYS = {
    "h": "host",
    "P": "port",
    "u": "user",
    "p": "password",
    "D": "database",
    "t": "table",
    "S": "socket",
    "F": "config_file",
}

ConnectionParams = namedtuple("ConnectionParams", ["host", "port", "user", "password", "database",
                                                   "table", "socket", "config_file"])


class ConfigError(Exception):
    """Invalid or incomplete connection settings."""


def parse_dsn(value):
    """
    Parse a DSN like "h=localhost,P=3306,u=root,D=sakila,t=film".

    Returns:
        Dict of ConnectionParams field -> string value for the keys present
    """
    result = {}
    for part in (value or "").split(","):
        part = part.strip()
        if not part:
            continue
        key, sep, val = part.partition("=")
        if not sep:
            raise ConfigError("invalid DSN part {0!r}: expected key=value".format(part))
        field = DSN_KEYS.get(key.strip())
        if field is None:
            raise ConfigError("unknown DSN key {0!r}".format(key))
        result[field] = val
    return result


def load_mysql_config_file(path, required=False):
    """
    Read host/port/user/password/socket from the [client] section of a MySQL option file.

    Args:
        path: Option file path, "~" is expanded
        required: Raise ConfigError if the file cannot be read

    Returns:
        Dict of ConnectionParams field -> value
    """
    expanded = os.path.expanduser(path)
    parser = configparser.ConfigParser(allow_no_value=True, strict=False,
                                       interpolation=None, comment_prefixes=("#", ";", "!"))
    try:
        with open(expanded, "r", encoding="utf-8") as f:
            parser.read_file(f)
    except (IOError, configparser.Error) as e:
        if required:
            raise ConfigError("cannot parse config file {0}: {1}".format(path, e))
        debug_print("Skipping config file {0}: {1}".format(path, e))
        return {}

    if not parser.has_section(CONFIG_SECTION):
        return {}
    section = parser[CONFIG_SECTION]
    result = {}
    for key in ("host", "port", "user", "password", "socket"):
        if section.get(key) is not None:
            result[key] = section.get(key).strip().strip("'\"")
    return result


def _to_port(value):
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError("invalid port {0!r}".format(value))
    if not 0 < port < 65536:
        raise ConfigError("invalid port {0!r}".format(value))
    return port


def resolve_connection_params(dsn=None, config_file=None, **overrides):
    """
    Merge connection settings, lowest to highest precedence: option file, DSN, overrides.

    Args:
        dsn: Percona-toolkit DSN string
        config_file: MySQL option file; defaults to the DSN's F key, then ~/.my.cnf
        **overrides: ConnectionParams fields given explicitly (None means unset)

    Returns:
        ConnectionParams

    Raises:
        ConfigError: if the database or table is missing or the port is invalid
    """
    dsn_values = parse_dsn(dsn)
    config_file = config_file or dsn_values.get("config_file")
    if config_file:
        settings = load_mysql_config_file(config_file, required=True)
    else:
        config_file = DEFAULT_CONFIG_FILE
        settings = load_mysql_config_file(config_file)

    settings.update(dsn_values)
    for key, value in overrides.items():
        if key not in ConnectionParams._fields:
            raise TypeError("unexpected setting {0!r}".format(key))
        if value is not None and value != "":
            settings[key] = value

    if not settings.get("database"):
        raise ConfigError("you need to specify a database")
    if not settings.get("table"):
        raise ConfigError("you need to specify a table name")

    return ConnectionParams(
        host=settings.get("host") or DEFAULT_HOST,
        port=_to_port(settings.get("port") or DEFAULT_PORT),
        user=settings.get("user"),
        password=settings.get("password"),
        database=settings["database"],
        table=settings["table"],
        socket=settings.get("socket"),
        config_file=config_file,
    )
