#!/usr/bin/env python3
"""Pre-compiled regex patterns used while reading schemas and picking generators"""
import re


class CompiledPatterns:
    """
    Pre-compiled regex patterns to avoid repeated compilation.

    Column name hints are matched against the lower-cased column name.
    """

    EMAIL_PATTERN = re.compile(r"email")
    FIRST_NAME_PATTERN = re.compile(r"first.*name")
    LAST_NAME_PATTERN = re.compile(r"last.*name")
    NAME_PATTERN = re.compile(r"name")
    PHONE_PATTERN = re.compile(r"phone")
    ZIP_PATTERN = re.compile(r"zip")
    COLOR_PATTERN = re.compile(r"colou?r")
    CITY_PATTERN = re.compile(r"city")
    COUNTRY_PATTERN = re.compile(r"country")
    ADDRESS_PATTERN = re.compile(r"address")
    IP_ADDRESS_PATTERN = re.compile(r"(?:^|_)ip(?:_?addr(?:ess)?)?(?:_|$)")

    # SQL parsing patterns for ENUM/SET extraction
    ENUM_PATTERN = re.compile(r"'((?:[^']|(?:''))*)'")

    # Declared display width, e.g. tinyint(1) or varchar(255)
    TYPE_SIZE_PATTERN = re.compile(r"^\s*(\w+)\s*\(\s*(\d+)")


def parse_enum_values(column_type):
    """
    Extract the allowed values from an ENUM or SET column type.

    Args:
        column_type: COLUMN_TYPE string, e.g. "enum('a','it''s')"

    Returns:
        List of unique values in declaration order
    """
    m = CompiledPatterns.ENUM_PATTERN.findall(column_type or "")
    return unique_list(v.replace("''", "'") for v in m)


def declared_size(column_type):
    """Return the declared size of a column type like tinyint(1), or None"""
    m = CompiledPatterns.TYPE_SIZE_PATTERN.match(column_type or "")
    return int(m.group(2)) if m else None


def unique_list(items):
    """
    Create a list of unique items preserving order.

    Args:
        items: Iterable of items

    Returns:
        List of unique items in order of first appearance
    """
    return list(dict.fromkeys(items))
