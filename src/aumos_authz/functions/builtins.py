"""Built-in matching predicates available inside matcher expressions.

All functions are pure and stateless.  They are registered in every
:class:`~aumos_authz.functions.function_map.FunctionMap` under their
matcher names:

============  ==================  ============================================
Matcher name  Python function     Semantics
============  ==================  ============================================
keyMatch      key_match           exact, or trailing ``*`` prefix wildcard
keyMatch2     key_match2          path template with ``*`` and ``:name``
keyMatch3     key_match3          path template with ``*`` and ``{name}``
regexMatch    regex_match         ``re.search`` (unanchored)
ipMatch       ip_match            IP equality or CIDR containment
globMatch     glob_match          shell-glob match
============  ==================  ============================================

Example
-------
>>> key_match2("/resource1/alice", "/resource1/:id")
True
>>> ip_match("192.168.2.123", "192.168.2.0/24")
True
"""
from __future__ import annotations

import fnmatch
import ipaddress
import re
from functools import lru_cache
from typing import Callable

_NAMED_COLON_SEGMENT = re.compile(r":[^/]+")
_NAMED_BRACE_SEGMENT = re.compile(r"\{[^/]+?\}")


@lru_cache(maxsize=1024)
def _compile_anchored(pattern: str) -> re.Pattern[str]:
    return re.compile(f"^{pattern}$")


def key_match(key1: str, key2: str) -> bool:
    """Match ``key1`` against ``key2``, where ``key2`` may end in ``*``.

    ``"/alice_data/resource1"`` matches ``"/alice_data/*"``.
    """
    index = key2.find("*")
    if index == -1:
        return key1 == key2
    if len(key1) > index:
        return key1[:index] == key2[:index]
    return key1 == key2[:index]


def key_match2(key1: str, key2: str) -> bool:
    """Match a URL path against a template with ``*`` and ``:name`` segments.

    ``"/resource1/alice"`` matches ``"/resource1/:id"``.
    """
    pattern = key2.replace("/*", "/.*")
    pattern = _NAMED_COLON_SEGMENT.sub("[^/]+", pattern)
    return _compile_anchored(pattern).match(key1) is not None


def key_match3(key1: str, key2: str) -> bool:
    """Match a URL path against a template with ``*`` and ``{name}`` segments.

    ``"/resource1/alice"`` matches ``"/resource1/{id}"``.
    """
    pattern = key2.replace("/*", "/.*")
    pattern = _NAMED_BRACE_SEGMENT.sub("[^/]+", pattern)
    return _compile_anchored(pattern).match(key1) is not None


def regex_match(key1: str, pattern: str) -> bool:
    """Return True when ``pattern`` is found anywhere in ``key1``."""
    return re.search(pattern, key1) is not None


def ip_match(ip: str, cidr_or_ip: str) -> bool:
    """Return True when ``ip`` equals or lies inside ``cidr_or_ip``.

    Raises
    ------
    ValueError
        If either argument is not a valid address or network.
    """
    address = ipaddress.ip_address(ip.strip())
    if "/" not in cidr_or_ip:
        return address == ipaddress.ip_address(cidr_or_ip.strip())
    network = ipaddress.ip_network(cidr_or_ip.strip(), strict=False)
    return address in network


def glob_match(key1: str, pattern: str) -> bool:
    """Shell-glob match, case-sensitive on every platform."""
    return fnmatch.fnmatchcase(key1, pattern)


BUILTIN_FUNCTIONS: dict[str, Callable[..., bool]] = {
    "keyMatch": key_match,
    "keyMatch2": key_match2,
    "keyMatch3": key_match3,
    "regexMatch": regex_match,
    "ipMatch": ip_match,
    "globMatch": glob_match,
}
