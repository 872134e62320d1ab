"""
Matching of expected fixture values against observed driver values.
"""

from collections.abc import Mapping
from numbers import Number
from typing import Any, List, Sequence

# Legacy fixtures use 42 where any value is acceptable (cursor ids, lsids, ...).
ANY_VALUE = 42


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def match_document(expected: Any, actual: Any, path: str = "") -> List[str]:
    """
    Match an expected value against an actual one.

    Mappings match as subsets: keys absent from the expected mapping are
    ignored, an expected None requires the key to be absent or null.

    Args:
        expected: Value from the fixture
        actual: Value observed from the driver
        path: Dotted location used in error messages

    Returns:
        List of mismatches (empty if the values match)
    """
    where = path or "<root>"

    if isinstance(expected, int) and not isinstance(expected, bool) and expected == ANY_VALUE:
        return [] if actual is not None else [f"{where}: expected a value, got nothing"]

    if expected is None:
        return [] if actual is None else [f"{where}: expected null or absent, got {actual!r}"]

    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return [f"{where}: expected a document, got {actual!r}"]
        errors = []
        for key, value in expected.items():
            child = f"{path}.{key}" if path else str(key)
            if key not in actual:
                if value is not None:
                    errors.append(f"{child}: missing from actual")
                continue
            errors.extend(match_document(value, actual[key], child))
        return errors

    if isinstance(expected, Sequence) and not isinstance(expected, (str, bytes)):
        if not isinstance(actual, Sequence) or isinstance(actual, (str, bytes)):
            return [f"{where}: expected a list, got {actual!r}"]
        if len(expected) != len(actual):
            return [f"{where}: expected {len(expected)} item(s), got {len(actual)}"]
        errors = []
        for i, (e, a) in enumerate(zip(expected, actual)):
            errors.extend(match_document(e, a, f"{path}[{i}]"))
        return errors

    if _is_number(expected) and _is_number(actual):
        return [] if expected == actual else [f"{where}: expected {expected!r}, got {actual!r}"]

    if type(expected) is bool or type(actual) is bool:
        if type(expected) is not type(actual) or expected != actual:
            return [f"{where}: expected {expected!r}, got {actual!r}"]
        return []

    if expected != actual:
        return [f"{where}: expected {expected!r}, got {actual!r}"]
    return []


def match_events(expected: Sequence, actual: Sequence) -> List[str]:
    """
    Match expected command-started events against observed ones, in order.

    Args:
        expected: ExpectedCommandEvent list from the fixture
        actual: pymongo CommandStartedEvent list (or objects with the same attributes)

    Returns:
        List of mismatches (empty if the events match)
    """
    errors = []

    if len(expected) != len(actual):
        errors.append(
            f"Expected {len(expected)} command started event(s), got {len(actual)}: "
            f"{[e.command_name for e in actual]}"
        )

    for i, (exp, act) in enumerate(zip(expected, actual)):
        if exp.command_name != act.command_name:
            errors.append(
                f"event[{i}]: expected command '{exp.command_name}', got '{act.command_name}'"
            )
            continue
        if exp.database_name is not None and exp.database_name != act.database_name:
            errors.append(
                f"event[{i}]: expected database '{exp.database_name}', got '{act.database_name}'"
            )
        errors.extend(
            f"event[{i}]: {e}" for e in match_document(exp.command, act.command, "command")
        )

    return errors
