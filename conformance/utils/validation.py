"""
Schema validation for fixture documents.
"""

import re
from typing import Any, Dict, List

from conformance.classes.types import OPERATION_OBJECTS, TOPOLOGIES

FAIL_POINT_MODES = ("alwaysOn", "off")
VERSION_RE = re.compile(r"^\d+(\.\d+)*$")


def validate_run_on(run_on: Any) -> List[str]:
    """
    Validate the runOn requirements.

    Args:
        run_on: Value of the runOn field

    Returns:
        List of validation errors (empty if all validations pass)
    """
    errors = []

    if not isinstance(run_on, list):
        errors.append(f"runOn must be a list, got {type(run_on).__name__}")
        return errors

    for i, req in enumerate(run_on):
        if not isinstance(req, dict):
            errors.append(f"runOn[{i}] must be a mapping")
            continue
        for field in ("minServerVersion", "maxServerVersion"):
            version = req.get(field)
            if version is None:
                continue
            if not isinstance(version, str) or not VERSION_RE.match(version):
                errors.append(f"runOn[{i}].{field} is not a dotted version: {version!r}")
        topologies = req.get("topology")
        if topologies is None:
            continue
        if not isinstance(topologies, list):
            errors.append(f"runOn[{i}].topology must be a list")
            continue
        for topology in topologies:
            if topology not in TOPOLOGIES:
                errors.append(f"runOn[{i}].topology has unknown kind '{topology}'")

    return errors


def validate_fail_point(fail_point: Any, where: str) -> List[str]:
    """Validate a configureFailPoint document."""
    errors = []

    if not isinstance(fail_point, dict):
        errors.append(f"{where}.failPoint must be a mapping")
        return errors

    if not fail_point.get("configureFailPoint"):
        errors.append(f"{where}.failPoint is missing 'configureFailPoint'")

    mode = fail_point.get("mode")
    if isinstance(mode, dict):
        if set(mode) - {"times", "skip", "activationProbability"}:
            errors.append(f"{where}.failPoint.mode has unknown keys: {sorted(mode)}")
        times = mode.get("times")
        if times is not None and (not isinstance(times, int) or times < 0):
            errors.append(f"{where}.failPoint.mode.times must be a non-negative int")
    elif mode not in FAIL_POINT_MODES:
        errors.append(f"{where}.failPoint.mode is invalid: {mode!r}")

    data = fail_point.get("data", {})
    if not isinstance(data, dict):
        errors.append(f"{where}.failPoint.data must be a mapping")
    elif "failCommands" in data and not isinstance(data["failCommands"], list):
        errors.append(f"{where}.failPoint.data.failCommands must be a list")

    return errors


def validate_operations(operations: Any, where: str) -> List[str]:
    """Validate the operations of a test."""
    errors = []

    if not isinstance(operations, list) or not operations:
        errors.append(f"{where}.operations must be a non-empty list")
        return errors

    for i, op in enumerate(operations):
        if not isinstance(op, dict):
            errors.append(f"{where}.operations[{i}] must be a mapping")
            continue
        if not op.get("name"):
            errors.append(f"{where}.operations[{i}] is missing 'name'")
        if op.get("object") not in OPERATION_OBJECTS:
            errors.append(
                f"{where}.operations[{i}].object must be one of {OPERATION_OBJECTS}, "
                f"got {op.get('object')!r}"
            )
        if "error" in op and not isinstance(op["error"], bool):
            errors.append(f"{where}.operations[{i}].error must be a boolean")

    return errors


def validate_expectations(expectations: Any, where: str) -> List[str]:
    """Validate the expected command-started events of a test."""
    errors = []

    if not isinstance(expectations, list):
        errors.append(f"{where}.expectations must be a list")
        return errors

    for i, expectation in enumerate(expectations):
        event = expectation.get("command_started_event") if isinstance(expectation, dict) else None
        if not isinstance(event, dict):
            errors.append(f"{where}.expectations[{i}] is missing 'command_started_event'")
            continue
        command = event.get("command")
        if not isinstance(command, dict) or not command:
            errors.append(f"{where}.expectations[{i}].command_started_event.command must be a non-empty mapping")

    return errors


def validate_test_file(document: Dict[str, Any]) -> List[str]:
    """
    Validate a whole fixture document.

    Args:
        document: Loaded fixture document

    Returns:
        List of validation errors (empty if all validations pass)
    """
    errors = []

    if not isinstance(document, dict):
        errors.append("Fixture document is not a mapping")
        return errors

    if "runOn" in document:
        errors.extend(validate_run_on(document["runOn"]))

    if not isinstance(document.get("database_name"), str):
        errors.append("database_name must be a string")

    if "collection_name" in document and not isinstance(document["collection_name"], str):
        errors.append("collection_name must be a string")

    if "data" in document and not isinstance(document["data"], list):
        errors.append("data must be a list")

    tests = document.get("tests")
    if not isinstance(tests, list) or not tests:
        errors.append("tests must be a non-empty list")
        return errors

    seen = set()
    for i, test in enumerate(tests):
        where = f"tests[{i}]"
        if not isinstance(test, dict):
            errors.append(f"{where} must be a mapping")
            continue

        description = test.get("description")
        if not isinstance(description, str) or not description:
            errors.append(f"{where} is missing 'description'")
        elif description in seen:
            errors.append(f"{where} has duplicate description '{description}'")
        else:
            seen.add(description)

        if "clientOptions" in test and not isinstance(test["clientOptions"], dict):
            errors.append(f"{where}.clientOptions must be a mapping")

        if "failPoint" in test:
            errors.extend(validate_fail_point(test["failPoint"], where))

        errors.extend(validate_operations(test.get("operations"), where))

        if "expectations" in test:
            errors.extend(validate_expectations(test["expectations"], where))

    return errors
