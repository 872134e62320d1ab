"""
Utilities for locating and loading fixture files.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import yaml

from conformance import FIXTURES_DIR
from conformance.classes.types import SpecTestCase, SpecTestFile

logger = logging.getLogger(__name__)

FIXTURE_SUFFIXES = (".yml", ".yaml", ".json")


def list_fixture_files(spec_dir: Optional[Union[str, Path]] = None) -> List[Path]:
    """
    List fixture files under a directory.

    Args:
        spec_dir: Directory to search recursively. Defaults to the bundled fixtures.

    Returns:
        Sorted list of fixture paths
    """
    root = Path(spec_dir) if spec_dir is not None else FIXTURES_DIR
    if not root.is_dir():
        raise FileNotFoundError(f"Fixture directory '{root}' does not exist.")
    return sorted(p for p in root.rglob("*") if p.suffix in FIXTURE_SUFFIXES)


def expand_paths(paths: Iterable[Union[str, Path]]) -> List[Path]:
    """Expand directories into the fixture files they contain."""
    files = []
    for p in paths:
        p = Path(p)
        if p.is_dir():
            files.extend(list_fixture_files(p))
        else:
            files.append(p)
    return files


def load_spec_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a fixture document.

    YAML anchors, aliases and merge keys are resolved by the loader.

    Args:
        path: Path to a .yml/.yaml or .json fixture

    Returns:
        The fixture document as a dictionary
    """
    path = Path(path)
    logger.debug(f"Loading fixture {path}")
    with open(path) as f:
        if path.suffix == ".json":
            document = json.load(f)
        else:
            document = yaml.safe_load(f)

    if not isinstance(document, dict):
        raise ValueError(f"{path}: fixture must be a mapping, got {type(document).__name__}")
    return document


def load_test_file(path: Union[str, Path]) -> SpecTestFile:
    """Load and parse a fixture file."""
    return SpecTestFile.from_json(load_spec_file(path), str(path))


def iter_test_cases(
    paths: Optional[Iterable[Union[str, Path]]] = None,
) -> Iterator[Tuple[SpecTestFile, SpecTestCase]]:
    """Yield (file, test case) pairs for every scenario in the given fixtures."""
    files = expand_paths(paths) if paths else list_fixture_files()
    for path in files:
        test_file = load_test_file(path)
        logger.debug(f"{path}: {len(test_file.tests)} test(s)")
        for test_case in test_file.tests:
            yield test_file, test_case
