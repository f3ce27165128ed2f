"""Catalogue loader - finds, parses and validates template catalogues."""

import logging
from pathlib import Path
from typing import Iterable, Optional

import yaml
from pydantic import ValidationError

from ..errors import CatalogueError
from ..models.catalogue import Catalogue
from ..models.conditions import ConditionSyntaxError
from ..phases.validation import ValidationResult, validate_catalogue

logger = logging.getLogger(__name__)

# Catalogues shipped with the package
BUNDLED_DIR = Path(__file__).resolve().parent.parent / "catalogues"
CATALOGUE_SUFFIXES = (".yaml", ".yml")


def _search_dirs(search_paths: Iterable[str | Path] = ()) -> list[Path]:
    return [Path(p) for p in search_paths] + [BUNDLED_DIR]


def list_catalogues(search_paths: Iterable[str | Path] = ()) -> dict[str, Path]:
    """
    Map catalogue names to files.

    Earlier search paths shadow later ones; bundled catalogues come last.
    """
    found: dict[str, Path] = {}
    for directory in _search_dirs(search_paths):
        if not directory.is_dir():
            logger.debug(f"Catalogue search path does not exist: {directory}")
            continue
        for path in sorted(directory.iterdir()):
            if path.suffix in CATALOGUE_SUFFIXES and path.stem not in found:
                found[path.stem] = path
    return found


def resolve_catalogue_path(source: str | Path, search_paths: Iterable[str | Path] = ()) -> Path:
    """
    Resolve a catalogue name or file path.

    Raises:
        FileNotFoundError: If nothing matches
    """
    path = Path(source)
    if path.suffix in CATALOGUE_SUFFIXES and path.exists():
        return path

    available = list_catalogues(search_paths)
    if str(source) in available:
        return available[str(source)]

    names = ", ".join(sorted(available)) or "none"
    raise FileNotFoundError(f"Catalogue not found: {source} (available: {names})")


def parse_catalogue(data: dict, source: str = "<memory>") -> tuple[Catalogue, ValidationResult]:
    """
    Build and validate a catalogue from already-loaded YAML data.

    Raises:
        CatalogueError: On schema or semantic errors
    """
    if not isinstance(data, dict):
        raise CatalogueError(f"{source}: catalogue must be a mapping")

    try:
        catalogue = Catalogue(**data)
    except (ValidationError, ConditionSyntaxError) as e:
        errors = [str(e)]
        if isinstance(e, ValidationError):
            errors = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
        raise CatalogueError(f"{source}: catalogue schema is invalid", errors=errors) from e

    result = validate_catalogue(catalogue)
    for warning in result.warnings:
        logger.warning(f"{catalogue.name}: {warning}")
    if not result.is_valid:
        raise CatalogueError(f"{source}: catalogue failed validation", errors=result.errors)

    return catalogue, result


def check_catalogue_file(path: str | Path) -> ValidationResult:
    """
    Validate a catalogue file and report every problem instead of raising.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Catalogue file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        _, result = parse_catalogue(data, source=str(path))
    except yaml.YAMLError as e:
        return ValidationResult(is_valid=False, errors=[f"Invalid YAML: {e}"])
    except CatalogueError as e:
        name = data.get("name", "") if isinstance(data, dict) else ""
        result = ValidationResult(is_valid=False, errors=e.errors or [str(e)], catalogue_name=name)
    return result


def load_catalogue(source: str | Path, search_paths: Optional[Iterable[str | Path]] = None) -> Catalogue:
    """
    Load a catalogue by name or path.

    Args:
        source: Catalogue name (e.g. "maven-plugins") or YAML file path
        search_paths: Extra directories searched before the bundled ones

    Returns:
        Validated Catalogue

    Raises:
        FileNotFoundError: If the catalogue cannot be found
        CatalogueError: If the catalogue is invalid
    """
    path = resolve_catalogue_path(source, search_paths or ())

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise CatalogueError(f"{path}: invalid YAML", errors=[str(e)]) from e

    catalogue, result = parse_catalogue(data, source=str(path))
    logger.info(
        f"Loaded catalogue {catalogue.name} v{catalogue.version}: "
        f"{result.questions_found} question(s), {result.features_found} feature(s)"
    )
    return catalogue
