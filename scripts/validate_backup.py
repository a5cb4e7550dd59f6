#!/usr/bin/env python3
"""
Backup validation script.

Checks that a Haku backup file would be accepted by an import, without
touching any stored data. Prints the schema version found and, for rejected
files, every validation error.

Usage:
    python scripts/validate_backup.py path/to/haku-export.json
"""

import json
import sys
from pathlib import Path

from haku.logging_config import setup_logging, get_logger
from haku.services.export_import import reject_json_constant
from haku.services.migration import migrate_persisted_state, resolve_schema_version
from haku.services.validation import ValidationFailure, validate_payload
from haku.state_schema import CURRENT_SCHEMA_VERSION, is_supported_version

setup_logging()
logger = get_logger(__name__)


def print_section_header(title: str):
    """Print a formatted section header."""
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)


def validate_file(path: Path) -> bool:
    """Validate one backup file.

    Returns:
        True if an import would accept the file
    """
    print_section_header(f"Validating {path}")

    if not path.name.endswith(".json"):
        print("✗ File name must end in .json")
        return False

    try:
        raw = json.loads(path.read_text(encoding="utf-8"), parse_constant=reject_json_constant)
    except (OSError, UnicodeDecodeError) as e:
        print(f"✗ Cannot read file: {e}")
        return False
    except (ValueError, RecursionError) as e:
        print(f"✗ Not valid JSON: {e}")
        return False
    print("✓ Valid JSON")

    if not isinstance(raw, dict):
        print(f"✗ Top level is a {type(raw).__name__}, expected an object")
        return False

    version = resolve_schema_version(raw)
    if not is_supported_version(version):
        print(f"✗ Unsupported schema version: {version!r} (current is {CURRENT_SCHEMA_VERSION})")
        return False
    print(f"✓ Schema version {version}")

    result = validate_payload(raw, version)
    if isinstance(result, ValidationFailure):
        print("✗ Payload does not match the schema:")
        for error in result.errors:
            print(f"    - {error}")
        return False
    print(f"✓ {len(result.activities)} activities match schema {version}")

    state = migrate_persisted_state(raw)
    if state is None:
        print(f"✗ Migration to schema {CURRENT_SCHEMA_VERSION} failed")
        return False
    if version != CURRENT_SCHEMA_VERSION:
        print(f"✓ Migrates to schema {CURRENT_SCHEMA_VERSION}")

    return True


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)

    results = [validate_file(Path(arg)) for arg in sys.argv[1:]]
    print_section_header("Summary")
    print(f"{sum(results)}/{len(results)} files valid")
    sys.exit(0 if all(results) else 1)


if __name__ == "__main__":
    main()
