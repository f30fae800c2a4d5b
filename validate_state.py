#!/usr/bin/env python3
"""Validate ledger state files against their schemas."""
import sys
from pathlib import Path

import yaml
from jsonschema import validate, ValidationError

from ledger.exceptions import StateLoadError
from ledger.loader import STATE_KINDS, load_schema, migrate_state

DEFAULT_DATA_DIR = Path("data")


def validate_state_file(filepath: Path, kind: str) -> list[str]:
    """Validate a single state file, after migrating it. Returns list of errors."""
    errors = []
    try:
        with open(filepath) as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            return [f"Expected a mapping at the top level, found {type(data).__name__}"]
        data = migrate_state(data)
        if data.get("kind") != kind:
            return [f"Expected {kind} state, found {data.get('kind')!r}"]
        validate(instance=data, schema=load_schema(kind))
    except yaml.YAMLError as e:
        errors.append(f"YAML parse error: {e}")
    except StateLoadError as e:
        errors.append(f"Version error: {e.detail}")
    except ValidationError as e:
        errors.append(f"Schema validation error: {e.message}")
        if e.path:
            errors.append(f"  at path: {'.'.join(str(p) for p in e.path)}")
    except OSError as e:
        errors.append(f"Error: {e}")
    return errors


def main(argv=None):
    """Validate vehicles.yaml and invoicing.yaml in a data directory."""
    args = sys.argv[1:] if argv is None else argv
    data_dir = Path(args[0]) if args else DEFAULT_DATA_DIR

    if not data_dir.exists():
        print(f"Error: data directory not found: {data_dir}")
        return 1

    state_files = [(data_dir / f"{kind}.yaml", kind) for kind in STATE_KINDS]
    state_files = [(path, kind) for path, kind in state_files if path.exists()]

    if not state_files:
        print(f"Warning: No state files found in {data_dir}")
        return 0

    all_valid = True
    for filepath, kind in state_files:
        errors = validate_state_file(filepath, kind)
        if errors:
            print(f"FAIL: {filepath.name}")
            for error in errors:
                print(f"  {error}")
            all_valid = False
        else:
            print(f"OK: {filepath.name}")

    return 0 if all_valid else 1


if __name__ == "__main__":
    sys.exit(main())
