#!/usr/bin/env python3
"""
Configuration Validation
Validates deploy-config.yaml against the JSON schema and cross-field rules
"""

import argparse
import json
import sys
from pathlib import Path

import jsonschema
import yaml

SCHEMA_FILE = Path(__file__).parent / 'deploy-config-schema.json'


def load_schema():
    with open(SCHEMA_FILE, 'r') as f:
        return json.load(f)


def validate_against_schema(config):
    """
    Validate config against JSON schema.
    Returns (is_valid, errors_list)
    """
    try:
        schema = load_schema()
    except (OSError, json.JSONDecodeError) as e:
        return False, [f"Error loading schema file: {e}"]

    validator = jsonschema.Draft7Validator(schema)
    errors = []
    for error in sorted(validator.iter_errors(config), key=lambda e: list(e.path)):
        error_path = ' -> '.join(str(p) for p in error.path) if error.path else 'root'
        errors.append(f"Schema validation failed at '{error_path}': {error.message}")

    return len(errors) == 0, errors


def check_rules(config):
    """Rules a schema cannot express. Returns list of errors."""
    errors = []
    deployment = config.get('deployment', {})

    app_dir = deployment.get('app_dir')
    backup_dir = deployment.get('backup_dir')
    if app_dir and backup_dir:
        app_path = Path(app_dir)
        backup_path = Path(backup_dir)
        if app_path == backup_path:
            errors.append("backup_dir must differ from app_dir")
        elif app_path in backup_path.parents:
            errors.append("backup_dir must not live inside app_dir (the wipe would delete it)")

    for name in deployment.get('preserve', []):
        if '/' in name or name in ('.', '..'):
            errors.append(f"preserve entries must be top-level names: '{name}'")

    if config.get('storage', {}).get('backend') == 's3' and not config.get('s3', {}).get('bucket_name'):
        errors.append("storage backend 's3' requires s3.bucket_name")

    return errors


def validate_config(config):
    """
    Validate a merged configuration dict.
    Uses JSON schema validation + cross-field rules.
    """
    if not config:
        return False, ["Configuration is empty"]

    is_valid, schema_errors = validate_against_schema(config)
    if not is_valid:
        return False, schema_errors

    errors = check_rules(config)
    return len(errors) == 0, errors


def main(argv=None):
    """Validate a configuration file from the command line."""
    parser = argparse.ArgumentParser(description='Validate appdeploy configuration files')
    parser.add_argument('--file', required=True, help='Configuration file to validate')
    args = parser.parse_args(argv)

    # Imported here: the deployment package depends on this module.
    from ..deployment.utils import DEFAULT_CONFIG, deep_merge

    config_file = Path(args.file)
    print(f"\n=== CONFIG VALIDATION ===")
    print(f"File: {config_file}\n")

    try:
        with open(config_file, 'r') as f:
            file_config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        print(f"[FAILED] Could not read {config_file}: {e}")
        sys.exit(1)

    is_valid, errors = validate_config(deep_merge(DEFAULT_CONFIG, file_config))

    if is_valid:
        print("[OK] Configuration is valid")
    else:
        print("[FAILED] Configuration validation failed")
        for error in errors:
            print(f"  - {error}")

    print(f"\n=== RESULT: {'PASSED' if is_valid else f'FAILED ({len(errors)} errors)'} ===\n")
    sys.exit(0 if is_valid else 1)


if __name__ == '__main__':
    main()
