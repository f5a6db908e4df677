import argparse
import json
from pathlib import Path
import sys
from typing import Any, Dict, List
from .config import CONFIG_FILE, REQUIRED_SCHEMA

# --- Path Loader ---

def get_abs_path(usr_path_str: str | Path, root_path: Path | None = None) -> Path:
    user_path = Path(usr_path_str)

    if user_path.is_absolute():
        return user_path
    # Relative paths are taken from the directory the command runs in
    return (root_path or Path.cwd()) / user_path

# --- Custom Exception for Configuration ---

class ConfigError(Exception):
    """Custom exception for configuration loading or validation errors."""
    pass

# --- CONFIGURATION SCHEMA & VALIDATION ---

def validate_config_schema(config: Dict[str, Any], schema: Dict[str, Any] = REQUIRED_SCHEMA, path: str = "") -> List[str]:
    """
    Recursively validates a configuration dict against a schema.

    Schema leaves are either a type or a tuple of allowed types. Nested dicts
    are validated recursively and their errors are reported with a dotted path.
    """
    errors: List[str] = []
    for key, expected in schema.items():
        current_path = f"{path}.{key}" if path else key

        if key not in config:
            errors.append(f"Schema Error: Missing required key '{current_path}'")
            continue

        actual_value = config[key]

        if isinstance(expected, tuple):
            if type(actual_value) not in expected:
                type_names = ", ".join(t.__name__ for t in expected)
                errors.append(f"Schema Error: Key '{current_path}' has wrong type. "
                              f"Expected one of ({type_names}), but got {type(actual_value).__name__}.")
        elif isinstance(expected, type):
            # bool is an int subclass, don't let True pass as a round count
            if not isinstance(actual_value, expected) or (expected is int and isinstance(actual_value, bool)):
                errors.append(f"Schema Error: Key '{current_path}' has wrong type. "
                              f"Expected {expected.__name__}, but got {type(actual_value).__name__}.")
        elif isinstance(expected, dict):
            if not isinstance(actual_value, dict):
                errors.append(f"Schema Error: Key '{current_path}' should be a dictionary, "
                              f"but got {type(actual_value).__name__}.")
            else:
                errors.extend(validate_config_schema(actual_value, expected, path=current_path))
    return errors

def validate_config_values(config: Dict[str, Any]) -> List[str]:
    """Checks the few values whose range matters to the search."""
    errors: List[str] = []
    search = config.get('search', {})
    if isinstance(search.get('max_rounds'), int) and search['max_rounds'] < 1:
        errors.append(f"Value Error: 'search.max_rounds' must be at least 1, got {search['max_rounds']}.")
    if isinstance(search.get('log_interval'), int) and search['log_interval'] < 1:
        errors.append(f"Value Error: 'search.log_interval' must be at least 1, got {search['log_interval']}.")
    openers = config.get('seed', {}).get('openers')
    if isinstance(openers, list):
        for word in openers:
            if not isinstance(word, str) or len(word) != 5 or not word.isalpha():
                errors.append(f"Value Error: 'seed.openers' entry {word!r} is not a 5-letter word.")
    return errors

# --- CONFIGURATION LOADING & MERGING ---

def deep_merge(source: dict, destination: dict) -> dict:
    """
    Recursively merges a source dictionary into a destination dictionary.
    """
    for key, value in source.items():
        if isinstance(value, dict) and key in destination and isinstance(destination[key], dict):
            destination[key] = deep_merge(value, destination[key])
        else:
            destination[key] = value
    return destination


def _parse_cli_value(value: Any) -> Any:
    """
    Parses a string from the CLI into a Python type.
    Handles None, bool, int, float, lists, and falls back to string.
    """
    if not isinstance(value, str):
        return value

    stripped_val = value.strip()

    if (stripped_val.startswith('[') and stripped_val.endswith(']')) or \
       (stripped_val.startswith('(') and stripped_val.endswith(')')):
        inner_val = stripped_val[1:-1]
        if not inner_val.strip():
            return []
        return [_parse_cli_value(item) for item in inner_val.split(',')]

    if ',' in stripped_val:
        return [_parse_cli_value(item) for item in stripped_val.split(',')]

    val_lower = stripped_val.lower()
    if val_lower in ['none', 'null']:
        return None
    if val_lower == 'true':
        return True
    if val_lower == 'false':
        return False
    if stripped_val.lstrip('-').isdigit():
        return int(stripped_val)
    try:
        return float(stripped_val)
    except ValueError:
        return stripped_val


def set_nested_value(d: dict, key_path: str, value: str):
    """
    Sets a value in a nested dictionary using a dot-separated key path.
    """
    keys = key_path.split('.')
    for key in keys[:-1]:
        d = d.setdefault(key, {})
    d[keys[-1]] = _parse_cli_value(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="expectedwordle",
                                     description="Expected-moves Wordle precomputation")
    parser.add_argument("-c", "--config", type=Path, help="Path to a custom configuration JSON file.")
    parser.add_argument('--set', nargs=2, action='append', metavar=('KEY', 'VALUE'), help="Override a config value using dot notation.")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("seed", help="Load the word list and insert the round 1 opener rows.")
    precompute = subparsers.add_parser("precompute", help="Compute round 2 best guesses for every round 1 opener.")
    precompute.add_argument("--rank", action="store_true", help="Evaluate the openers exactly before round 2.")
    precompute.add_argument("--bootstrap", action="store_true",
                            help="Start opener ranking from the best seeded estimate instead of no bound. Implies --rank.")
    lookup = subparsers.add_parser("lookup", help="Look up a precomputed best guess.")
    lookup.add_argument("previous_guess", help="Word played in round 1.")
    lookup.add_argument("feedback", help="Feedback seen, e.g. 20100 or GYBBB.")
    lookup.add_argument("--round", type=int, default=2, dest="round_number")
    return parser


def parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Defines and parses command-line arguments."""
    return build_parser().parse_args(argv)


def load_config(args: argparse.Namespace | None = None) -> dict:
    """
    Loads, merges, and validates configuration from multiple sources.
    Raises ConfigError if loading or validation fails.
    """
    if not CONFIG_FILE.exists():
        raise ConfigError(f"Fatal Error: Default config file not found at {CONFIG_FILE}")

    with open(CONFIG_FILE) as f:
        final_config = json.load(f)

    custom_path = getattr(args, 'config', None)
    if custom_path:
        config = get_abs_path(custom_path)
        if config.exists():
            try:
                with open(config) as f:
                    custom_data = json.load(f)
                final_config = deep_merge(source=custom_data, destination=final_config)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Error parsing custom config file at '{config}': {e}")
        else:
            print(f"Warning: Custom config file not found at {config}", file=sys.stderr)

    for key, value in getattr(args, 'set', None) or []:
        set_nested_value(final_config, key, value)

    validation_errors = validate_config_schema(final_config)
    if not validation_errors:
        validation_errors = validate_config_values(final_config)
    if validation_errors:
        header = "Configuration validation failed with the following errors:"
        full_error_message = "\n".join([header] + [f"  - {e}" for e in validation_errors])
        raise ConfigError(full_error_message)

    return final_config
