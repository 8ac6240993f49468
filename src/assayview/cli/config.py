"""
Backend configuration files for the assayview CLI.

A config file (YAML or JSON) describes where an assay lives and, optionally,
how to align its sample identifiers:

```yaml
backend:
  kind: remote                      # memory | local | remote
  table: isb-cgc.TCGA_hg38_data_v0.DNA_Methylation
  feature_column: probe_id
  sample_column: case_barcode
  value_column: beta_value
  billing_env: GOOGLE_CLOUD_PROJECT # name of the variable, never the value
  timeout: 120
  col_annotation: clinical.csv
alignment:
  prefix_length: 12
```

Relative paths are resolved against the config file's directory.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import yaml

from assayview.backends.local import LocalFileBackend
from assayview.backends.remote import DEFAULT_BILLING_ENV, RemoteServiceBackend
from assayview.core.view import AssayView
from assayview.io.alignment import SampleIdAligner
from assayview.io.loaders import load, load_csv_matrix

BACKEND_KINDS = ('memory', 'local', 'remote')


@dataclass
class BackendConfig:
    """Where the assay payload lives."""
    kind: str = "memory"
    path: Optional[Path] = None
    directory: Optional[Path] = None
    table: Optional[str] = None
    feature_column: str = "feature_id"
    sample_column: str = "sample_id"
    value_column: str = "value"
    billing_env: str = DEFAULT_BILLING_ENV
    timeout: Optional[float] = None
    row_annotation: Optional[Path] = None
    col_annotation: Optional[Path] = None


@dataclass
class AlignmentConfig:
    """Sample identifier alignment."""
    prefix_length: Optional[int] = None
    pattern: Optional[str] = None


@dataclass
class ConfigSchema:
    """Complete configuration for one assay source."""
    backend: BackendConfig
    alignment: Optional[AlignmentConfig] = None


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix not in ('.yaml', '.yml', '.json'):
        raise ValueError(f"Unsupported config format: {suffix}. Use .yaml, .yml, or .json")

    try:
        with open(config_path, 'r') as f:
            config = json.load(f) if suffix == '.json' else yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Raises:
        ValueError: If configuration is invalid
    """
    backend = config.get('backend')
    if not isinstance(backend, dict):
        raise ValueError("Config must contain a 'backend' section")

    kind = backend.get('kind')
    if kind not in BACKEND_KINDS:
        raise ValueError(
            f"Invalid backend kind '{kind}'. Choose from: {', '.join(BACKEND_KINDS)}"
        )

    required = {'memory': 'path', 'local': 'directory', 'remote': 'table'}[kind]
    if not backend.get(required):
        raise ValueError(f"Backend kind '{kind}' requires '{required}'")

    timeout = backend.get('timeout')
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        raise ValueError(f"Backend timeout must be positive number, got: {timeout}")

    unknown = set(backend) - set(BackendConfig.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown backend keys: {', '.join(sorted(unknown))}")

    alignment = config.get('alignment')
    if alignment is not None:
        if not isinstance(alignment, dict):
            raise ValueError("'alignment' must be a mapping")
        prefix = alignment.get('prefix_length')
        if prefix is not None and (not isinstance(prefix, int) or prefix <= 0):
            raise ValueError(f"alignment.prefix_length must be positive integer, got: {prefix}")


def parse_config(config: Dict[str, Any], base_dir: Optional[Path] = None) -> ConfigSchema:
    """Validate a config dict and turn it into a ConfigSchema."""
    validate_config(config)
    base_dir = Path(base_dir) if base_dir is not None else Path.cwd()

    fields = dict(config['backend'])
    for key in ('path', 'directory', 'row_annotation', 'col_annotation'):
        if fields.get(key) is not None:
            fields[key] = _resolve(base_dir, fields[key])
    backend = BackendConfig(**fields)

    alignment = None
    if config.get('alignment'):
        alignment = AlignmentConfig(**config['alignment'])

    return ConfigSchema(backend=backend, alignment=alignment)


def read_config(config_path: Path) -> ConfigSchema:
    """Load, validate and parse a config file."""
    config_path = Path(config_path)
    return parse_config(load_config(config_path), base_dir=config_path.parent)


def open_view(schema: ConfigSchema) -> AssayView:
    """
    Build the configured backend and load it.

    Raises:
        BackendUnavailable, AuthenticationRequired, ShapeMismatch: from ``load``
    """
    cfg = schema.backend
    aligner = None
    if schema.alignment is not None:
        aligner = SampleIdAligner(
            prefix_length=schema.alignment.prefix_length,
            pattern=schema.alignment.pattern,
        )

    if cfg.kind == 'memory':
        view = load_csv_matrix(cfg.path, row_annotation=cfg.row_annotation,
                               col_annotation=cfg.col_annotation)
        return aligner.apply(view) if aligner is not None else view

    if cfg.kind == 'local':
        return load(LocalFileBackend(cfg.directory), sample_alignment=aligner)

    backend = RemoteServiceBackend(
        cfg.table,
        feature_column=cfg.feature_column,
        sample_column=cfg.sample_column,
        value_column=cfg.value_column,
        billing_env=cfg.billing_env,
        row_annotation=_read_annotation(cfg.row_annotation),
        col_annotation=_read_annotation(cfg.col_annotation),
        timeout=cfg.timeout,
    )
    return load(backend, sample_alignment=aligner)


def read_identifiers(path: Path) -> List[str]:
    """One identifier per line; blank lines and '#' comments skipped."""
    with open(path, 'r') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]


def _resolve(base_dir: Path, value: Any) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def _read_annotation(path: Optional[Path]) -> Optional[pd.DataFrame]:
    if path is None:
        return None
    return pd.read_csv(path, index_col=0)
