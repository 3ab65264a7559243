"""
YAML scenario loader with schema validation.

Loads mesh broadcast scenarios from YAML files and validates them against
JSON schemas before parsing into dataclasses.
"""

import yaml
import json
from pathlib import Path
from typing import Dict, Optional
import jsonschema

from .constants import DEFAULT_PAYLOAD
from .data_types import BroadcastRoute, LinkRule, LossyLink, MatrixType, MeshConfig


class ConfigLoadError(Exception):
    """Raised when scenario loading or validation fails"""
    pass


def load_yaml(file_path: Path) -> dict:
    """Load YAML file and return parsed dict"""
    file_path = Path(file_path)
    if not file_path.exists():
        raise ConfigLoadError(f"File not found: {file_path}")

    try:
        with open(file_path, 'r') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"YAML parse error in {file_path}: {e}")


def validate_against_schema(data: dict, schema_path: Path, data_path: Path):
    """Validate data dict against JSON schema"""
    if not schema_path.exists():
        raise ConfigLoadError(f"Schema not found: {schema_path}")

    try:
        with open(schema_path, 'r') as f:
            schema = json.load(f)
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        raise ConfigLoadError(f"Validation error in {data_path}: {e.message}")
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"Invalid JSON schema {schema_path}: {e}")


def _coord(value) -> tuple:
    return (int(value[0]), int(value[1]))


def parse_mesh_config(data: dict, source: str = "<dict>") -> MeshConfig:
    """Parse an already-validated scenario dict into a MeshConfig"""
    if not isinstance(data, dict):
        raise ConfigLoadError(f"Scenario in {source} must be a mapping")

    edge_size = data['edge_size']

    links_data = data.get('links', {})
    links = LinkRule(
        radius=links_data.get('radius'),
        pairs=[(_coord(a), _coord(b)) for a, b in links_data.get('pairs', [])]
    )

    route_data = data['route']
    route = BroadcastRoute(
        start=_coord(route_data['start']),
        end=_coord(route_data['end']),
        data=route_data.get('data', DEFAULT_PAYLOAD)
    )

    lossy_links = [
        LossyLink(source=_coord(entry['from']), target=_coord(entry['to']), drops=entry.get('drops', 1))
        for entry in data.get('lossy_links', [])
    ]

    # Coordinates must land on the board (not expressible in the schema)
    coords = [route.start, route.end]
    coords += [c for pair in links.pairs for c in pair]
    coords += [c for lossy in lossy_links for c in (lossy.source, lossy.target)]
    for x, y in coords:
        if not (0 <= x < edge_size and 0 <= y < edge_size):
            raise ConfigLoadError(
                f"Coordinate ({x}, {y}) in {source} is outside a {edge_size}x{edge_size} mesh"
            )

    optional = {}
    if 'strategy' in data:
        optional['strategy'] = MatrixType(data['strategy'])
    if 'grid_size' in data:
        optional['grid_size'] = data['grid_size']
    if 'max_passes' in data:
        optional['max_passes'] = data['max_passes']

    return MeshConfig(
        mesh_id=data['mesh_id'],
        name=data['name'],
        edge_size=edge_size,
        links=links,
        route=route,
        lossy_links=lossy_links,
        description=data.get('description'),
        **optional
    )


def load_mesh_config(file_path: Path, schema_dir: Optional[Path] = None) -> MeshConfig:
    """Load mesh broadcast scenario from YAML"""
    file_path = Path(file_path)
    data = load_yaml(file_path)

    # Validate if schema dir given
    if schema_dir:
        schema_path = Path(schema_dir) / "mesh.schema.json"
        validate_against_schema(data, schema_path, file_path)

    return parse_mesh_config(data, str(file_path))


def load_mesh_registry(mesh_dir: Path, schema_dir: Optional[Path] = None) -> Dict[str, MeshConfig]:
    """Load all scenarios from directory, keyed by mesh_id"""
    mesh_dir = Path(mesh_dir)
    if not mesh_dir.exists():
        raise ConfigLoadError(f"Mesh directory not found: {mesh_dir}")

    registry = {}
    for yaml_file in sorted(mesh_dir.glob("*.yaml")):
        config = load_mesh_config(yaml_file, schema_dir)
        registry[config.mesh_id] = config

    if not registry:
        raise ConfigLoadError(f"No mesh files found in {mesh_dir}")

    return registry
