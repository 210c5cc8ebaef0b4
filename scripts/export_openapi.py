#!/usr/bin/env python3
"""Export the OpenAPI schema to JSON and YAML files.

Usage:
    pip install -e ".[dev]"
    python scripts/export_openapi.py

Output:
    docs/api/openapi.json
    docs/api/openapi.yaml
"""

import json
import sys
from pathlib import Path

import yaml

from novelhub.api.main import create_app
from novelhub.core.config import Settings


def export_openapi(docs_dir: Path) -> dict:
    """Write the schema of a development-mode app and return it."""
    # Production hides the schema, so always export from development settings
    app = create_app(Settings(environment="development"))
    schema = app.openapi()

    docs_dir.mkdir(parents=True, exist_ok=True)

    json_path = docs_dir / "openapi.json"
    with open(json_path, "w") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    print(f"Exported: {json_path}")

    yaml_path = docs_dir / "openapi.yaml"
    with open(yaml_path, "w") as f:
        yaml.dump(schema, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
    print(f"Exported: {yaml_path}")

    return schema


def main() -> int:
    docs_dir = Path(__file__).parent.parent / "docs" / "api"
    schema = export_openapi(docs_dir)

    paths_count = len(schema.get("paths", {}))
    schemas_count = len(schema.get("components", {}).get("schemas", {}))
    print("\nOpenAPI Schema Summary:")
    print(f"  Version: {schema.get('openapi', 'unknown')}")
    print(f"  Title: {schema.get('info', {}).get('title', 'unknown')}")
    print(f"  API Version: {schema.get('info', {}).get('version', 'unknown')}")
    print(f"  Endpoints: {paths_count}")
    print(f"  Schemas: {schemas_count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
