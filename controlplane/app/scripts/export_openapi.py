from __future__ import annotations

import json
from pathlib import Path

from controlplane.app.main import app


def export_schema(openapi_dir: Path) -> Path:
    openapi_dir.mkdir(parents=True, exist_ok=True)
    schema_path = openapi_dir / "openapi.json"
    schema_path.write_text(json.dumps(app.openapi(), indent=2), encoding="utf-8")
    return schema_path


def main() -> None:
    schema_path = export_schema(Path("openapi"))
    print(f"Wrote OpenAPI schema to {schema_path}")


if __name__ == "__main__":
    main()
