#!/usr/bin/env python3
"""Build the template pack zip from src/reforge/templates."""

import sys
from pathlib import Path

from reforge.deploy.archive import TemplateArchive, build_pack


def build_template_pack(templates_dir: Path, pack_path: Path) -> None:
    """Build the template pack."""
    if not templates_dir.exists():
        print(f"Template directory not found: {templates_dir}")
        sys.exit(1)

    print(f"Building template pack: {pack_path}")
    data = build_pack(templates_dir)
    pack_path.write_bytes(data)

    with TemplateArchive.open(pack_path) as archive:
        archive.verify()
        for name in archive.names():
            print(f"  Added: {name}")
        print(f"Pack {archive.manifest().name}@{archive.manifest().version} built successfully: {pack_path}")


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("reforge-templates.zip")
    build_template_pack(Path("src/reforge/templates"), out)
