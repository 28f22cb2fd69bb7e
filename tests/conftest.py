from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace as NS

import pytest

from bundlepatch.core.patch_engine.config import (
    ArtifactSpec,
    EnginePolicy,
    InstallLayout,
    ManifestSpec,
    PatchEngineConfig,
)
from bundlepatch.core.patch_engine.definitions import patch_table_from_mapping

OLD = "FOO(){return OLD}"
NEW = "FOO(){return NEW}"

MANIFEST = """{
  "nameShort": "App",
  "checksums": {
    "app/main.js": "OLDHASH",
    "app/other.js": "KEEPME"
  },
  "quality": "stable"
}
"""


def write(p: Path, content: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(content.encode("utf-8"))


def table(patches: list, lineage: str = "v1", artifact: str = "main.js"):
    return patch_table_from_mapping({"lineages": {lineage: {artifact: patches}}})


@pytest.fixture
def install(tmp_path: Path):
    """A one-artifact installation with an integrity manifest."""
    root = tmp_path / "install"
    main = root / "app" / "main.js"
    manifest = root / "product.json"
    write(main, f"var a=1;{OLD};var b=2;")
    write(manifest, MANIFEST)

    layout = InstallLayout(
        artifacts=[ArtifactSpec(name="main.js", path="app/main.js", manifest_keys=["out/main.js", "app/main.js"])],
        manifest=ManifestSpec(path="product.json", namespace="checksums"),
    )

    def cfg(patches=None, policy=None, tbl=None):
        if tbl is None:
            tbl = table(patches if patches is not None else [
                {"name": "swap-foo", "search": OLD, "replace": NEW, "lineage_marker": True},
            ])
        return PatchEngineConfig(root=root, layout=layout, table=tbl, policy=policy or EnginePolicy())

    return NS(root=root, main=main, manifest=manifest, layout=layout, cfg=cfg)
