# File: bundlepatch/core/patch_engine/definitions.py
from __future__ import annotations

"""
Patch definitions and the per-lineage tables they are grouped into.

Tables are plain data (usually YAML) keyed by lineage, then by artifact name:

    lineages:
      "1.4":
        main.js:
          - name: skip-update-check
            search: "checkForUpdates(){"
            replace: "checkForUpdates(){return;"
            length_invariant: false
            lineage_marker: true

Everything here is immutable once loaded. Invalid data raises ConfigurationDefect
before the engine touches any artifact.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..errors import ConfigurationDefect


class PatchDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    search: str = Field(min_length=1)
    replace: str = Field(min_length=1)
    length_invariant: bool = True
    lineage_marker: bool = False

    @model_validator(mode="after")
    def _check_invariants(self) -> "PatchDefinition":
        if self.search == self.replace:
            raise ValueError(f"patch '{self.name}': search and replace are identical")
        if self.length_invariant and len(self.search) != len(self.replace):
            raise ValueError(
                f"patch '{self.name}': length invariant violated "
                f"(search={len(self.search)} chars, replace={len(self.replace)} chars)"
            )
        return self

    @property
    def anchors(self) -> Tuple[str, str]:
        return (self.search, self.replace)

    def length_ok(self) -> bool:
        return not self.length_invariant or len(self.search) == len(self.replace)


def make_patch(data: Mapping[str, Any]) -> PatchDefinition:
    """Validate one raw mapping into a PatchDefinition, raising ConfigurationDefect."""
    try:
        return PatchDefinition.model_validate(dict(data))
    except ValidationError as e:
        name = data.get("name", "<unnamed>") if isinstance(data, Mapping) else "<invalid>"
        raise ConfigurationDefect(f"invalid patch definition '{name}': {e}") from e


@dataclass(frozen=True)
class PatchSet:
    """Ordered patches for one artifact within one lineage."""

    lineage: str
    artifact: str
    patches: Tuple[PatchDefinition, ...] = ()

    def __post_init__(self) -> None:
        seen = set()
        for p in self.patches:
            if p.name in seen:
                raise ConfigurationDefect(
                    f"duplicate patch name '{p.name}' in lineage '{self.lineage}' for '{self.artifact}'"
                )
            seen.add(p.name)

    def __iter__(self) -> Iterator[PatchDefinition]:
        return iter(self.patches)

    def __len__(self) -> int:
        return len(self.patches)

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.patches]

    @property
    def markers(self) -> List[str]:
        return [p.name for p in self.patches if p.lineage_marker]

    def get(self, name: str) -> Optional[PatchDefinition]:
        for p in self.patches:
            if p.name == name:
                return p
        return None

    def anchors(self) -> List[str]:
        out: List[str] = []
        for p in self.patches:
            out.extend(p.anchors)
        return out


@dataclass
class PatchTable:
    """All known patch sets, keyed by lineage then artifact name. Lineage order is table order."""

    sets: Dict[str, Dict[str, PatchSet]] = field(default_factory=dict)

    @property
    def lineages(self) -> List[str]:
        return list(self.sets.keys())

    def sets_for(self, artifact: str) -> List[PatchSet]:
        return [by_art[artifact] for by_art in self.sets.values() if artifact in by_art]

    def anchors_for(self, artifact: str) -> List[str]:
        """Every search/replace string of every lineage known for `artifact`."""
        out: List[str] = []
        seen = set()
        for ps in self.sets_for(artifact):
            for a in ps.anchors():
                if a not in seen:
                    seen.add(a)
                    out.append(a)
        return out

    def merge(self, other: "PatchTable") -> None:
        for lineage, by_art in other.sets.items():
            mine = self.sets.setdefault(lineage, {})
            for art, ps in by_art.items():
                if art in mine:
                    raise ConfigurationDefect(
                        f"patch set for '{art}' in lineage '{lineage}' is defined more than once"
                    )
                mine[art] = ps


def patch_table_from_mapping(data: Mapping[str, Any], *, source: str = "<memory>") -> PatchTable:
    """
    Build a PatchTable from a loaded document shaped `{lineages: {lineage: {artifact: [..]}}}`.
    """
    lineages = data.get("lineages")
    if not isinstance(lineages, Mapping):
        raise ConfigurationDefect(f"{source}: 'lineages' must be a mapping")

    table = PatchTable()
    for lineage, by_art in lineages.items():
        if not isinstance(by_art, Mapping):
            raise ConfigurationDefect(f"{source}: lineage '{lineage}' must map artifact names to patch lists")
        sets: Dict[str, PatchSet] = {}
        for art, raw_patches in by_art.items():
            if not isinstance(raw_patches, Sequence) or isinstance(raw_patches, (str, bytes)):
                raise ConfigurationDefect(f"{source}: '{lineage}/{art}' must be a list of patches")
            patches = []
            for raw in raw_patches:
                if not isinstance(raw, Mapping):
                    raise ConfigurationDefect(f"{source}: '{lineage}/{art}' contains a non-mapping entry")
                patches.append(make_patch(raw))
            sets[str(art)] = PatchSet(lineage=str(lineage), artifact=str(art), patches=tuple(patches))
        table.sets[str(lineage)] = sets
    return table


__all__ = [
    "PatchDefinition",
    "PatchSet",
    "PatchTable",
    "make_patch",
    "patch_table_from_mapping",
]
