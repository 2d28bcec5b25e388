"""
Command catalog: the immutable definition of every controllable parameter.

Loaded once from commands.json (an ordered list of categories, each holding an
ordered list of operations). Runtime values live in the state store, never here.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from utils.json_store import load_json
from utils.logger import get_logger

MIXVOL_MIN: float = -100.0
MIXVOL_MAX: float = 12.0

ParameterKey = Tuple[str, str]


class CatalogError(ValueError):
    """The catalog document is missing or cannot be turned into a command model."""


class ParameterType(str, Enum):
    TOGGLE = "Toggle"
    GAIN = "Gain"
    TRIM = "Trim"
    MIXVOL = "mixvol"

    @classmethod
    def parse(cls, raw: Any) -> "ParameterType":
        text = str(raw or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        raise CatalogError(f"Unknown parameter type: {raw!r}")


@dataclass(frozen=True)
class ParameterDef:
    """Protocol addressing and value semantics of one (category, operation)."""
    category: str
    operation: str
    type: ParameterType
    protocol_id: int
    indices: Tuple[int, ...] = ()
    min: float = 0.0
    max: float = 0.0
    default: float = 0.0
    name: str = ""
    category_name: str = ""
    on_value: Optional[float] = None
    off_value: Optional[float] = None
    mute_protocol_id: Optional[int] = None
    mute_indices: Tuple[int, ...] = ()

    @property
    def key(self) -> ParameterKey:
        return (self.category, self.operation)

    @property
    def composite_key(self) -> str:
        return f"{self.category}/{self.operation}"

    @property
    def display_name(self) -> str:
        return f"{self.category_name or self.category}/{self.name or self.operation}"

    @property
    def is_mono(self) -> bool:
        return len(self.indices) == 1

    @property
    def is_stereo(self) -> bool:
        return len(self.indices) > 1

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "command": self.operation,
            "name": self.name,
            "type": self.type.value,
            "id": self.protocol_id,
            "indices": list(self.indices),
            "min": self.min,
            "max": self.max,
        }
        if self.type is ParameterType.TOGGLE:
            data["onValue"] = self.on_value
            data["offValue"] = self.off_value
        if self.mute_protocol_id is not None:
            data["muteId"] = self.mute_protocol_id
            data["muteIndices"] = list(self.mute_indices)
        return data


@dataclass(frozen=True)
class Category:
    command: str
    name: str
    operations: Tuple[ParameterDef, ...] = field(default_factory=tuple)


def _parse_float(raw: Any) -> Optional[float]:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _parse_int(raw: Any, what: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise CatalogError(f"Invalid {what}: {raw!r}") from None


def _parse_indices(raw: Any, what: str) -> Tuple[int, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise CatalogError(f"{what} must be a list, got {raw!r}")
    return tuple(_parse_int(i, what) for i in raw)


def _parse_operation(category: str, category_name: str, op: Dict[str, Any]) -> ParameterDef:
    operation = str(op.get("command") or "").strip()
    ptype = ParameterType.parse(op.get("type"))
    if "id" not in op or op.get("id") is None:
        raise CatalogError(f"{category}/{operation} has no protocol id")
    protocol_id = _parse_int(op.get("id"), f"id of {category}/{operation}")

    if ptype is ParameterType.MIXVOL:
        # fixed by the protocol, whatever the catalog says
        pmin, pmax = MIXVOL_MIN, MIXVOL_MAX
    else:
        pmin = _parse_float(op.get("min"))
        pmax = _parse_float(op.get("max"))
        if ptype is ParameterType.TOGGLE:
            on_off = [v for v in (_parse_float(op.get("offValue")), _parse_float(op.get("onValue"))) if v is not None]
            if pmin is None:
                pmin = min(on_off) if on_off else 0.0
            if pmax is None:
                pmax = max(on_off) if on_off else 1.0
        pmin = 0.0 if pmin is None else pmin
        pmax = pmin if pmax is None else pmax

    mute_id = op.get("muteId")
    return ParameterDef(
        category=category,
        operation=operation,
        type=ptype,
        protocol_id=protocol_id,
        indices=_parse_indices(op.get("indices"), f"indices of {category}/{operation}"),
        min=pmin,
        max=pmax,
        default=pmin,
        name=str(op.get("name") or operation),
        category_name=category_name,
        on_value=_parse_float(op.get("onValue")),
        off_value=_parse_float(op.get("offValue")),
        mute_protocol_id=None if mute_id is None else _parse_int(mute_id, f"muteId of {category}/{operation}"),
        mute_indices=_parse_indices(op.get("muteIndices"), f"muteIndices of {category}/{operation}"),
    )


class CommandCatalog:
    """Ordered, read-only collection of categories and their parameters."""

    def __init__(self, categories: List[Category]):
        self._categories: Tuple[Category, ...] = tuple(categories)
        self._by_key: Dict[ParameterKey, ParameterDef] = {}
        for category in self._categories:
            for definition in category.operations:
                self._by_key[definition.key] = definition

    @classmethod
    def from_document(cls, document: Any) -> "CommandCatalog":
        if not isinstance(document, list):
            raise CatalogError("Catalog document must be a list of categories")

        categories: List[Category] = []
        seen_categories = set()
        for raw_category in document:
            if not isinstance(raw_category, dict):
                raise CatalogError(f"Category entry must be an object, got {raw_category!r}")
            command = str(raw_category.get("command") or "").strip()
            if not command:
                raise CatalogError("Category without a command identifier")
            if command in seen_categories:
                raise CatalogError(f"Duplicate category: {command}")
            seen_categories.add(command)
            name = str(raw_category.get("name") or command)

            operations: List[ParameterDef] = []
            seen_ops = set()
            for raw_op in raw_category.get("operations") or []:
                if not isinstance(raw_op, dict):
                    raise CatalogError(f"Operation entry in {command} must be an object")
                op_command = str(raw_op.get("command") or "").strip()
                if not op_command:
                    raise CatalogError(f"Operation without a command identifier in category {command}")
                if op_command in seen_ops:
                    raise CatalogError(f"Duplicate operation {command}/{op_command}")
                seen_ops.add(op_command)
                operations.append(_parse_operation(command, name, raw_op))
            categories.append(Category(command=command, name=name, operations=tuple(operations)))
        return cls(categories)

    @classmethod
    def load(cls, path: str) -> "CommandCatalog":
        logger = get_logger(__name__)
        try:
            document = load_json(path)
        except (OSError, ValueError) as e:
            raise CatalogError(f"Error loading {path}: {e}") from e
        catalog = cls.from_document(document)
        logger.info(f"Command catalog loaded from {path} ({len(catalog)} parameters)")
        return catalog

    @property
    def categories(self) -> Tuple[Category, ...]:
        return self._categories

    def get(self, category: str, operation: str) -> Optional[ParameterDef]:
        return self._by_key.get((category, operation))

    def __iter__(self) -> Iterator[ParameterDef]:
        for category in self._categories:
            yield from category.operations

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key
