"""
Symbol catalog: definitions, selection weights, payout tables and the
substitution/trigger rules of the special symbols.

A `SymbolCatalog` is an immutable value. Administrative changes go through a
`CatalogStore`, which validates the change, builds a new catalog and swaps it
in under a lock, so a spin that grabbed `store.snapshot()` keeps a consistent
view for its whole duration.
"""

import json
import logging
import math
import os
import threading
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'data', 'symbol_catalog.json'
)

RUN_LENGTHS = (3, 4, 5, 6)
REQUIRED_SYMBOL_FIELDS = ('id', 'name', 'category', 'weight')


class SymbolCategory(str, Enum):
    REGULAR = 'regular'
    WILD = 'wild'
    SCATTER = 'scatter'
    PREMIUM = 'premium'


PAYING_CATEGORIES = frozenset({SymbolCategory.REGULAR, SymbolCategory.PREMIUM})
ZERO_PAYOUTS = MappingProxyType({length: 0 for length in RUN_LENGTHS})


class CatalogConfigError(Exception):
    """Raised when a catalog configuration cannot be loaded."""
    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("Invalid symbol catalog configuration: " + "; ".join(self.errors))


# --- Rule variants, one per category ---

@dataclass(frozen=True)
class RegularRule:
    payout_table: Mapping[int, float]

    def to_config(self):
        return {'payouts': {str(k): v for k, v in self.payout_table.items()}}


@dataclass(frozen=True)
class PremiumRule:
    payout_table: Mapping[int, float]
    multiplier_source: str = 'player_nft_multiplier'

    def to_config(self):
        return {
            'payouts': {str(k): v for k, v in self.payout_table.items()},
            'multiplier_source': self.multiplier_source,
        }


@dataclass(frozen=True)
class WildRule:
    substitutes: Tuple[str, ...]
    excludes: FrozenSet[str] = frozenset()
    multiplier: float = 1

    def to_config(self):
        return {
            'substitutes': list(self.substitutes),
            'excludes': sorted(self.excludes),
            'multiplier': self.multiplier,
        }


@dataclass(frozen=True)
class ScatterRule:
    min_count: int
    bonus_spins: Mapping[int, int]
    bonus_type: str = 'free_spins'
    retrigger_spins: int = 0

    def spins_for_count(self, count):
        """Bonus spins for `count` scatters; counts past the table use its top entry."""
        if count < self.min_count or not self.bonus_spins:
            return 0
        eligible = [size for size in self.bonus_spins if size <= count]
        if not eligible:
            return 0
        return self.bonus_spins[max(eligible)]

    def to_config(self):
        return {
            'min_count': self.min_count,
            'bonus_type': self.bonus_type,
            'bonus_spins': {str(k): v for k, v in self.bonus_spins.items()},
            'retrigger_spins': self.retrigger_spins,
        }


@dataclass(frozen=True)
class SymbolDefinition:
    id: str
    display_name: str
    category: SymbolCategory
    base_value: float
    selection_weight: int
    rule: Any
    rarity: Optional[str] = None
    description: Optional[str] = None

    @property
    def payout_by_size(self) -> Mapping[int, float]:
        if self.category in PAYING_CATEGORIES:
            return self.rule.payout_table
        return ZERO_PAYOUTS

    @property
    def is_special(self) -> bool:
        return self.category is not SymbolCategory.REGULAR

    def to_config(self) -> Dict[str, Any]:
        entry = {
            'id': self.id,
            'name': self.display_name,
            'category': self.category.value,
            'value': self.base_value,
            'weight': self.selection_weight,
            'rarity': self.rarity,
            'description': self.description,
        }
        entry.update(self.rule.to_config())
        return entry


@dataclass(frozen=True)
class CatalogUpdateResult:
    success: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    def __bool__(self):
        return self.success


# --- Raw configuration helpers ---

def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_positive_int(value):
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _symbols_section(config):
    if not isinstance(config, Mapping):
        return None
    if 'game' in config and isinstance(config['game'], Mapping):
        return config['game'].get('symbols')
    return config.get('symbols')


def parse_payout_table(raw, symbol_id):
    """
    Normalises a payout table keyed by run length (ints or numeric strings, as
    JSON delivers them) into {3: x, 4: y, 5: z, 6: w}.

    Returns:
        tuple: (table or None, list of error strings)
    """
    if not isinstance(raw, Mapping):
        return None, [f"Symbol {symbol_id} missing payout table"]

    table = {}
    errors = []
    for length in RUN_LENGTHS:
        value = raw.get(length, raw.get(str(length)))
        if value is None:
            errors.append(f"Symbol {symbol_id} payout table missing run length {length}")
        elif not _is_number(value) or value < 0:
            errors.append(f"Symbol {symbol_id} payout for run length {length} must be a non-negative number, got {value!r}")
        else:
            table[length] = value
    if errors:
        return None, errors
    return table, []


def payout_table_warnings(symbol_id, table):
    values = [table[length] for length in RUN_LENGTHS]
    if any(later < earlier for earlier, later in zip(values, values[1:])):
        return [f"Symbol {symbol_id} payouts don't increase with combination length"]
    return []


def validate_catalog_config(config):
    """
    Checks a raw catalog configuration (the JSON document shape).

    Errors: symbols missing required fields, unknown categories, non-positive
    weights, duplicate ids, paying symbols without a complete payout table and
    malformed scatter rules. Warnings: payout tables that shrink with run
    length and wild substitution targets the catalog does not define.

    Returns:
        dict: {'is_valid': bool, 'errors': [...], 'warnings': [...]}
    """
    errors = []
    warnings = []
    symbols = _symbols_section(config)

    if not isinstance(symbols, list) or not symbols:
        return {'is_valid': False, 'errors': ["Catalog must define a non-empty 'symbols' list"], 'warnings': []}

    seen_ids = set()
    known_ids = {
        entry.get('id') for entry in symbols
        if isinstance(entry, Mapping) and isinstance(entry.get('id'), str)
    }
    for index, entry in enumerate(symbols):
        if not isinstance(entry, Mapping):
            errors.append(f"Symbol entry {index} is not an object")
            continue

        raw_id = entry.get('id')
        if raw_id is not None and not isinstance(raw_id, str):
            errors.append(f"Symbol entry {index} has non-string id: {raw_id!r}")
            continue
        symbol_id = raw_id or f"#{index}"
        missing = [name for name in REQUIRED_SYMBOL_FIELDS if entry.get(name) in (None, '')]
        if missing:
            errors.append(f"Symbol {symbol_id} missing required properties: {', '.join(missing)}")

        if symbol_id in seen_ids:
            errors.append(f"Duplicate symbol id: {symbol_id}")
        seen_ids.add(symbol_id)

        weight = entry.get('weight')
        if weight is not None and not _is_positive_int(weight):
            errors.append(f"Symbol {symbol_id} has invalid weight: {weight!r}")

        try:
            category = SymbolCategory(entry.get('category'))
        except ValueError:
            if entry.get('category') is not None:
                errors.append(f"Symbol {symbol_id} has unknown category: {entry.get('category')!r}")
            continue

        if category in PAYING_CATEGORIES:
            table, table_errors = parse_payout_table(entry.get('payouts'), symbol_id)
            errors.extend(table_errors)
            if table is not None:
                warnings.extend(payout_table_warnings(symbol_id, table))
        elif category is SymbolCategory.WILD:
            substitutes = entry.get('substitutes', [])
            if not isinstance(substitutes, list):
                errors.append(f"Wild symbol {symbol_id} substitutes must be a list")
            else:
                unknown = [target for target in substitutes if target not in known_ids]
                if unknown:
                    warnings.append(f"Wild symbol {symbol_id} substitutes unknown symbols: {', '.join(map(str, unknown))}")
        elif category is SymbolCategory.SCATTER:
            if not _is_positive_int(entry.get('min_count', 3)):
                errors.append(f"Scatter symbol {symbol_id} has invalid min_count: {entry.get('min_count')!r}")
            bonus_spins = entry.get('bonus_spins', {})
            if not isinstance(bonus_spins, Mapping) or not all(
                str(k).isdigit() and isinstance(v, int) and v >= 0 for k, v in bonus_spins.items()
            ):
                errors.append(f"Scatter symbol {symbol_id} has an invalid bonus_spins table")

    return {'is_valid': not errors, 'errors': errors, 'warnings': warnings}


def _build_paying_table(entry):
    table, _ = parse_payout_table(entry.get('payouts'), entry['id'])
    return MappingProxyType(table)


_RULE_BUILDERS = {
    SymbolCategory.REGULAR: lambda entry: RegularRule(payout_table=_build_paying_table(entry)),
    SymbolCategory.PREMIUM: lambda entry: PremiumRule(
        payout_table=_build_paying_table(entry),
        multiplier_source=entry.get('multiplier_source', 'player_nft_multiplier'),
    ),
    SymbolCategory.WILD: lambda entry: WildRule(
        substitutes=tuple(entry.get('substitutes', ())),
        excludes=frozenset(entry.get('excludes', ())),
        multiplier=entry.get('multiplier', 1),
    ),
    SymbolCategory.SCATTER: lambda entry: ScatterRule(
        min_count=entry.get('min_count', 3),
        bonus_spins=MappingProxyType({int(k): v for k, v in entry.get('bonus_spins', {}).items()}),
        bonus_type=entry.get('bonus_type', 'free_spins'),
        retrigger_spins=entry.get('retrigger_spins', 0),
    ),
}


def _definition_from_config(entry):
    category = SymbolCategory(entry['category'])
    return SymbolDefinition(
        id=entry['id'],
        display_name=entry['name'],
        category=category,
        base_value=entry.get('value', 0),
        selection_weight=entry['weight'],
        rule=_RULE_BUILDERS[category](entry),
        rarity=entry.get('rarity'),
        description=entry.get('description'),
    )


class SymbolCatalog:
    """Immutable registry of symbol definitions, in configuration order."""

    def __init__(self, definitions, name='CryptoReels'):
        ordered = {}
        for definition in definitions:
            if definition.id in ordered:
                raise CatalogConfigError([f"Duplicate symbol id: {definition.id}"])
            ordered[definition.id] = definition
        self.name = name
        self._symbols = MappingProxyType(ordered)
        self._wild_ids = frozenset(d.id for d in ordered.values() if d.category is SymbolCategory.WILD)
        self._scatter_ids = frozenset(d.id for d in ordered.values() if d.category is SymbolCategory.SCATTER)
        self._full_pool = self.build_weighted_pool()

    @classmethod
    def from_config(cls, config):
        report = validate_catalog_config(config)
        if not report['is_valid']:
            raise CatalogConfigError(report['errors'])
        for warning in report['warnings']:
            logger.warning(f"Symbol catalog warning: {warning}")
        name = config.get('game', {}).get('name', 'CryptoReels') if 'game' in config else config.get('name', 'CryptoReels')
        return cls([_definition_from_config(entry) for entry in _symbols_section(config)], name=name)

    def __contains__(self, symbol_id):
        return symbol_id in self._symbols

    def __len__(self):
        return len(self._symbols)

    def __iter__(self):
        return iter(self._symbols.values())

    def __repr__(self):
        return f"<SymbolCatalog name={self.name!r} symbols={len(self)}>"

    # --- Lookups ---

    def lookup(self, symbol_id) -> Optional[SymbolDefinition]:
        return self._symbols.get(symbol_id)

    def all_ids(self) -> List[str]:
        return list(self._symbols)

    def by_category(self, category) -> List[SymbolDefinition]:
        category = SymbolCategory(category)
        return [d for d in self._symbols.values() if d.category is category]

    @property
    def wild_ids(self) -> FrozenSet[str]:
        return self._wild_ids

    @property
    def scatter_ids(self) -> FrozenSet[str]:
        return self._scatter_ids

    @property
    def default_pool(self) -> Tuple[str, ...]:
        """Weighted pool over every symbol, specials included."""
        return self._full_pool

    def payout_for(self, symbol_id, run_length):
        definition = self._symbols.get(symbol_id)
        if definition is None or run_length not in RUN_LENGTHS:
            return 0
        return definition.payout_by_size.get(run_length, 0)

    def payout_tables(self) -> Dict[str, Dict[int, float]]:
        return {symbol_id: dict(d.payout_by_size) for symbol_id, d in self._symbols.items()}

    def build_weighted_pool(self, include_special=True, exclude=()) -> Tuple[str, ...]:
        excluded = set(exclude)
        pool = []
        for definition in self._symbols.values():
            if definition.id in excluded:
                continue
            if not include_special and definition.is_special:
                continue
            pool.extend([definition.id] * definition.selection_weight)
        return tuple(pool)

    def can_substitute(self, special_id, target_id) -> bool:
        definition = self._symbols.get(special_id)
        if definition is None or definition.category is not SymbolCategory.WILD:
            return False
        rule = definition.rule
        return target_id in rule.substitutes and target_id not in rule.excludes

    def scatter_rule(self, scatter_id=None) -> Optional[ScatterRule]:
        if scatter_id is None:
            if not self._scatter_ids:
                return None
            scatter_id = next(d.id for d in self._symbols.values() if d.category is SymbolCategory.SCATTER)
        definition = self._symbols.get(scatter_id)
        return definition.rule if definition is not None and definition.category is SymbolCategory.SCATTER else None

    # --- Copy-on-write derivations used by CatalogStore ---

    def _with_definition(self, definition):
        return SymbolCatalog(
            [definition if d.id == definition.id else d for d in self._symbols.values()],
            name=self.name,
        )

    def with_weight(self, symbol_id, weight):
        return self._with_definition(replace(self._symbols[symbol_id], selection_weight=weight))

    def with_payout_table(self, symbol_id, table):
        definition = self._symbols[symbol_id]
        new_rule = replace(definition.rule, payout_table=MappingProxyType(dict(table)))
        return self._with_definition(replace(definition, rule=new_rule))

    # --- Reporting ---

    def to_config(self):
        return {'game': {'name': self.name, 'symbols': [d.to_config() for d in self._symbols.values()]}}

    def validate(self):
        return validate_catalog_config(self.to_config())

    def statistics(self):
        total_weight = sum(d.selection_weight for d in self._symbols.values())
        symbols_by_category = {}
        for definition in self._symbols.values():
            key = definition.category.value
            symbols_by_category[key] = symbols_by_category.get(key, 0) + 1

        return {
            'total_symbols': len(self._symbols),
            'symbols_by_category': symbols_by_category,
            'total_weight': total_weight,
            'average_weight': total_weight / len(self._symbols) if self._symbols else 0,
            'weight_distribution': {
                d.id: {
                    'weight': d.selection_weight,
                    'percentage': (d.selection_weight / total_weight) * 100 if total_weight else 0,
                }
                for d in self._symbols.values()
            },
        }

    def theoretical_rtp(self):
        """
        Single-way analytical estimate: the chance of one symbol filling L
        consecutive picks times its payout, summed over paying symbols and
        run lengths. Ignores wilds and ways, so it undershoots; use the slot
        tester for an empirical figure.
        """
        pool_size = len(self._full_pool)
        expected = 0.0
        if pool_size:
            for definition in self._symbols.values():
                if definition.category not in PAYING_CATEGORIES:
                    continue
                probability = definition.selection_weight / pool_size
                for length in RUN_LENGTHS:
                    expected += (probability ** length) * definition.payout_by_size[length]
        return {
            'rtp': expected * 100,
            'expected_payout_per_unit_bet': expected,
            'pool_size': pool_size,
        }


def load_catalog_config(path=None):
    """Loads the raw catalog JSON document."""
    config_path = path or DEFAULT_CATALOG_PATH
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Symbol catalog configuration not found at {config_path}")
    try:
        with open(config_path, 'r') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Error decoding JSON from {config_path}: {e}")


def load_catalog(path=None):
    return SymbolCatalog.from_config(load_catalog_config(path))


class CatalogStore:
    """
    Holds the live catalog. Writers are serialised by a lock and publish a new
    immutable catalog; readers just take the current reference.
    """

    def __init__(self, catalog):
        self._catalog = catalog
        self._lock = threading.Lock()

    @classmethod
    def from_path(cls, path=None):
        return cls(load_catalog(path))

    def snapshot(self) -> SymbolCatalog:
        return self._catalog

    def set_weight(self, symbol_id, weight) -> CatalogUpdateResult:
        with self._lock:
            catalog = self._catalog
            if catalog.lookup(symbol_id) is None:
                return CatalogUpdateResult(False, errors=(f"Unknown symbol: {symbol_id}",))
            if not _is_positive_int(weight):
                return CatalogUpdateResult(
                    False, errors=(f"Weight for {symbol_id} must be a positive integer, got {weight!r}",)
                )
            self._catalog = catalog.with_weight(symbol_id, weight)

        logger.info(f"Symbol {symbol_id} weight set to {weight}")
        return CatalogUpdateResult(True)

    def set_payout_table(self, symbol_id, table) -> CatalogUpdateResult:
        with self._lock:
            catalog = self._catalog
            definition = catalog.lookup(symbol_id)
            if definition is None:
                return CatalogUpdateResult(False, errors=(f"Unknown symbol: {symbol_id}",))
            if definition.category not in PAYING_CATEGORIES:
                return CatalogUpdateResult(
                    False, errors=(f"Symbol {symbol_id} is a {definition.category.value} symbol and has no payout table",)
                )
            parsed, errors = parse_payout_table(table, symbol_id)
            if errors:
                return CatalogUpdateResult(False, errors=tuple(errors))
            warnings = payout_table_warnings(symbol_id, parsed)
            self._catalog = catalog.with_payout_table(symbol_id, parsed)

        for warning in warnings:
            logger.warning(f"Symbol catalog warning: {warning}")
        logger.info(f"Symbol {symbol_id} payout table set to {parsed}")
        return CatalogUpdateResult(True, warnings=tuple(warnings))
