"""
Modifier selection rules.

Validates the modifier options a guest picked for one menu item against the
item's active modifier groups, and prices the selection. Pure: no session, no
clock, nothing but the two inputs.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Sequence

from qrdine.models.core import SelectionType, ModifierGroup
from qrdine.services.errors import (
    InvalidModifier, MissingRequiredGroup, TooFewSelections, TooManySelections,
    SingleSelectionViolated, DuplicateModifier,
)


@dataclass(frozen=True)
class OptionRule:
    id: str
    name: str
    price_adjustment: Decimal


@dataclass(frozen=True)
class GroupRule:
    id: str
    name: str
    selection_type: SelectionType
    is_required: bool = False
    min_selections: int = 0
    max_selections: int = 0  # 0 = unbounded
    options: tuple[OptionRule, ...] = ()

    @classmethod
    def from_model(cls, group: ModifierGroup, options: Iterable) -> "GroupRule":
        return cls(
            id=group.id,
            name=group.name,
            selection_type=group.selection_type,
            is_required=bool(group.is_required),
            min_selections=group.min_selections or 0,
            max_selections=group.max_selections or 0,
            options=tuple(
                OptionRule(id=o.id, name=o.name, price_adjustment=Decimal(str(o.price_adjustment or 0)))
                for o in options
            ),
        )


@dataclass(frozen=True)
class SelectedOption:
    option_id: str
    group_id: str
    group_name: str
    option_name: str
    price_adjustment: Decimal


@dataclass
class ModifierSelection:
    modifiers_total: Decimal = Decimal("0")
    selected: list[SelectedOption] = field(default_factory=list)


def validate_modifiers(item_name: str, groups: Sequence[GroupRule], requested_ids: Sequence[str]) -> ModifierSelection:
    """
    Check ``requested_ids`` against ``groups`` and return the priced selection.

    Requested ids are checked first (each must be an active option of this
    item), then every group in order: required, min, max, single, duplicates.
    The first broken rule raises; nothing is partially returned.
    """
    by_option: dict[str, tuple[OptionRule, GroupRule]] = {}
    for group in groups:
        for option in group.options:
            by_option[option.id] = (option, group)

    # group id -> requested option ids, insertion ordered by first pick
    picks: dict[str, list[str]] = {}
    for option_id in requested_ids:
        hit = by_option.get(option_id)
        if hit is None:
            raise InvalidModifier(f'Modifier option "{option_id}" is not valid for "{item_name}"')
        picks.setdefault(hit[1].id, []).append(option_id)

    for group in groups:
        chosen = picks.get(group.id, [])
        count = len(chosen)

        if group.is_required and count == 0:
            raise MissingRequiredGroup(
                f'"{group.name}" is required for "{item_name}". '
                f"Please select at least {group.min_selections or 1} option(s)."
            )

        if (count > 0 or group.is_required) and group.min_selections > 0 and count < group.min_selections:
            raise TooFewSelections(
                f'"{group.name}" requires at least {group.min_selections} selection(s), '
                f"but only {count} provided."
            )

        if group.max_selections > 0 and count > group.max_selections:
            raise TooManySelections(
                f'"{group.name}" allows maximum {group.max_selections} selection(s), '
                f"but {count} provided."
            )

        if group.selection_type == SelectionType.SINGLE and count > 1:
            raise SingleSelectionViolated(
                f'"{group.name}" only allows single selection, but {count} options were selected.'
            )

        if len(set(chosen)) != count:
            raise DuplicateModifier(f'Duplicate modifier options detected in "{group.name}".')

    result = ModifierSelection()
    for group_id, option_ids in picks.items():
        for option_id in option_ids:
            option, group = by_option[option_id]
            result.modifiers_total += option.price_adjustment
            result.selected.append(SelectedOption(
                option_id=option.id,
                group_id=group_id,
                group_name=group.name,
                option_name=option.name,
                price_adjustment=option.price_adjustment,
            ))
    return result
