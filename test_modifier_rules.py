# test_modifier_rules.py
from decimal import Decimal

import pytest

from qrdine.models.core import SelectionType
from qrdine.services.errors import (
    InvalidModifier, MissingRequiredGroup, TooFewSelections, TooManySelections,
    SingleSelectionViolated, DuplicateModifier, ModifierRuleViolation,
)
from qrdine.services.modifiers import GroupRule, OptionRule, validate_modifiers


def opt(id_, name, delta="0"):
    return OptionRule(id=id_, name=name, price_adjustment=Decimal(delta))


SIZE = GroupRule(
    id="g-size", name="Size", selection_type=SelectionType.SINGLE,
    is_required=True, min_selections=1, max_selections=1,
    options=(opt("s", "Small"), opt("m", "Medium", "1.00"), opt("l", "Large", "2.00")),
)
TOPPINGS = GroupRule(
    id="g-top", name="Toppings", selection_type=SelectionType.MULTIPLE,
    max_selections=2,
    options=(opt("c", "Cheese", "0.50"), opt("b", "Bacon", "1.25"), opt("e", "Egg", "0.75")),
)
SAUCES = GroupRule(
    id="g-sauce", name="Sauces", selection_type=SelectionType.MULTIPLE,
    min_selections=2,
    options=(opt("k", "Ketchup"), opt("y", "Mayo"), opt("h", "Hot", "0.25")),
)
GROUPS = [SIZE, TOPPINGS]


def test_valid_selection_is_priced():
    sel = validate_modifiers("Burger", GROUPS, ["m", "c", "b"])
    assert sel.modifiers_total == Decimal("2.75")
    assert [s.option_name for s in sel.selected] == ["Medium", "Cheese", "Bacon"]
    assert sel.selected[0].group_name == "Size"
    assert sel.selected[1].group_id == "g-top"


def test_selection_is_grouped_by_first_pick():
    sel = validate_modifiers("Burger", GROUPS, ["c", "l", "e"])
    assert [s.option_id for s in sel.selected] == ["c", "e", "l"]
    assert sel.modifiers_total == Decimal("3.25")


def test_no_groups_no_modifiers():
    sel = validate_modifiers("Soup", [], [])
    assert sel.modifiers_total == Decimal("0")
    assert sel.selected == []


def test_option_of_another_item_is_rejected():
    with pytest.raises(InvalidModifier) as ei:
        validate_modifiers("Burger", GROUPS, ["m", "thin-crust"])
    assert "thin-crust" in ei.value.message
    assert '"Burger"' in ei.value.message


def test_any_option_on_item_without_groups_is_rejected():
    with pytest.raises(InvalidModifier):
        validate_modifiers("Soup", [], ["m"])


def test_required_group_missing():
    with pytest.raises(MissingRequiredGroup) as ei:
        validate_modifiers("Pho", [SIZE], [])
    assert ei.value.message == '"Size" is required for "Pho". Please select at least 1 option(s).'


def test_min_selections_only_applies_once_group_is_touched():
    # optional group left alone
    validate_modifiers("Fries", [SAUCES], [])
    with pytest.raises(TooFewSelections) as ei:
        validate_modifiers("Fries", [SAUCES], ["k"])
    assert "at least 2" in ei.value.message
    assert "only 1 provided" in ei.value.message


def test_max_selections():
    with pytest.raises(TooManySelections) as ei:
        validate_modifiers("Burger", GROUPS, ["s", "c", "b", "e"])
    assert ei.value.message == '"Toppings" allows maximum 2 selection(s), but 3 provided.'


def test_single_selection_group_with_unbounded_max():
    crust = GroupRule(
        id="g-crust", name="Crust", selection_type=SelectionType.SINGLE,
        options=(opt("t", "Thin"), opt("d", "Deep", "1.50")),
    )
    with pytest.raises(SingleSelectionViolated):
        validate_modifiers("Pizza", [crust], ["t", "d"])


def test_max_is_checked_before_single():
    # Size has max 1 and is SINGLE, the max rule reports first
    with pytest.raises(TooManySelections):
        validate_modifiers("Burger", GROUPS, ["s", "m"])


def test_duplicate_option():
    with pytest.raises(DuplicateModifier) as ei:
        validate_modifiers("Burger", GROUPS, ["m", "c", "c"])
    assert "Toppings" in ei.value.message


def test_errors_share_a_base_and_status():
    with pytest.raises(ModifierRuleViolation) as ei:
        validate_modifiers("Burger", GROUPS, [])
    assert ei.value.status_code == 400
    assert ei.value.code == "missing_required_group"
