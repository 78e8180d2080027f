"""Tests for deduction planning when cooking."""

import pytest

from foodnager.cooking import plan_deductions
from foodnager.errors import InsufficientIngredientsError, ValidationError
from foodnager.models import AvailableItem, RequiredIngredient


class TestPlanDeductions:
    """Tests for plan_deductions."""

    def test_same_unit(self, tomato_salad, fridge):
        deductions = plan_deductions(tomato_salad.ingredients, fridge)

        assert len(deductions) == 1
        assert deductions[0].item is fridge[0]
        assert deductions[0].quantity == 2
        assert deductions[0].remaining == 1

    def test_converts_into_row_unit(self, products, units, fridge):
        required = [RequiredIngredient(product=products["milk"], quantity=250, unit=units["ml"])]
        deductions = plan_deductions(required, fridge)

        assert deductions[0].quantity == pytest.approx(0.25)
        assert deductions[0].to_dict()["unit"] == "l"

    def test_drains_rows_in_order(self, products, units):
        rows = [
            AvailableItem(product=products["flour"], quantity=100, unit=units["g"]),
            AvailableItem(product=products["flour"], quantity=1, unit=units["kg"]),
        ]
        required = [RequiredIngredient(product=products["flour"], quantity=300, unit=units["g"])]
        deductions = plan_deductions(required, rows)

        assert [d.quantity for d in deductions] == [100, pytest.approx(0.2)]

    @pytest.mark.parametrize("reverse", [False, True])
    def test_convertible_rows_used_before_unconvertible(self, products, units, reverse):
        rows = [
            AvailableItem(product=products["egg"], quantity=2, unit=units["piece"]),
            AvailableItem(product=products["egg"], quantity=500, unit=units["g"]),
        ]
        if reverse:
            rows.reverse()
        required = [RequiredIngredient(product=products["egg"], quantity=200, unit=units["g"])]

        deductions = plan_deductions(required, rows)

        assert len(deductions) == 1
        assert deductions[0].item.unit == units["g"]
        assert deductions[0].quantity == 200

    def test_unconvertible_row_covers_remaining_shortfall(self, products, units):
        rows = [
            AvailableItem(product=products["egg"], quantity=2, unit=units["piece"]),
            AvailableItem(product=products["egg"], quantity=100, unit=units["g"]),
        ]
        required = [RequiredIngredient(product=products["egg"], quantity=200, unit=units["g"])]

        with pytest.raises(ValidationError, match="manual quantity"):
            plan_deductions(required, rows)

        deductions = plan_deductions(required, rows, manual_quantities={3: 1})
        assert [d.quantity for d in deductions] == [100, pytest.approx(0.5)]
        assert deductions[1].item.unit == units["piece"]

    def test_unknown_needs_manual_quantity(self, products, units, fridge):
        required = [RequiredIngredient(product=products["egg"], quantity=120, unit=units["g"])]

        with pytest.raises(ValidationError, match="manual quantity"):
            plan_deductions(required, fridge)

    def test_manual_quantity_in_row_unit(self, products, units, fridge):
        required = [RequiredIngredient(product=products["egg"], quantity=120, unit=units["g"])]
        deductions = plan_deductions(required, fridge, manual_quantities={3: 2})

        assert deductions[0].quantity == 2
        assert deductions[0].remaining == 4

    def test_negative_manual_quantity_rejected(self, products, units, fridge):
        required = [RequiredIngredient(product=products["egg"], quantity=120, unit=units["g"])]
        with pytest.raises(ValidationError):
            plan_deductions(required, fridge, manual_quantities={3: -1})

    def test_insufficient_reports_details(self, pancakes, fridge):
        with pytest.raises(InsufficientIngredientsError) as exc_info:
            plan_deductions(pancakes.ingredients, fridge)

        missing = exc_info.value.details["missing"]
        assert [m["product_name"] for m in missing] == ["Flour", "Olive oil"]
        assert missing[0]["available"] == 0.0

    def test_shortfall_reports_available_amount(self, products, units, fridge):
        required = [RequiredIngredient(product=products["milk"], quantity=1500, unit=units["ml"])]

        with pytest.raises(InsufficientIngredientsError) as exc_info:
            plan_deductions(required, fridge)

        assert exc_info.value.details["missing"][0]["available"] == pytest.approx(1000)

    def test_empty_recipe(self, fridge):
        assert plan_deductions([], fridge) == []
