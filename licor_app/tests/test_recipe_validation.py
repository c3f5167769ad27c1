import numpy as np
import pytest

from licor_app.engine.plugin_api import LicorRecipeError
from licor_app.engine.recipe_model import Recipe, parse_observations


def test_recipe_validation_passes_for_reasonable_recipe():
    recipe = Recipe(
        identifier=["wt", "mut"],
        plot_type="relgsw",
        area_correction=1.8,
        timestamps=[20, 40],
        observations=range(16, 71),
        y_axis_limits=(0, 2),
        errorbars="sd",
        remove_outliers="yes",
    )
    assert recipe.validate() == []
    assert recipe.outlier_removal is True
    assert recipe.legend_labels == ["wt", "mut"]


def test_recipe_validation_flags_unknown_plot_and_errorbar_types():
    errs = Recipe(identifier=["wt"], plot_type="ci", errorbars="ci95").validate()
    assert any("Plot type" in err for err in errs)
    assert any("Error bars" in err for err in errs)


def test_recipe_validation_flags_numeric_options():
    errs = Recipe(
        identifier=["wt"],
        area_correction=-1,
        y_axis_limits=(2, 0),
        observations=[0, 1],
        remove_outliers="maybe",
    ).validate()
    assert "Area correction must be positive" in errs
    assert "Y axis lower limit must be less than the upper limit" in errs
    assert "Observation positions must be positive integers" in errs
    assert "remove_outliers must be 'yes' or 'no'" in errs


def test_recipe_validation_flags_missing_identifier_and_short_legend():
    assert "At least one genotype identifier is required" in Recipe().validate()
    errs = Recipe(identifier=["wt", "mut"], legend_labels=["Col-0"]).validate()
    assert "Legend labels must cover every genotype identifier" in errs


def test_recipe_accepts_numpy_observation_positions():
    assert Recipe(identifier=["wt"], observations=np.arange(1, 6)).validate() == []


def test_raise_for_errors_joins_messages():
    with pytest.raises(LicorRecipeError) as excinfo:
        Recipe(identifier=["wt"], plot_type="gs", errorbars="ci").raise_for_errors()
    assert len(excinfo.value.errors) == 2
    assert "; " in str(excinfo.value)


def test_parse_observations_returns_inclusive_range():
    assert list(parse_observations("16:20")) == [16, 17, 18, 19, 20]
    assert list(parse_observations("7")) == [7]
    with pytest.raises(LicorRecipeError):
        parse_observations("20:16")
    with pytest.raises(LicorRecipeError):
        parse_observations("a:b")
