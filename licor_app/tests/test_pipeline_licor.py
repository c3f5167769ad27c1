import math

import numpy as np
import pandas as pd
import pytest

from licor_app.engine import pipeline
from licor_app.engine.plugin_api import LicorFormatError
from licor_app.tests.licor_test_utils import combined_frame


def _raw(rows):
    return pd.DataFrame(rows, columns=["obs", "time", "A", "gsw"])


def test_transform_drops_rows_with_missing_or_unparseable_values():
    raw = _raw(
        [
            [1, 0, 10.0, 0.20],
            [2, 60, 11.0, "n/a"],
            [None, 120, 12.0, 0.30],
            [4, 180, None, 0.25],
            [5, 240, 9.0, 0.10],
        ]
    )

    enriched = pipeline.transform_file(raw, "wt", "wt_1.xlsx")

    assert enriched["obs"].tolist() == [1.0, 5.0]
    assert not enriched.isna().any().any()
    assert list(enriched.columns) == list(pipeline.COMBINED_COLUMNS)


def test_transform_derives_relative_conductance_and_wue():
    raw = _raw([[1, 0, 10.0, 0.2], [2, 60, 12.0, 0.4], [3, 120, 6.0, 0.3]])

    enriched = pipeline.transform_file(raw, "wt", "wt_1.xlsx")

    peak = enriched.loc[enriched["gsw"].idxmax()]
    assert peak["relgsw"] == 1.0
    assert enriched["relgsw"].tolist() == pytest.approx([0.5, 1.0, 0.75])
    assert enriched["WUE"].tolist() == pytest.approx([50.0, 30.0, 20.0])
    assert set(enriched["individual"]) == {"wt_1.xlsx"}
    assert set(enriched["genotype"]) == {"wt"}


def test_transform_crops_by_row_position_before_taking_maximum():
    rows = [[obs, 0, 10.0, 0.1 * obs] for obs in range(1, 9)]
    raw = _raw(rows)
    raw.index = [100 + idx for idx in range(len(raw))]

    enriched = pipeline.transform_file(raw, "wt", "wt_1.xlsx", observations=range(1, 6))

    assert enriched["obs"].tolist() == [1.0, 2.0, 3.0, 4.0, 5.0]
    assert enriched["relgsw"].max() == 1.0
    assert enriched["relgsw"].iloc[0] == pytest.approx(0.2)


def test_transform_ignores_positions_beyond_the_table():
    raw = _raw([[1, 0, 10.0, 0.2], [2, 60, 11.0, 0.4]])

    enriched = pipeline.transform_file(raw, "wt", "wt_1.xlsx", observations=range(2, 10))

    assert enriched["obs"].tolist() == [2.0]
    assert enriched["relgsw"].tolist() == [1.0]


def test_transform_with_empty_crop_returns_empty_table():
    raw = _raw([[1, 0, 10.0, 0.2]])

    enriched = pipeline.transform_file(raw, "wt", "wt_1.xlsx", observations=range(5, 8))

    assert enriched.empty
    assert list(enriched.columns) == list(pipeline.COMBINED_COLUMNS)


def test_transform_treats_zero_conductance_ratio_as_missing():
    raw = _raw([[1, 0, 10.0, 0.0], [2, 60, 11.0, 0.4]])

    enriched = pipeline.transform_file(raw, "wt", "wt_1.xlsx")

    assert enriched["obs"].tolist() == [2.0]
    assert np.isfinite(enriched["WUE"]).all()


def test_transform_requires_measurement_columns():
    raw = pd.DataFrame({"obs": [1, 2], "A": [10.0, 11.0]})

    with pytest.raises(LicorFormatError, match="gsw"):
        pipeline.transform_file(raw, "wt", "wt_1.xlsx")


def test_transform_removes_wue_outliers_per_file():
    rows = [[obs, 0, 10.0, 0.2] for obs in range(1, 10)]
    rows.append([10, 0, 100.0, 0.2])
    raw = _raw(rows)

    kept = pipeline.transform_file(raw, "wt", "wt_1.xlsx", remove_outliers=True)
    untouched = pipeline.transform_file(raw, "wt", "wt_1.xlsx", remove_outliers=False)

    assert 10.0 not in kept["obs"].tolist()
    assert len(kept) == 9
    assert len(untouched) == 10


def test_outlier_removal_is_noop_on_clean_data():
    raw = _raw([[obs, 0, 10.0 + obs * 0.1, 0.2] for obs in range(1, 8)])

    with_removal = pipeline.transform_file(raw, "wt", "wt_1.xlsx", remove_outliers=True)
    without = pipeline.transform_file(raw, "wt", "wt_1.xlsx", remove_outliers=False)

    pd.testing.assert_frame_equal(with_removal, without)


def test_accumulate_preserves_order_and_drops_missing_rows():
    first = combined_frame([(1, 10.0, 0.2, "wt_1.xlsx", "wt"), (2, 11.0, 0.3, "wt_1.xlsx", "wt")])
    second = combined_frame([(1, 8.0, 0.1, "mut_1.xlsx", "mut")])
    second.loc[0, "WUE"] = np.nan

    combined = pipeline.accumulate([first, second, first.iloc[0:0]])

    assert combined["individual"].tolist() == ["wt_1.xlsx", "wt_1.xlsx"]
    assert list(combined.index) == [0, 1]


def test_accumulate_without_frames_has_combined_columns():
    combined = pipeline.accumulate([])

    assert combined.empty
    assert list(combined.columns) == list(pipeline.COMBINED_COLUMNS)


def test_area_correction_scales_absolute_values_only():
    combined = combined_frame([(1, 10.0, 0.3, "wt_1.xlsx", "wt"), (2, 12.0, 0.6, "wt_1.xlsx", "wt")])
    relgsw_before = combined["relgsw"].tolist()
    wue_before = combined["WUE"].tolist()

    corrected = pipeline.apply_area_correction(combined, 2)

    assert corrected["gsw"].tolist() == pytest.approx([0.6, 1.2])
    assert corrected["A"].tolist() == pytest.approx([20.0, 24.0])
    assert corrected["relgsw"].tolist() == relgsw_before
    assert corrected["WUE"].tolist() == wue_before


def test_area_correction_of_one_leaves_table_unchanged():
    combined = combined_frame([(1, 10.0, 0.3, "wt_1.xlsx", "wt")])
    expected = combined.copy()

    pd.testing.assert_frame_equal(pipeline.apply_area_correction(combined, 1), expected)


def test_aggregate_pools_replicates_per_timepoint():
    combined = combined_frame(
        [
            (1, 10.0, 0.2, "wt_1.xlsx", "wt"),
            (1, 12.0, 0.3, "wt_1.xlsx", "wt"),
            (1, 11.0, 0.2, "wt_2.xlsx", "wt"),
            (1, 9.0, 0.25, "wt_2.xlsx", "wt"),
        ]
    )

    summary = pipeline.aggregate(combined, ["wt", "mut"])

    assert len(summary) == 1
    row = summary.iloc[0]
    assert row["mean_gsw"] == pytest.approx(0.2375)
    sd = np.std([0.2, 0.3, 0.2, 0.25], ddof=1)
    assert row["sd_abs"] == pytest.approx(sd)
    assert row["se_abs"] == pytest.approx(sd / math.sqrt(4))
    assert row["mean_A"] == pytest.approx(10.5)


def test_aggregate_standard_error_matches_sd_over_root_n():
    combined = combined_frame(
        [
            (1, 10.0, 0.2, "a.xlsx", "wt"),
            (1, 14.0, 0.4, "b.xlsx", "wt"),
            (2, 11.0, 0.3, "a.xlsx", "wt"),
            (2, 13.0, 0.3, "b.xlsx", "wt"),
            (2, 12.0, 0.5, "c.xlsx", "wt"),
        ]
    )

    summary = pipeline.aggregate(combined, ["wt"])

    for _, row in summary.iterrows():
        cell = combined[combined["obs"] == row["obs"]]
        for source, (_mean, sd_name, se_name) in pipeline.SUMMARY_COLUMNS.items():
            assert row[se_name] == pytest.approx(row[sd_name] / math.sqrt(cell[source].count()))


def test_aggregate_single_observation_gives_nan_spread():
    combined = combined_frame([(1, 10.0, 0.2, "wt_1.xlsx", "wt")])

    summary = pipeline.aggregate(combined, ["wt"])

    assert summary.loc[0, "mean_gsw"] == pytest.approx(0.2)
    assert math.isnan(summary.loc[0, "sd_abs"])
    assert math.isnan(summary.loc[0, "se_abs"])


def test_aggregate_orders_genotypes_by_identifier():
    combined = combined_frame(
        [
            (1, 10.0, 0.2, "a_wt.xlsx", "wt"),
            (1, 8.0, 0.1, "b_mut.xlsx", "mut"),
            (2, 9.0, 0.3, "b_mut.xlsx", "mut"),
        ]
    )

    summary = pipeline.aggregate(combined, ["wt", "mut", "wt"])

    assert list(summary["genotype"].cat.categories) == ["wt", "mut"]
    assert summary["genotype"].cat.ordered
    assert summary[["obs", "genotype"]].astype(str).values.tolist() == [
        ["1.0", "mut"],
        ["1.0", "wt"],
        ["2.0", "mut"],
    ]


def test_aggregate_of_empty_table_keeps_summary_columns():
    summary = pipeline.aggregate(pipeline.accumulate([]), ["wt"])

    assert summary.empty
    assert "se_WUE" in summary.columns
    assert list(summary["genotype"].cat.categories) == ["wt"]
