import numpy as np
import pandas as pd
import pytest

from src.processing.composites import (
    compute_composites,
    leading_component_score,
    mean_of_percentiles,
    mean_of_values,
    percentile_of_composite,
)
from src.processing.indicator_registry import (
    INDEX_COLUMNS,
    PERCENTILE_COLUMNS,
    VALUE_COLUMNS,
    CompositeIndex,
    UnknownIndexError,
)
from src.processing.normalization import normalize_indicators
from src.processing.ranking import rank_indicators
from src.processing.scopes import national_scope, state_scope


def _ranked(joined: pd.DataFrame, scope=None) -> pd.DataFrame:
    scope = scope or national_scope()
    values = pd.concat([joined, normalize_indicators(joined)], axis=1)
    return pd.concat([values, rank_indicators(values, scope)], axis=1)


def test_mean_of_values_is_strict():
    df = pd.DataFrame(
        {
            "pct_low_income": [40.0, 40.0],
            "pct_ling_isolated": [2.0, 2.0],
            "pct_less_hs": [10.0, np.nan],
            "pct_unemployed": [5.0, 5.0],
            "inv_life_expectancy": [73.0, 73.0],
        }
    )

    result = mean_of_values(df)

    assert result.iloc[0] == pytest.approx(np.mean([40.0, 2.0, 10.0, 5.0, 73.0]))
    assert pd.isna(result.iloc[1])


def test_mean_of_values_missing_column_returns_nan():
    df = pd.DataFrame({"pct_low_income": [40.0]})
    assert mean_of_values(df).isna().all()


def test_mean_of_percentiles_equals_row_mean(joined_table):
    table = _ranked(joined_table)
    result = mean_of_percentiles(table)

    expected = table[PERCENTILE_COLUMNS].sum(axis=1) / 5
    assert result.tolist() == pytest.approx(expected.tolist())


def test_mean_of_percentiles_missing_percentile_propagates(joined_table):
    joined_table.loc[4, "LINGISOPCT"] = np.nan
    table = _ranked(joined_table)

    result = mean_of_percentiles(table)

    assert pd.isna(result.loc[4])
    assert result.drop(index=4).notna().all()


def test_leading_component_correlates_positively_with_mean(random_joined_table):
    table = _ranked(random_joined_table)
    reference = mean_of_values(table)

    for columns in (VALUE_COLUMNS, PERCENTILE_COLUMNS):
        for scaled in (False, True):
            result = leading_component_score(table, columns, scaled=scaled, reference=reference)
            corr = np.corrcoef(result.scores, reference)[0, 1]
            assert corr > 0


def test_leading_component_sign_follows_reference(random_joined_table):
    table = _ranked(random_joined_table)
    mean = mean_of_values(table)

    forward = leading_component_score(table, VALUE_COLUMNS, reference=mean)
    reverse = leading_component_score(table, VALUE_COLUMNS, reference=-mean)

    assert forward.scores.tolist() == pytest.approx((-reverse.scores).tolist())
    assert forward.sign_flipped != reverse.sign_flipped


def test_unscaled_component_is_dominated_by_income(random_joined_table):
    table = _ranked(random_joined_table)
    result = leading_component_score(
        table, VALUE_COLUMNS, scaled=False, reference=mean_of_values(table)
    )

    largest = max(result.loadings, key=lambda col: abs(result.loadings[col]))
    assert largest == "pct_low_income"
    assert 0 < result.explained_variance_ratio <= 1


def test_leading_component_projects_rows_outside_fit(random_joined_table):
    table = _ranked(random_joined_table)
    fit_mask = pd.Series(False, index=table.index)
    fit_mask.iloc[:30] = True

    result = leading_component_score(table, VALUE_COLUMNS, fit_mask=fit_mask)

    assert result.n_fit == 30
    assert result.scores.notna().all()


def test_leading_component_skips_incomplete_rows(random_joined_table):
    random_joined_table.loc[5, "UNEMPPCT"] = np.nan
    table = _ranked(random_joined_table)

    result = leading_component_score(table, VALUE_COLUMNS, scaled=True)

    assert pd.isna(result.scores.loc[5])
    assert result.scores.drop(index=5).notna().all()
    assert result.n_fit == 49


def test_leading_component_too_few_rows_returns_missing(joined_table):
    table = _ranked(joined_table)
    fit_mask = pd.Series(False, index=table.index)
    fit_mask.iloc[0] = True

    result = leading_component_score(table, VALUE_COLUMNS, fit_mask=fit_mask)

    assert result.scores.isna().all()
    assert result.n_fit == 1


def test_compute_composites_returns_every_index(joined_table):
    table = _ranked(joined_table)
    composites, pca_results = compute_composites(table, national_scope())

    assert list(composites.columns) == INDEX_COLUMNS
    assert composites.index.equals(table.index)
    assert set(pca_results) == {
        "demo_index_pca",
        "demo_index_pca_scaled",
        "demo_index_pctile_pca",
        "demo_index_pctile_pca_scaled",
    }
    assert composites["demo_index_mean_pctile"].max() == pytest.approx(100.0)


def test_compute_composites_state_scope_limits_percentile_indexes(joined_table):
    scope = state_scope("24")
    table = _ranked(joined_table, scope)
    composites, _ = compute_composites(table, scope)

    outside = ~joined_table["geoid"].str.startswith("24")
    assert composites.loc[outside, "demo_index_pctile_mean"].isna().all()
    assert composites.loc[outside, "demo_index_mean_pctile"].isna().all()
    # Mean of values and value PCA do not depend on the reference population
    assert composites.loc[outside, "demo_index_mean"].notna().all()
    assert composites.loc[outside, "demo_index_pca"].notna().all()


def test_percentile_of_composite_accepts_index_key(joined_table):
    table = _ranked(joined_table)
    work = table.assign(demo_index_mean=mean_of_values(table))

    by_key = percentile_of_composite(work, CompositeIndex.MEAN_OF_VALUES, national_scope())
    by_name = percentile_of_composite(work, "mean", national_scope())

    pd.testing.assert_series_equal(by_key, by_name)
    assert by_key.max() == pytest.approx(100.0)


def test_percentile_of_composite_unknown_index_raises(joined_table):
    with pytest.raises(UnknownIndexError):
        percentile_of_composite(_ranked(joined_table), "median", national_scope())


def test_leading_component_is_exact_on_large_inputs():
    rng = np.random.default_rng(7)
    n = 1200
    latent = rng.normal(size=(n, 1))
    values = pd.DataFrame(
        latent * [3.0, 2.0, 1.0] + rng.normal(scale=0.5, size=(n, 3)), columns=["a", "b", "c"]
    )

    first = leading_component_score(values, ["a", "b", "c"])
    second = leading_component_score(values, ["a", "b", "c"])

    np.testing.assert_array_equal(first.scores.to_numpy(), second.scores.to_numpy())

    centred = values.to_numpy() - values.to_numpy().mean(axis=0)
    _, _, vt = np.linalg.svd(centred, full_matrices=False)
    loadings = np.array([first.loadings[col] for col in ["a", "b", "c"]])
    assert np.abs(loadings) == pytest.approx(np.abs(vt[0]), abs=1e-10)
