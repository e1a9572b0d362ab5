import warnings

import pandas as pd
import pytest

from modeltab.errors import ConfigurationError, ExtractionError
from modeltab.output.config import TableConfig
from modeltab.output.summary import tab_model
from modeltab.output.table import ColumnKind
from modeltab.utils.helpers import INTERCEPT
from modeltab.utils.labels import MappingLabels


def _grid(table):
    """Numeric content of a table, independent of display text."""
    return {key: cell.value for key, cell in table.values.items()}


# ---------------------------------------------------------------------------
# Row union and alignment
# ---------------------------------------------------------------------------


def test_row_union_first_seen_with_blank_cells(model_a, model_b) -> None:
    table = tab_model([model_a, model_b])
    assert table.identities == [INTERCEPT, "age", "sex2", "older_age"]
    assert table.cell("older_age", 0, ColumnKind.ESTIMATE) is None
    assert table.cell("sex2", 1, ColumnKind.ESTIMATE) is None
    assert table.text("older_age", 0, ColumnKind.ESTIMATE) == ""
    assert table.cell("age", 0, ColumnKind.ESTIMATE).value == pytest.approx(0.5)
    assert table.cell("age", 1, ColumnKind.ESTIMATE).value == pytest.approx(0.4)
    frame = table.to_frame()
    assert frame.loc["older_age"].iloc[0] == ""


def test_single_model_is_accepted(model_a) -> None:
    table = tab_model(model_a)
    assert [col.model_index for col in table.columns] == [0]
    assert table.identities == [INTERCEPT, "age", "sex2"]


def test_intercept_dialects_share_one_row(make_fitted) -> None:
    m1 = make_fitted(["const", "x"], [1.0, 2.0], se=[0.1, 0.1], n_obs=30)
    m2 = make_fitted(["(Intercept)", "x"], [1.5, 2.5], se=[0.1, 0.1], n_obs=30)
    table = tab_model([m1, m2])
    assert table.identities == [INTERCEPT, "x"]


# ---------------------------------------------------------------------------
# Predictor labels
# ---------------------------------------------------------------------------


def test_positional_labels_assign_by_row(model_a, model_b) -> None:
    labels = ["Constant", "Age", "Female", "Older"]
    table = tab_model([model_a, model_b], pred_labels=labels)
    assert table.labels == labels


def test_positional_labels_must_match_row_count(model_a, model_b) -> None:
    with pytest.raises(ConfigurationError, match="pred_labels"):
        tab_model([model_a, model_b], pred_labels=["a", "b", "c"])
    table = tab_model([model_a, model_b], rm_terms=["older_age"], pred_labels=["a", "b", "c"])
    assert table.labels == ["a", "b", "c"]


def test_keyed_labels_ignore_key_order(model_a, model_b) -> None:
    one = tab_model([model_a, model_b], pred_labels={"age": "Age", "sex2": "Female"})
    two = tab_model([model_a, model_b], pred_labels={"sex2": "Female", "age": "Age"})
    assert one.labels == two.labels == [INTERCEPT, "Age", "Female", "older_age"]


def test_keyed_labels_superset_is_idempotent(model_a, model_b) -> None:
    base = tab_model([model_a, model_b], pred_labels={"age": "Age"})
    extra = tab_model([model_a, model_b], pred_labels={"age": "Age", "c12hour": "Hours", "x": "X"})
    assert base.rows == extra.rows
    assert _grid(base) == _grid(extra)


def test_keyed_labels_normalize_intercept_key(model_a) -> None:
    table = tab_model(model_a, pred_labels={"const": "Constant"})
    assert table.labels[0] == "Constant"


def test_keyed_labels_exact_identity_beats_alias(model_a) -> None:
    one = tab_model(model_a, pred_labels={"const": "A", "(Intercept)": "B"})
    two = tab_model(model_a, pred_labels={"(Intercept)": "B", "const": "A"})
    assert one.labels[0] == two.labels[0] == "B"
    same = tab_model(model_a, pred_labels={"const": "C", "_cons": "C"})
    assert same.labels[0] == "C"
    with pytest.raises(ConfigurationError, match="conflicting labels"):
        tab_model(model_a, pred_labels={"const": "A", "_cons": "B"})


def test_auto_labels_fall_back_to_identity(make_fitted) -> None:
    fm = make_fitted(["(Intercept)", "c172code3", "age"], [1.0, 0.5, 0.1], se=[0.1, 0.1, 0.1], n_obs=50)
    provider = MappingLabels(
        variable_labels={"c172code": "Education"},
        value_labels={"c172code": {"3": "high"}},
    )
    table = tab_model(fm, labels=provider)
    assert table.labels == [INTERCEPT, "Education: high", "age"]
    assert tab_model(fm, labels=provider, auto_label=False).labels == [INTERCEPT, "c172code3", "age"]
    keyed = tab_model(fm, labels=provider, pred_labels={"c172code3": "Edu (high)"})
    assert keyed.labels[1] == "Edu (high)"


def test_auto_labels_from_model_data(ols_fit) -> None:
    table = tab_model(ols_fit)
    assert "Dose" in table.labels
    assert "Sex: Male" in table.labels
    assert table.columns[0].label == "Outcome"


def test_first_model_metadata_wins(make_fitted) -> None:
    d1 = pd.DataFrame({"x": [1.0, 2.0]})
    d1.attrs["variable_labels"] = {"x": "First"}
    d2 = pd.DataFrame({"x": [1.0, 2.0]})
    d2.attrs["variable_labels"] = {"x": "Second"}
    m1 = make_fitted(["x"], [1.0], se=[0.1], n_obs=10, data=d1)
    m2 = make_fitted(["x"], [2.0], se=[0.1], n_obs=10, data=d2)
    assert tab_model([m1, m2]).labels == ["First"]
    assert tab_model([m2, m1]).labels == ["Second"]


# ---------------------------------------------------------------------------
# Term filters and ordering
# ---------------------------------------------------------------------------


def test_keep_and_remove_are_exclusive(model_a) -> None:
    with pytest.raises(ConfigurationError, match="mutually exclusive"):
        tab_model(model_a, terms=["age"], rm_terms=["sex2"])
    with pytest.raises(ConfigurationError):
        TableConfig(terms=[], rm_terms=[])


def test_remove_set_equals_complementary_keep_set(model_a, model_b) -> None:
    full = tab_model([model_a, model_b]).identities
    removed = ["sex2", INTERCEPT]
    by_remove = tab_model([model_a, model_b], rm_terms=removed)
    by_keep = tab_model([model_a, model_b], terms=[t for t in full if t not in removed])
    assert by_remove.rows == by_keep.rows
    assert _grid(by_remove) == _grid(by_keep)
    assert by_remove.identities == ["age", "older_age"]


def test_keep_set_ignores_unknown_and_keeps_row_order(model_a, model_b) -> None:
    table = tab_model([model_a, model_b], terms=["older_age", "age", "nope"])
    assert table.identities == ["age", "older_age"]
    assert tab_model(model_a, terms="age").identities == ["age"]


def test_show_intercept(model_a) -> None:
    assert INTERCEPT not in tab_model(model_a, show_intercept=False).identities


def test_order_terms(model_a, model_b) -> None:
    table = tab_model([model_a, model_b], order_terms=[3, 0, 1, 2])
    assert table.identities == ["older_age", INTERCEPT, "age", "sex2"]
    labelled = tab_model([model_a, model_b], order_terms=[3, 0, 1, 2], pred_labels=["O", "I", "A", "S"])
    assert labelled.labels == ["O", "I", "A", "S"]
    with pytest.raises(ConfigurationError, match="order_terms"):
        tab_model([model_a, model_b], order_terms=[0, 1, 2])
    with pytest.raises(ConfigurationError, match="order_terms"):
        tab_model([model_a, model_b], order_terms=[0, 0, 1, 2])


# ---------------------------------------------------------------------------
# Model column labels
# ---------------------------------------------------------------------------


def test_dv_labels(model_a, model_b, make_fitted) -> None:
    assert [c.label for c in tab_model([model_a, model_b]).columns] == ["y", "z"]
    named = tab_model([model_a, model_b], dv_labels=["Model A", "Model B"])
    assert [c.label for c in named.columns] == ["Model A", "Model B"]
    keyed = tab_model([model_a, model_b], dv_labels={"z": "Zed", "w": "unused"})
    assert [c.label for c in keyed.columns] == ["y", "Zed"]
    anon = make_fitted(["x"], [1.0], se=[0.1], n_obs=10)
    assert tab_model([model_a, anon]).columns[1].label == "(2)"
    with pytest.raises(ConfigurationError, match="dv_labels"):
        tab_model([model_a, model_b], dv_labels=["only one"])


# ---------------------------------------------------------------------------
# Failures and configuration
# ---------------------------------------------------------------------------


def test_failed_model_is_omitted(model_a, model_b) -> None:
    with pytest.warns(RuntimeWarning, match="Omitting model 2"):
        table = tab_model([model_a, object(), model_b])
    assert [c.model_index for c in table.columns] == [0, 2]
    assert len(table.errors) == 1
    assert table.errors[0].model == 1
    assert str(table.errors[0]).startswith("[model 2]")
    assert table.identities == [INTERCEPT, "age", "sex2", "older_age"]


def test_all_models_failing_raises() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        with pytest.raises(ExtractionError, match="none of the supplied models"):
            tab_model([object(), "not a model"])


def test_dv_labels_keep_input_positions_when_a_model_fails(model_a, model_b) -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        table = tab_model([model_a, object(), model_b], dv_labels=["A", "broken", "B"])
    assert [c.label for c in table.columns] == ["A", "B"]


def test_threaded_extraction_preserves_order(model_a, model_b, zi_model) -> None:
    serial = tab_model([model_a, model_b, zi_model])
    threaded = tab_model([model_a, model_b, zi_model], n_jobs=3)
    assert threaded.rows == serial.rows
    assert [c.model_index for c in threaded.columns] == [0, 1, 2]
    assert _grid(threaded) == _grid(serial)


def test_config_object_with_overrides(model_a) -> None:
    cfg = TableConfig(digits=3)
    table = tab_model(model_a, config=cfg, show_se=True)
    assert table.text("age", 0, ColumnKind.ESTIMATE) == "0.500"
    assert ColumnKind.SE in table.columns[0].kinds
    assert ColumnKind.SE not in tab_model(model_a, config=cfg).columns[0].kinds


def test_invalid_options(model_a) -> None:
    with pytest.raises(ConfigurationError, match="unrecognised option"):
        tab_model(model_a, show_everything=True)
    with pytest.raises(ConfigurationError, match="p_style"):
        tab_model(model_a, p_style="asterisks")
    with pytest.raises(ConfigurationError, match="transform"):
        tab_model(model_a, transform="log")
    with pytest.raises(ConfigurationError, match="pred_labels"):
        tab_model(model_a, pred_labels="age")
    with pytest.raises(ConfigurationError, match="no models"):
        tab_model([])
    with pytest.raises(ConfigurationError, match="numeric"):
        tab_model(model_a, digits="two")
    with pytest.raises(ConfigurationError, match="numeric"):
        tab_model(model_a, p_threshold=("a", "b", "c"))


def test_env_defaults(monkeypatch, model_a) -> None:
    monkeypatch.setenv("MODELTAB_DIGITS", "4")
    assert TableConfig().digits == 4
    assert tab_model(model_a).text("age", 0, ColumnKind.ESTIMATE) == "0.5000"
    monkeypatch.setenv("MODELTAB_DIGITS", "many")
    assert TableConfig().digits == 2
    monkeypatch.setenv("MODELTAB_JOBS", "0")
    assert TableConfig().n_jobs == 1
