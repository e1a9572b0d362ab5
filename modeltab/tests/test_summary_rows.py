import numpy as np
import pandas as pd
import pytest

from modeltab.core.families import ModelFamily
from modeltab.core.stats import nakagawa_r2, summary_stats
from modeltab.output.summary import tab_model
from modeltab.output.table import ColumnKind


def test_observation_and_r2_rows(model_a, model_b) -> None:
    table = tab_model([model_a, model_b])
    nobs = table.summary("nobs")
    assert nobs.label == "Observations"
    assert {i: c.text for i, c in nobs.cells.items()} == {0: "100", 1: "80"}
    r2 = table.summary("r2")
    assert r2.label == "R2 / R2 adjusted"
    assert r2.cells[0].text == "0.300 / 0.280"
    assert r2.cells[1].value == pytest.approx((0.45, 0.41))
    assert table.summary("icc") is None


def test_summary_rows_can_be_switched_off(model_a) -> None:
    table = tab_model(model_a, show_obs=False, show_r2=False)
    assert table.summary_rows == ()


def test_summary_row_blank_for_models_without_statistic(model_a, make_fitted) -> None:
    bare = make_fitted(["age"], [0.1], se=[0.1])
    table = tab_model([model_a, bare])
    r2 = table.summary("r2")
    assert 0 in r2.cells
    assert 1 not in r2.cells


def test_pseudo_r2_rows_by_kind(logit_fit, glm_logit_fit) -> None:
    table = tab_model([logit_fit, glm_logit_fit])
    mcfadden = table.summary("pseudo_r2:McFadden")
    coxsnell = table.summary("pseudo_r2:Cox-Snell")
    assert mcfadden.label == "R2 McFadden"
    assert list(mcfadden.cells) == [0]
    assert mcfadden.cells[0].value == pytest.approx(logit_fit.prsquared)
    assert list(coxsnell.cells) == [1]
    assert table.summary("r2") is None


def test_pseudo_r2_from_model_info(make_fitted) -> None:
    fm = make_fitted(
        ["x"],
        [0.2],
        se=[0.1],
        distribution="binomial",
        link="logit",
        model_info={"PseudoR2": 0.12, "PseudoR2Kind": "Tjur"},
    )
    row = tab_model(fm).summary("pseudo_r2:Tjur")
    assert row.cells[0].text == "0.120"


def test_mixed_model_rows(mixed_fit) -> None:
    table = tab_model(mixed_fit, show_df=True)
    assert table.summary("r2_mixed").label == "Marginal R2 / Conditional R2"
    assert table.summary("ngroups").cells[0].text == "20"
    icc = table.summary("icc").cells[0].value
    assert 0.0 < icc < 1.0
    assert table.text("x1", 0, ColumnKind.DF) == "197"


def test_information_criteria(ols_fit) -> None:
    table = tab_model(ols_fit, show_aic=True, show_loglik=True)
    assert table.summary("aic").cells[0].value == pytest.approx(ols_fit.aic)
    assert table.summary("loglik").label == "log-Likelihood"
    assert tab_model(ols_fit).summary("aic") is None


def test_custom_stats(model_a, model_b) -> None:
    def doubled(ext, factor=2):
        return ext.n_obs * factor

    def broken(ext):
        raise ValueError("no")

    table = tab_model(
        [model_a, model_b],
        stats=[
            ("Twice N", doubled),
            ("Scaled N", doubled, {"factor": {"y": 10, "_default": 1}}),
            ("Broken", broken),
            ("Family", lambda ext: ext.family.kind.value),
            ("Ratio", lambda ext: ext.n_obs / 3),
        ],
    )
    twice = table.summary("stat:Twice N")
    assert {i: c.text for i, c in twice.cells.items()} == {0: "200", 1: "160"}
    scaled = table.summary("stat:Scaled N")
    assert scaled.cells[0].text == "1000"
    assert scaled.cells[1].text == "80"
    assert table.summary("stat:Broken").cells[0].text == ""
    assert table.summary("stat:Family").cells[1].text == "linear"
    assert table.summary("stat:Ratio").cells[0].text == "33.33"


def test_nakagawa_r2_random_intercept() -> None:
    eta = np.array([0.0, 1.0, 2.0, 3.0])
    out = nakagawa_r2(eta, None, np.array([[2.0]]), 1.0)
    var_f = np.var(eta, ddof=1)
    total = var_f + 2.0 + 1.0
    assert out["r2_marginal"] == pytest.approx(var_f / total)
    assert out["r2_conditional"] == pytest.approx((var_f + 2.0) / total)
    assert out["icc"] == pytest.approx(2.0 / 3.0)


def test_nakagawa_r2_random_slope() -> None:
    Z = np.column_stack([np.ones(4), np.array([-1.0, 0.0, 1.0, 2.0])])
    sigma = np.array([[1.0, 0.0], [0.0, 0.5]])
    out = nakagawa_r2(np.zeros(4), Z, sigma, 1.0)
    var_r = np.mean(1.0 + 0.5 * Z[:, 1] ** 2)
    assert out["r2_marginal"] == pytest.approx(0.0)
    assert out["icc"] == pytest.approx(var_r / (var_r + 1.0))


def test_summary_stats_prefers_model_info(make_fitted) -> None:
    fm = make_fitted(["x"], [1.0], se=[0.1], n_obs=12, model_info={"R2": 0.5, "AIC": float("nan")})
    out = summary_stats(fm, ModelFamily.classify())
    assert out["r2"] == pytest.approx(0.5)
    assert out["nobs"] == 12
    assert "aic" not in out


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def test_to_frame_layout(model_a, model_b) -> None:
    frame = tab_model([model_a, model_b], dv_labels=["A", "B"]).to_frame()
    assert isinstance(frame.columns, pd.MultiIndex)
    assert list(frame.columns[:3]) == [("A", "Estimates"), ("A", "CI"), ("A", "p")]
    assert frame.index.name == "term"
    assert list(frame.index[:4]) == ["(Intercept)", "age", "sex2", "older_age"]
    assert frame.loc["Observations", ("A", "Estimates")] == "100"
    assert frame.loc["Observations", ("A", "CI")] == ""
    assert frame.loc["sex2", ("B", "Estimates")] == ""


def test_to_text(model_a, model_b) -> None:
    text = tab_model([model_a, model_b], pred_labels={"older_age": "older_age & wiser"}).to_text()
    assert "older_age & wiser" in text
    assert "Observations" in text
    assert "0.50" in text

    latex = tab_model([model_a, model_b], pred_labels={"older_age": "older_age & wiser"}).to_text(
        "latex_booktabs",
    )
    assert r"older\_age \& wiser" in latex
    assert r"\midrule" in latex
    assert "MTMIDRULE" not in latex
    assert r"\hline" in tab_model(model_a).to_text("latex")


def test_to_text_without_summary_rows(model_a) -> None:
    latex = tab_model(model_a, show_obs=False, show_r2=False).to_text("latex_booktabs")
    # Only the rule under the header remains.
    assert latex.count(r"\midrule") == 1
