from __future__ import annotations

import warnings

import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm
import statsmodels.formula.api as smf

from modeltab.extract.base import FittedModel


def fitted(names, estimates, *, se=None, **kwargs) -> FittedModel:
    """Small FittedModel built from plain lists."""
    index = pd.Index(names)
    return FittedModel(
        params=pd.Series(estimates, index=index, dtype=float),
        se=None if se is None else pd.Series(se, index=index, dtype=float),
        **kwargs,
    )


@pytest.fixture
def make_fitted():
    return fitted


@pytest.fixture
def model_a() -> FittedModel:
    return fitted(
        ["(Intercept)", "age", "sex2"],
        [1.0, 0.5, -0.25],
        se=[0.1, 0.2, 0.3],
        n_obs=100,
        dep_var="y",
        model_info={"R2": 0.30, "R2_adj": 0.28},
    )


@pytest.fixture
def model_b() -> FittedModel:
    return fitted(
        ["(Intercept)", "age", "older_age"],
        [2.0, 0.4, 1.5],
        se=[0.2, 0.1, 0.5],
        n_obs=80,
        dep_var="z",
        model_info={"R2": 0.45, "R2_adj": 0.41},
    )


@pytest.fixture
def zi_model() -> FittedModel:
    zero = fitted(["(Intercept)", "age"], [-1.0, 0.2], se=[0.4, 0.1])
    return fitted(
        ["(Intercept)", "age", "persons"],
        [0.3, 0.05, 0.6],
        se=[0.1, 0.02, 0.2],
        n_obs=250,
        distribution="poisson",
        link="log",
        dep_var="count",
        zero_inflation=zero,
    )


@pytest.fixture(scope="module")
def frame() -> pd.DataFrame:
    rng = np.random.default_rng(42)
    n = 200
    x1 = rng.standard_normal(n)
    x2 = rng.standard_normal(n)
    grp = np.repeat(np.arange(20), n // 20)
    u = rng.standard_normal(20)[grp]
    sex = pd.Categorical(rng.choice(["male", "female"], size=n), categories=["female", "male"])
    y = 1.0 + 0.5 * x1 - 0.3 * x2 + 0.4 * (sex == "male") + u + rng.standard_normal(n)
    eta = -0.2 + 0.8 * x1
    yb = (rng.random(n) < 1.0 / (1.0 + np.exp(-eta))).astype(float)
    lam = np.exp(0.3 + 0.4 * x1)
    count = rng.poisson(lam) * (rng.random(n) > 0.25)
    df = pd.DataFrame(
        {"y": y, "yb": yb, "count": count, "x1": x1, "x2": x2, "sex": sex, "grp": grp},
    )
    df.attrs["variable_labels"] = {
        "y": "Outcome",
        "x1": "Dose",
        "x2": "Age",
        "sex": "Sex",
    }
    df.attrs["value_labels"] = {"sex": {"male": "Male", "female": "Female"}}
    return df


@pytest.fixture(scope="module")
def ols_fit(frame):
    return smf.ols("y ~ x1 + x2 + sex", data=frame).fit()


@pytest.fixture(scope="module")
def glm_logit_fit(frame):
    return smf.glm("yb ~ x1", data=frame, family=sm.families.Binomial()).fit()


@pytest.fixture(scope="module")
def logit_fit(frame):
    return smf.logit("yb ~ x1 + x2", data=frame).fit(disp=0)


@pytest.fixture(scope="module")
def poisson_fit(frame):
    return smf.poisson("count ~ x1", data=frame).fit(disp=0)


@pytest.fixture(scope="module")
def zip_fit(frame):
    exog = sm.add_constant(frame[["x1"]])
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return sm.ZeroInflatedPoisson(frame["count"], exog, exog_infl=exog).fit(disp=0, maxiter=200)


@pytest.fixture(scope="module")
def mixed_fit(frame):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return smf.mixedlm("y ~ x1 + x2", data=frame, groups=frame["grp"]).fit()
