"""Model family variant and capability interface.

Every extracted model carries one :class:`ModelFamily`. Downstream code asks
the family what it can do (``supports_degrees_of_freedom``,
``requires_exponentiation``, ``has_zero_inflation_block``) instead of
inspecting result types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = ["FamilyKind", "ModelFamily", "normalize_link", "normalize_distribution"]

# Links whose coefficients read as multiplicative effects once exponentiated.
EXP_LINKS = frozenset({"logit", "log"})
COUNT_DISTRIBUTIONS = frozenset(
    {"poisson", "negativebinomial", "generalizedpoisson", "zip", "zinb"},
)

_LINK_ALIASES = {
    "logitlink": "logit",
    "loglink": "log",
    "identitylink": "identity",
    "probitlink": "probit",
    "cloglog": "cloglog",
    "clogloglink": "cloglog",
    "inversepower": "inverse",
    "inverse_power": "inverse",
    "inversepowerlink": "inverse",
    "inversesquared": "inverse_squared",
}

_DISTRIBUTION_ALIASES = {
    "normal": "gaussian",
    "ols": "gaussian",
    "binary": "binomial",
    "logistic": "binomial",
    "negbin": "negativebinomial",
    "negativebinomialp": "negativebinomial",
    "negative_binomial": "negativebinomial",
    "nb": "negativebinomial",
}


def normalize_link(link: object) -> str:
    """Return a canonical lowercase link name (``"logit"``, ``"log"``, ...)."""
    text = str(link or "identity").strip().lower().replace(" ", "").replace("-", "")
    return _LINK_ALIASES.get(text, text)


def normalize_distribution(distribution: object) -> str:
    """Return a canonical lowercase response distribution name."""
    text = str(distribution or "gaussian").strip().lower().replace(" ", "")
    return _DISTRIBUTION_ALIASES.get(text, text)


class FamilyKind(str, Enum):
    LINEAR = "linear"
    GENERALIZED_EXPONENTIATED = "generalized-exponentiated"
    GENERALIZED_LINEAR_SCALE = "generalized-linear-scale"
    ZERO_INFLATED = "zero-inflated"
    MIXED_WITH_DF = "mixed-with-df"


@dataclass(frozen=True)
class ModelFamily:
    """Tagged family descriptor.

    Attributes
    ----------
    kind : FamilyKind
        Variant tag.
    distribution : str
        Canonical response distribution (``"gaussian"``, ``"binomial"``, ...).
    link : str
        Canonical link function (``"identity"``, ``"logit"``, ``"log"``, ...).

    """

    kind: FamilyKind
    distribution: str = "gaussian"
    link: str = "identity"

    @classmethod
    def classify(
        cls,
        distribution: object = "gaussian",
        link: object = "identity",
        *,
        mixed: bool = False,
        zero_inflated: bool = False,
    ) -> ModelFamily:
        """Build a family from response metadata.

        Zero inflation wins over everything else; mixed models are only
        tagged ``MIXED_WITH_DF`` on the gaussian/identity scale, generalized
        mixed models fall through to the generalized variants.
        """
        dist = normalize_distribution(distribution)
        lnk = normalize_link(link)
        if zero_inflated:
            return cls(FamilyKind.ZERO_INFLATED, dist, "log" if lnk == "identity" else lnk)
        if dist == "gaussian" and lnk == "identity":
            kind = FamilyKind.MIXED_WITH_DF if mixed else FamilyKind.LINEAR
            return cls(kind, dist, lnk)
        if lnk in EXP_LINKS:
            return cls(FamilyKind.GENERALIZED_EXPONENTIATED, dist, lnk)
        return cls(FamilyKind.GENERALIZED_LINEAR_SCALE, dist, lnk)

    @property
    def supports_degrees_of_freedom(self) -> bool:
        return self.kind in {FamilyKind.LINEAR, FamilyKind.MIXED_WITH_DF}

    @property
    def requires_exponentiation(self) -> bool:
        return self.kind in {
            FamilyKind.GENERALIZED_EXPONENTIATED,
            FamilyKind.ZERO_INFLATED,
        }

    @property
    def supports_exponentiation(self) -> bool:
        return self.kind not in {FamilyKind.LINEAR, FamilyKind.MIXED_WITH_DF}

    @property
    def has_zero_inflation_block(self) -> bool:
        return self.kind is FamilyKind.ZERO_INFLATED

    @property
    def statistic_label(self) -> str:
        return "t" if self.supports_degrees_of_freedom else "z"

    def estimate_label(self, exponentiated: bool, *, zero_part: bool = False) -> str:
        """Default header for the estimate column."""
        if not exponentiated:
            return "Estimates"
        # The zero-inflation part is a logit model regardless of the count link.
        link = "logit" if zero_part else self.link
        if link == "logit":
            return "Odds Ratios"
        if link == "log":
            if self.distribution == "binomial":
                return "Risk Ratios"
            if self.distribution in COUNT_DISTRIBUTIONS or self.kind is FamilyKind.ZERO_INFLATED:
                return "Incidence Rate Ratios"
        return "Exp. Estimates"

    def __str__(self) -> str:
        return f"{self.kind.value} ({self.distribution}/{self.link})"
