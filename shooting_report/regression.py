"""
Regression Module
=================

Ordinary least squares of an incident coordinate against hour-of-day.

The hour is one-hot encoded with a reference level dropped, so each
coefficient is the difference between that hour's mean coordinate and the
reference hour's mean. Two independent models are fitted: latitude ~ hour
and longitude ~ hour.
"""

import logging
from typing import Dict, Any, List, Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .errors import DegenerateFitError
from .schema import HOUR, LATITUDE, LONGITUDE

logger = logging.getLogger(__name__)

INTERCEPT = "const"


def fit_ols(y: pd.Series, X: pd.DataFrame):
    """
    Closed-form OLS fit with a rank check on the design matrix.

    Args:
        y: Response vector
        X: Design matrix (intercept column included by the caller)

    Returns:
        statsmodels RegressionResults

    Raises:
        DegenerateFitError: If X is rank-deficient or leaves no residual
            degrees of freedom
    """
    n_obs, n_params = X.shape
    if n_obs == 0 or n_params == 0:
        raise DegenerateFitError(f"Empty design matrix of shape {X.shape}")

    rank = int(np.linalg.matrix_rank(X.to_numpy(dtype=float)))
    if rank < n_params:
        raise DegenerateFitError(
            f"Design matrix is rank-deficient: rank {rank} < {n_params} columns"
        )
    if n_obs <= n_params:
        raise DegenerateFitError(
            f"No residual degrees of freedom: {n_obs} observations for {n_params} parameters"
        )

    return sm.OLS(y.astype(float), X.astype(float)).fit()


class HourOfDayRegressor:
    """
    Single categorical predictor OLS model.

    With a single observed predictor level the design matrix is the
    intercept alone and the fitted intercept is the sample mean.
    """

    def __init__(self, response: str, predictor: str = HOUR, reference: int = 0):
        """
        Initialize the model.

        Args:
            response: Continuous response column (e.g. ``Latitude``)
            predictor: Categorical predictor column
            reference: Predictor level absorbed into the intercept. Falls
                back to the lowest observed level if absent from the data.
        """
        self.response = response
        self.predictor = predictor
        self.reference = reference

        self.results = None
        self.levels_: Optional[List[Any]] = None
        self.reference_: Optional[Any] = None
        self.observed_: Optional[pd.Series] = None
        self._is_fitted = False

    def design_matrix(self, df: pd.DataFrame) -> Tuple[pd.Series, pd.DataFrame]:
        """
        Build the response vector and dummy-encoded design matrix.

        Rows with a null response are dropped.

        Returns:
            Tuple of (y, X)
        """
        data = df[[self.predictor, self.response]].dropna(subset=[self.response])
        levels = sorted(data[self.predictor].unique())
        if not levels:
            raise DegenerateFitError(f"No observations with a {self.response} value")

        reference = self.reference
        if reference not in levels:
            logger.warning(
                f"Reference level {reference!r} not observed for {self.predictor}; "
                f"using {levels[0]!r}"
            )
            reference = levels[0]

        self.levels_ = [reference] + [level for level in levels if level != reference]
        self.reference_ = reference

        predictor = pd.Series(
            pd.Categorical(data[self.predictor], categories=self.levels_),
            index=data.index,
        )
        dummies = pd.get_dummies(predictor, prefix=self.predictor, drop_first=True, dtype=float)
        intercept = pd.Series(1.0, index=data.index, name=INTERCEPT)
        X = pd.concat([intercept, dummies], axis=1)

        return data[self.response].astype(float), X

    def fit(self, df: pd.DataFrame) -> 'HourOfDayRegressor':
        """
        Fit the model on the typed incident table.

        Args:
            df: Table with the predictor and response columns

        Returns:
            Self for method chaining

        Raises:
            DegenerateFitError: If the design matrix is degenerate
        """
        logger.info(f"Fitting OLS: {self.response} ~ C({self.predictor})")

        y, X = self.design_matrix(df)
        self.results = fit_ols(y, X)
        self.observed_ = y
        self._is_fitted = True

        logger.info(
            f"{self.response} ~ C({self.predictor}): n={self.n_obs}, "
            f"{X.shape[1]} parameters, R²={self.r_squared:.4f}"
        )
        return self

    def _check_fitted(self) -> None:
        if not self._is_fitted:
            raise ValueError("Model must be fitted first. Call fit() first.")

    @property
    def coefficients(self) -> pd.Series:
        self._check_fitted()
        return self.results.params

    @property
    def std_errors(self) -> pd.Series:
        self._check_fitted()
        return self.results.bse

    @property
    def r_squared(self) -> float:
        self._check_fitted()
        return float(self.results.rsquared)

    @property
    def n_obs(self) -> int:
        self._check_fitted()
        return int(self.results.nobs)

    @property
    def fitted_values(self) -> pd.Series:
        self._check_fitted()
        return self.results.fittedvalues

    @property
    def residuals(self) -> pd.Series:
        self._check_fitted()
        return self.results.resid

    def _term(self, level) -> str:
        return f"{self.predictor}_{level}"

    def level_means(self) -> pd.Series:
        """Fitted mean response for every predictor level."""
        self._check_fitted()
        params = self.coefficients
        means = {
            level: params[INTERCEPT] + (
                0.0 if level == self.reference_ else params[self._term(level)]
            )
            for level in self.levels_
        }
        return pd.Series(means, name=self.response).sort_index()

    def level_std_errors(self) -> pd.Series:
        """Standard error of each fitted level mean (intercept plus dummy)."""
        self._check_fitted()
        cov = self.results.cov_params()
        errors = {}
        for level in self.levels_:
            variance = cov.loc[INTERCEPT, INTERCEPT]
            if level != self.reference_:
                term = self._term(level)
                variance += cov.loc[term, term] + 2 * cov.loc[INTERCEPT, term]
            errors[level] = float(np.sqrt(variance))
        return pd.Series(errors, name=self.response).sort_index()

    def to_dict(self) -> Dict[str, Any]:
        self._check_fitted()
        return {
            "response": self.response,
            "predictor": self.predictor,
            "reference": self.reference_,
            "n_obs": self.n_obs,
            "r_squared": self.r_squared,
            "coefficients": {k: float(v) for k, v in self.coefficients.items()},
            "std_errors": {k: float(v) for k, v in self.std_errors.items()},
        }


def fit_location_models(
    df: pd.DataFrame,
    reference: int = 0,
    responses: Tuple[str, ...] = (LATITUDE, LONGITUDE)
) -> Dict[str, Optional[HourOfDayRegressor]]:
    """
    Fit one hour-of-day model per coordinate.

    A degenerate fit is logged and recorded as ``None`` for that response;
    the other models are still fitted.

    Args:
        df: Typed incident table
        reference: Reference hour for the dummy encoding
        responses: Response columns to model

    Returns:
        Mapping of response column to fitted model (or None)
    """
    logger.info("=" * 60)
    logger.info("FITTING HOUR-OF-DAY REGRESSIONS")
    logger.info("=" * 60)

    models: Dict[str, Optional[HourOfDayRegressor]] = {}
    for response in responses:
        try:
            models[response] = HourOfDayRegressor(response, reference=reference).fit(df)
        except DegenerateFitError as e:
            logger.error(f"{response} ~ C({HOUR}) could not be fitted: {e}")
            models[response] = None

    return models


def print_model_summary(models: Dict[str, Optional[HourOfDayRegressor]]) -> None:
    """
    Print coefficient tables for the fitted models.

    Args:
        models: Mapping from fit_location_models
    """
    print("\n" + "=" * 60)
    print("REGRESSION SUMMARY")
    print("=" * 60)

    for response, model in models.items():
        print(f"\n{response} ~ C({HOUR})")
        print("-" * 40)
        if model is None:
            print("  Not fitted (degenerate design matrix)")
            continue

        table = pd.DataFrame({
            "coef": model.coefficients,
            "std_err": model.std_errors,
        })
        print(f"  Observations: {model.n_obs}")
        print(f"  Reference {HOUR}: {model.reference_}")
        print(f"  R²: {model.r_squared:.6f}")
        print(table.round(6).to_string())

    print("=" * 60 + "\n")
