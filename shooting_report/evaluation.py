"""
Model Evaluation Module
=======================

Fit diagnostics for the hour-of-day regressions.

Features:
    - RMSE, MAE, R² per fitted model
    - Residual distribution plots
    - Observed vs fitted hourly means
    - Metrics JSON export
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.metrics import mean_squared_error, mean_absolute_error, r2_score

from .regression import HourOfDayRegressor

logger = logging.getLogger(__name__)

Models = Dict[str, Optional[HourOfDayRegressor]]


def calculate_fit_metrics(models: Models) -> Dict[str, Any]:
    """
    Calculate in-sample fit metrics for each fitted model.

    Args:
        models: Mapping of response column to fitted model (None if the
            fit was degenerate)

    Returns:
        Dictionary with per-model metrics and the names of skipped models
    """
    metrics = {
        'per_model': {},
        'skipped': []
    }

    for response, model in models.items():
        if model is None:
            metrics['skipped'].append(response)
            continue

        y_true = model.observed_.to_numpy()
        y_pred = model.fitted_values.to_numpy()

        metrics['per_model'][response] = {
            'rmse': float(np.sqrt(mean_squared_error(y_true, y_pred))),
            'mae': float(mean_absolute_error(y_true, y_pred)),
            'r2': float(r2_score(y_true, y_pred)),
            'n_obs': model.n_obs,
            'n_params': int(len(model.coefficients)),
        }

    return metrics


def plot_residuals(
    models: Models,
    figsize: Tuple[int, int] = (14, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Residual histograms, one panel per fitted model.

    Args:
        models: Mapping of response column to fitted model
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fitted = {name: model for name, model in models.items() if model is not None}
    fig, axes = plt.subplots(1, max(len(fitted), 1), figsize=figsize, squeeze=False)
    axes = axes.flatten()

    for ax, (response, model) in zip(axes, fitted.items()):
        residuals = model.residuals

        sns.histplot(residuals, kde=True, ax=ax, bins=50, alpha=0.7)
        ax.axvline(0, color='red', linestyle='--', linewidth=2, label='Zero')
        ax.set_xlabel('Residual (Observed - Fitted)')
        ax.set_ylabel('Frequency')
        ax.set_title(f'{response} (Std: {np.std(residuals):.4f})', fontsize=10, fontweight='bold')
        ax.legend(fontsize=8)

    for idx in range(len(fitted), len(axes)):
        axes[idx].set_visible(False)

    plt.suptitle('Residual Analysis - Coordinate ~ Hour of Day', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Residuals plot saved to {save_path}")

    return fig


def plot_hourly_fit(
    models: Models,
    figsize: Tuple[int, int] = (14, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Fitted mean coordinate per hour with 95% confidence intervals.

    Args:
        models: Mapping of response column to fitted model
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fitted = {name: model for name, model in models.items() if model is not None}
    fig, axes = plt.subplots(1, max(len(fitted), 1), figsize=figsize, squeeze=False)
    axes = axes.flatten()

    for ax, (response, model) in zip(axes, fitted.items()):
        means = model.level_means()
        stderr = model.level_std_errors().reindex(means.index).to_numpy()

        ax.errorbar(means.index, means.values, yerr=1.96 * stderr,
                    fmt='o-', capsize=3, alpha=0.8, label='Fitted mean ± 95% CI')
        ax.set_xlabel('Hour of Day')
        ax.set_ylabel(response)
        ax.set_xticks(list(means.index))
        ax.set_title(f'{response} ~ hour (R²={model.r_squared:.4f})',
                     fontsize=10, fontweight='bold')
        ax.legend(loc='upper right', fontsize=8)

    for idx in range(len(fitted), len(axes)):
        axes[idx].set_visible(False)

    plt.suptitle('Mean Incident Location by Hour of Day', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Hourly fit plot saved to {save_path}")

    return fig


def evaluate_models(
    models: Models,
    output_dir: str = "reports/",
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Run fit diagnostics and write metrics and figures.

    Args:
        models: Mapping from fit_location_models
        output_dir: Directory for output files
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing metrics and file paths
    """
    output_dir = Path(output_dir)
    figures_dir = output_dir / "figures"
    metrics_dir = output_dir / "metrics"

    figures_dir.mkdir(parents=True, exist_ok=True)
    metrics_dir.mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info("EVALUATING REGRESSIONS")
    logger.info("=" * 60)

    metrics = calculate_fit_metrics(models)
    metrics['models'] = {
        response: model.to_dict()
        for response, model in models.items() if model is not None
    }

    metrics_file = metrics_dir / "regression_metrics.json"
    with open(metrics_file, 'w') as f:
        json.dump(metrics, f, indent=2, default=str)
    logger.info(f"Metrics saved to {metrics_file}")

    figures = []
    if metrics['per_model']:
        plot_residuals(models, save_path=str(figures_dir / "eval_residuals.png"))
        figures.append("eval_residuals.png")

        plot_hourly_fit(models, save_path=str(figures_dir / "eval_hourly_fit.png"))
        figures.append("eval_hourly_fit.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    for response in metrics['skipped']:
        logger.warning(f"No diagnostics for {response}: model was not fitted")

    return {
        'metrics': metrics,
        'figures': figures,
        'metrics_file': str(metrics_file)
    }


def print_evaluation_report(metrics: Dict[str, Any]) -> None:
    """
    Print a formatted evaluation report to console.

    Args:
        metrics: Metrics dictionary from calculate_fit_metrics
    """
    print("\n" + "=" * 70)
    print("REGRESSION DIAGNOSTICS")
    print("=" * 70)
    print(f"{'Response':<15} {'RMSE':<12} {'MAE':<12} {'R²':<12} {'n':<10}")
    print("-" * 70)

    for response, m in metrics['per_model'].items():
        print(f"{response:<15} {m['rmse']:<12.6f} {m['mae']:<12.6f} "
              f"{m['r2']:<12.6f} {m['n_obs']:<10}")

    for response in metrics['skipped']:
        print(f"{response:<15} (not fitted)")

    print("=" * 70 + "\n")

