"""Plotting of actuals against exported forecasts."""

from .forecast_plot import load_series, plot_forecast

__all__ = ["load_series", "plot_forecast"]
