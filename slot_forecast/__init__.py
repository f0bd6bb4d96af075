"""
Slot Availability Forecast Package

Orchestrates a managed forecasting service over delivery-slot availability
data:
- Reshaping daily and hourly availability exports into metric partitions
- Driving dataset import, predictor training, forecast and export jobs
- Reassembling the exported forecast into one flat file for plotting
"""

__version__ = "0.1.0"

from . import config
from . import contracts
from . import orchestration

from .config import ForecastPipelineConfiguration, ConfigurationLoader
from .orchestration import PipelineOrchestrator, PipelineRunner, PollingWaiter, StageRunner

__all__ = [
    "config",
    "contracts",
    "orchestration",
    "ForecastPipelineConfiguration",
    "ConfigurationLoader",
    "PipelineOrchestrator",
    "PipelineRunner",
    "PollingWaiter",
    "StageRunner",
]
