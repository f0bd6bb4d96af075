"""
Input granularity variants and the slot availability metrics.

The daily and hourly pipelines share all orchestration logic. They differ
only in how the raw export is laid out and in the frequency and timestamp
format handed to the dataset import stage.
"""

from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field


# Column order of the metric values in the raw availability export
SLOT_METRICS: Tuple[str, ...] = (
    "sameday_1h_available_slots_number",
    "sameday_1h_theoretical_slots_number",
    "sameday_3h_available_slots_number",
    "sameday_3h_theoretical_slots_number",
    "sameday_4h_available_slots_number",
    "sameday_4h_theoretical_slots_number",
    "w2h_available_slots_number",
    "w2h_theoretical_slots_number",
    "nextday_1h_available_slots_number",
    "nextday_1h_theoretical_slots_number",
    "nextday_3h_available_slots_number",
    "nextday_3h_theoretical_slots_number",
    "nextday_4h_available_slots_number",
    "nextday_4h_theoretical_slots_number",
)


class VariantSpec(BaseModel):
    """Layout and frequency parameters of one pipeline variant."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Variant identifier")
    delimiter: str = Field(..., min_length=1, max_length=1, description="Raw input field separator")
    leading_fields: int = Field(..., ge=3, description="Fields before the first metric value")
    data_frequency: str = Field(..., description="Dataset frequency (D, H, ...)")
    forecast_frequency: str = Field("D", description="Predictor forecast frequency")
    timestamp_format: str = Field(..., description="Timestamp format declared to the import job")
    storage_folder: str = Field(..., description="Folder under the input prefix")

    @property
    def has_hour_field(self) -> bool:
        return self.leading_fields >= 4

    @property
    def expected_columns(self) -> int:
        return self.leading_fields + len(SLOT_METRICS)


DAILY = VariantSpec(
    name="daily",
    delimiter=",",
    leading_fields=3,
    data_frequency="D",
    forecast_frequency="D",
    timestamp_format="yyyy-MM-dd",
    storage_folder="days",
)

HOURLY = VariantSpec(
    name="hourly",
    delimiter="|",
    leading_fields=4,
    data_frequency="H",
    forecast_frequency="D",
    timestamp_format="yyyy-MM-dd HH:mm:ss",
    storage_folder="hours",
)

BUILTIN_VARIANTS: Dict[str, VariantSpec] = {
    DAILY.name: DAILY,
    HOURLY.name: HOURLY,
}
