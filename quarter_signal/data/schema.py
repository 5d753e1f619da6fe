"""Pydantic models for long-format quarterly metric records."""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QuarterlyRecord(BaseModel):
    """One ticker-quarter-metric row as supplied by the storage layer.

    Accepts both snake_case and camelCase keys so rows coming straight from
    a JSON API (``metricName``, ``metricValue``...) validate unchanged.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ticker: str = Field(description="Ticker symbol")
    company_id: Optional[str] = Field(None, alias="companyId", description="Company identifier")
    quarter: str = Field(description="Quarter label, e.g. 'Mar 2024' or '2024-03-31'")
    metric_name: str = Field(alias="metricName", description="Metric name, e.g. 'OPM %'")
    metric_value: Optional[Union[float, int, str]] = Field(
        None, alias="metricValue", description="Raw metric value (may carry a '%')"
    )
    scrape_timestamp: Optional[datetime] = Field(
        None, alias="scrapeTimestamp", description="When the value was scraped"
    )

    @field_validator("quarter", "metric_name")
    @classmethod
    def validate_not_blank(cls, v):
        """Quarter and metric labels must be non-empty."""
        if not str(v).strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("company_id", mode="before")
    @classmethod
    def coerce_company_id(cls, v):
        """Numeric company ids from CSV files are kept as strings."""
        if v is None:
            return v
        return str(v)
