"""Pydantic models for evaluator and signal-run configuration."""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict


class EvaluatorSettings(BaseModel):
    """Formula evaluator settings."""

    model_config = ConfigDict(extra="forbid")

    window_size: Optional[int] = Field(
        None,
        description="Base for Q<k> resolution (default: number of quarters in the window)",
    )
    max_depth: int = Field(64, description="Maximum expression nesting / lambda invocation depth")
    collect_trace: bool = Field(False, description="Record metric substitutions and evaluation steps")
    verbose: bool = Field(False, description="Log every metric lookup at INFO level")

    @field_validator("window_size")
    @classmethod
    def validate_window_size(cls, v):
        """Validate window_size is positive."""
        if v is not None and v <= 0:
            raise ValueError(f"window_size must be positive, got: {v}")
        return v

    @field_validator("max_depth")
    @classmethod
    def validate_max_depth(cls, v):
        """Validate max_depth is positive."""
        if v <= 0:
            raise ValueError(f"max_depth must be positive, got: {v}")
        return v


class DataConfig(BaseModel):
    """Quarterly data source configuration."""

    path: str = Field(description="Path to long-format quarterly CSV/JSON file")
    tickers: Optional[List[str]] = Field(None, description="Tickers to evaluate (default: all)")


class SignalConfig(BaseModel):
    """One named signal formula."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(description="Signal name (used as the result column)")
    formula: str = Field(description="Formula, e.g. 'IF(Sales[Q12] > Sales[Q11], \"BUY\", \"SELL\")'")
    selected_quarters: Optional[List[str]] = Field(
        None, description="Restrict the quarter window to these labels (optional)"
    )

    @field_validator("formula")
    @classmethod
    def validate_formula(cls, v):
        """Formula must not be blank."""
        if not v or not v.strip():
            raise ValueError("formula must not be blank")
        return v


class RunConfig(BaseModel):
    """Complete signal-run configuration."""

    model_config = ConfigDict(extra="forbid")

    data: DataConfig = Field(description="Data configuration")
    evaluator: EvaluatorSettings = Field(default_factory=EvaluatorSettings, description="Evaluator settings")
    signals: List[SignalConfig] = Field(default_factory=list, description="Signal formulas to evaluate")
    max_workers: int = Field(1, description="Worker threads used to evaluate tickers in parallel")

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v):
        """Validate max_workers is positive."""
        if v <= 0:
            raise ValueError(f"max_workers must be positive, got: {v}")
        return v

    def get_all_formulas(self) -> List[Dict[str, str]]:
        """Get all signal formulas defined in the run.

        Returns:
            List of dicts with 'name' and 'formula' keys
        """
        return [{"name": s.name, "formula": s.formula} for s in self.signals]
