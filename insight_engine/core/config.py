"""
Centralized configuration management.

Every heuristic threshold and resource cap used by the analysis pipeline
is loaded and validated here, then passed explicitly into each stage.
"""
import os
import logging
from typing import Optional
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """Engine settings with validation."""

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Resource caps
    max_analysis_rows: int = Field(default=1000, ge=10, le=1000000, description="Rows analysed per invocation")
    max_scatter_points: int = Field(default=100, ge=10, le=10000, description="Points sampled for scatter plots")
    max_map_entries: int = Field(default=20, ge=1, le=1000, description="Locations kept on map visualizations")
    max_visualizations: int = Field(default=6, ge=1, le=50, description="Visualizations returned per table")
    max_insights: int = Field(default=12, ge=1, le=100, description="Narrated sentences per table")
    max_categories: int = Field(default=10, ge=2, le=100, description="Groups kept in categorical analysis")
    max_histogram_buckets: int = Field(default=10, ge=2, le=100, description="Upper bound on distribution buckets")
    max_suggested_analyses: int = Field(default=8, ge=1, le=50, description="Suggested analyses per dataset")
    max_relevant_datasets: int = Field(default=3, ge=1, le=20, description="Datasets matched per query")
    schema_sample_size: int = Field(default=100, ge=10, le=10000, description="Values sampled for pattern checks")

    # Type inference
    numeric_majority: float = Field(default=0.8, gt=0, le=1, description="Share of values that must parse as numbers")
    date_majority: float = Field(default=0.6, gt=0, le=1, description="Share of values that must parse as dates")
    boolean_majority: float = Field(default=0.8, gt=0, le=1, description="Share of values that must be boolean tokens")
    geographic_majority: float = Field(default=0.5, gt=0, le=1, description="Share of values that must look geographic")
    free_text_min_length: int = Field(default=50, ge=1, description="Average length above which values are free text")

    # Relationships and correlation
    relationship_threshold: float = Field(default=0.5, ge=0, le=1, description="Minimum |r| for schema relationships")
    relationship_min_pairs: int = Field(default=10, ge=2, description="Paired values needed for a relationship")
    hierarchy_min_strength: float = Field(default=0.95, gt=0.5, le=1, description="Minimum strength for hierarchies")
    correlation_threshold: float = Field(default=0.3, ge=0, le=1, description="Minimum |r| kept by correlation analysis")
    strong_correlation: float = Field(default=0.7, ge=0, le=1, description="|r| above which a correlation is strong")

    # Distribution and anomalies
    iqr_multiplier: float = Field(default=1.5, gt=0, description="IQR multiplier for outlier bounds")
    min_distribution_values: int = Field(default=10, ge=2, description="Values needed for distribution analysis")
    skew_threshold: float = Field(default=0.5, gt=0, description="|skewness| above which a distribution is skewed")
    anomaly_sigma: float = Field(default=2.0, gt=0, description="Standard deviations for narrated anomalies")

    # Time series
    min_time_buckets: int = Field(default=3, ge=2, description="Monthly buckets needed for trend analysis")
    max_time_series_metrics: int = Field(default=3, ge=1, le=20, description="Numeric columns plotted over time")
    trend_slope_ratio: float = Field(default=0.1, ge=0, description="Slope, as a share of the mean, that counts as a trend")
    strong_trend_pct: float = Field(default=5.0, ge=0, description="Percentage slope above which a trend is strong")
    moderate_trend_pct: float = Field(default=1.0, ge=0, description="Percentage slope above which a trend is moderate")
    volatility_threshold: float = Field(default=0.3, ge=0, description="Coefficient of variation flagged as volatile")

    # Spatial
    cluster_radius_km: float = Field(default=50.0, gt=0, description="Distance within which points join a cluster")
    spatial_outlier_z: float = Field(default=2.0, gt=0, description="|z-score| above which a location is an outlier")
    min_spatial_points: int = Field(default=5, ge=2, description="Located values needed for spatial analysis")

    # Narrative heuristics
    category_gap_ratio: float = Field(default=2.0, gt=1, description="Top/bottom ratio flagged as a gap")
    lognormal_std_threshold: float = Field(default=1.5, gt=0, description="Log-domain std below which log-normal is suggested")
    seasonal_swing_threshold: float = Field(default=0.3, gt=0, description="Max/min monthly swing flagged as seasonal")
    seasonal_min_months: int = Field(default=6, ge=2, le=12, description="Distinct calendar months needed for seasonality")
    quality_confidence_threshold: float = Field(default=0.8, ge=0, le=1, description="Field confidence earning the quality bonus")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}, got '{v}'")
        return v.upper()

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            log_level=os.getenv("INSIGHT_LOG_LEVEL", "INFO"),
            max_analysis_rows=int(os.getenv("INSIGHT_MAX_ANALYSIS_ROWS", "1000")),
            max_scatter_points=int(os.getenv("INSIGHT_MAX_SCATTER_POINTS", "100")),
            max_map_entries=int(os.getenv("INSIGHT_MAX_MAP_ENTRIES", "20")),
            max_visualizations=int(os.getenv("INSIGHT_MAX_VISUALIZATIONS", "6")),
            max_insights=int(os.getenv("INSIGHT_MAX_INSIGHTS", "12")),
            correlation_threshold=float(os.getenv("INSIGHT_CORRELATION_THRESHOLD", "0.3")),
            iqr_multiplier=float(os.getenv("INSIGHT_IQR_MULTIPLIER", "1.5")),
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get engine settings (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
        logger.info("Configuration loaded and validated successfully")
    return _settings


def reload_settings() -> Settings:
    """Reload settings (useful for testing)."""
    global _settings
    _settings = None
    return get_settings()
