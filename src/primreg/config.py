"""
Configuration management for primreg.

Loads YAML configuration with defaults for extent estimation, significance
scoring, candidate generation, matching and tracing.
"""

import os
from dataclasses import asdict, dataclass, field
from typing import List

import yaml


@dataclass
class ExtentConfig:
    """Inlier threshold and retry policy for extent estimation."""
    threshold: float = 0.01  # usually the scale of the scene
    max_attempts: int = 10


@dataclass
class SignificanceConfig:
    """Configuration for spatial significance scoring."""
    return_squared: bool = False


@dataclass
class CandidateConfig:
    """Configuration for angle-constrained candidate generation."""
    angle_step_deg: float = 90.0
    include_90: bool = True
    angle_multiplier: float = 1.0
    up_axis: List[float] = field(default_factory=lambda: [0.0, 0.0, 1.0])


@dataclass
class MatchingConfig:
    """Configuration for correspondence matching outputs."""
    corresp_filename: str = "corresp.csv"
    subs_filename: str = "subs.csv"
    report_filename: str = "match_report.json"
    cost: str = "anchor"  # "anchor" or "segment"
    backup: bool = True


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass
class PipelineConfig:
    """Complete primreg configuration."""
    extent: ExtentConfig = field(default_factory=ExtentConfig)
    significance: SignificanceConfig = field(default_factory=SignificanceConfig)
    candidates: CandidateConfig = field(default_factory=CandidateConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)


SECTIONS = ("extent", "significance", "candidates", "matching", "tracing")


def load_config(config_path=None):
    """
    Load configuration from YAML file.

    Falls back to defaults for any missing values.
    """
    config = PipelineConfig()

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        config = _merge_config(config, yaml_data)

    return config


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass, ignoring unknown keys."""
    for section in SECTIONS:
        values = yaml_data.get(section)
        if not values:
            continue
        target = getattr(config, section)
        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)

    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    yaml_data = asdict(PipelineConfig())
    # file_path is a runtime choice, not a project default
    yaml_data["tracing"].pop("file_path")

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)
