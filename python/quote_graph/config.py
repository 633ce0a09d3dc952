"""Configuration management for the quote-graph system."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import yaml

from .models.types import Aggregate, MergePolicy, ViewSpec


@dataclass
class StoreConfig:
    """Aggregation store configuration."""
    database: str = ":memory:"
    table_name: str = "quotes"
    view_name: str = "quotes_view"
    merge_policy: str = MergePolicy.DISTINCT.value

    @property
    def policy(self) -> MergePolicy:
        return MergePolicy(self.merge_policy)


@dataclass
class ViewConfig:
    """View directives handed to the render sink."""
    view: str = "y_line"
    column_pivots: List[str] = field(default_factory=lambda: ["stock"])
    row_pivots: List[str] = field(default_factory=lambda: ["timestamp"])
    columns: List[str] = field(default_factory=lambda: ["top_ask_price"])
    aggregates: Dict[str, str] = field(default_factory=lambda: {
        "stock": "distinct count",
        "top_ask_price": "avg",
        "top_bid_price": "avg",
        "timestamp": "distinct count",
    })

    def to_view_spec(self) -> ViewSpec:
        """Build the view spec the store understands."""
        return ViewSpec(
            view=self.view,
            column_pivots=list(self.column_pivots),
            row_pivots=list(self.row_pivots),
            columns=list(self.columns),
            aggregates={name: Aggregate(rule) for name, rule in self.aggregates.items()},
        )


@dataclass
class Config:
    """Main configuration for quote-graph."""
    store: StoreConfig = field(default_factory=StoreConfig)
    view: ViewConfig = field(default_factory=ViewConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Create config from dictionary."""
        config = cls()
        section_mapping = {
            "store": config.store,
            "view": config.view,
        }
        for section_name, section_obj in section_mapping.items():
            if section_name in data:
                for key, value in data[section_name].items():
                    if hasattr(section_obj, key):
                        setattr(section_obj, key, value)
        return config

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "store": self.store.__dict__.copy(),
            "view": self.view.__dict__.copy(),
        }


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, looks for:
            1. QUOTE_GRAPH_CONFIG env var
            2. ./config/default.yaml
            3. Uses default config

    Returns:
        Config object
    """
    if config_path is None:
        config_path = os.environ.get("QUOTE_GRAPH_CONFIG")

    if config_path is None:
        default_path = Path("./config/default.yaml")
        if default_path.exists():
            config_path = str(default_path)

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path, "r") as f:
                data = yaml.safe_load(f)
                return Config.from_dict(data or {})

    return Config()


def save_config(config: Config, config_path: str) -> None:
    """Save configuration to YAML file."""
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
