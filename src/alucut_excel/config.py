"""Configuration model for the alucut-excel analyzer.

Provides ``AnalyzerConfig`` with every heuristic threshold used by the
pattern detector, data extractor and analyzer.  Supports loading overrides
from YAML or JSON files via the ``from_file()`` classmethod.
"""

from __future__ import annotations

import json
import pathlib

from pydantic import BaseModel


class AnalyzerConfig(BaseModel):
    """All tunable heuristic parameters with their calibrated defaults.

    The defaults reproduce the layout conventions of the work-order sheets
    (header on the fourth row, profile/measurement/quantity in columns 7-9).
    Override individual values via constructor kwargs or load a complete
    config from a file with ``AnalyzerConfig.from_file(path)``.
    """

    # --- Identity ---
    analyzer_version: str = "alucut_excel:1.0.0"

    # --- Header detection ---
    assumed_header_row: int = 3
    header_scan_limit: int = 50
    header_min_confidence: float = 0.5
    header_early_exit_confidence: float = 0.7
    header_min_fields: int = 3

    # --- Product section detection ---
    product_scan_window: int = 50
    product_scan_columns: int = 8
    product_min_confidence: float = 0.4
    section_scan_limit: int = 200
    section_break_confidence: float = 0.7
    inference_scan_rows: int = 100
    inference_lookback_rows: int = 20
    inference_lookback_columns: int = 5
    inference_min_confidence: float = 0.5
    section_confidence: float = 0.8
    fallback_product_name: str = "All Items"
    fallback_section_confidence: float = 0.5

    # --- Validation thresholds ---
    error_confidence_threshold: float = 0.3
    warning_confidence_threshold: float = 0.7
    fallback_work_order_confidence: float = 0.5

    # --- Logging / PII safety ---
    log_sample_data: bool = False

    @classmethod
    def from_file(cls, path: str) -> AnalyzerConfig:
        """Load configuration from a YAML or JSON file.

        File format is detected by extension: ``.yaml`` / ``.yml`` for YAML,
        ``.json`` for JSON.  Any keys present in the file override the
        corresponding defaults; keys not present retain their defaults.

        Args:
            path: Filesystem path to the configuration file.

        Returns:
            A fully-populated ``AnalyzerConfig`` instance.

        Raises:
            FileNotFoundError: If *path* does not exist.
            ValueError: If the file extension is not recognized.
        """
        file_path = pathlib.Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        suffix = file_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            import yaml

            with open(file_path, encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        elif suffix == ".json":
            with open(file_path, encoding="utf-8") as fh:
                data = json.load(fh)
        else:
            raise ValueError(
                f"Unsupported config file extension '{suffix}'. "
                "Use .yaml, .yml, or .json."
            )

        if data is None:
            data = {}

        return cls(**data)
