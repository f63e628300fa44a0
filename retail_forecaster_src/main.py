# retail_forecaster_src/main.py

"""
Many-models forecasting and evaluation on a monthly retail turnover panel.

This is the main entry point for the retail forecaster. One run partitions
the panel at a cutoff month, fits every model of the configured menu to every
series, forecasts each series over its validation months and scores the
forecasts per series and on aggregated series.

Purpose
-------
- Load a long panel CSV (key columns, month, value) and validate its structure
- Split at the cutoff into training (<= cutoff) and validation (> cutoff)
- Fit the model menu (drift, seasonal drift, ARIMA, ETS) per key, in parallel
  when more than one worker is configured
- Forecast validation months with prediction intervals
- Score forecasts per series (MASE, MAPE, ME, MAE, RMSE, coverage), summarise
  across series and score aggregated series (e.g. state totals)
- Optionally refit on the full panel and forecast future months
- Write every table as CSV and optionally append a markdown summary

Configuration-Driven Workflow
-----------------------------
Column names, the cutoff, the model menu, worker settings and evaluation
settings come from forecast_config defaults merged with YAML files given by
--config or RETAIL_FORECAST_CONFIG. CLI arguments override configuration
values where applicable.
"""

import argparse
import logging
import warnings
from pathlib import Path
from typing import Dict, List, Optional

from forecast_config import ConfigurationError
from many_models import Forecaster, ManyModelsTrainer, build_menu, make_executor
from evaluation import AccuracyEvaluator
from diagnostics import ResidualDiagnostics, series_features
from validation import DataValidationError, PanelSchema, partition_panel

from . import config_utils
from .config_utils import initialize_config, get_config_value
from .data_utils import load_panel_csv
from .parsing_utils import parse_intervals_arg, parse_name_list, validate_log_level
from .file_utils import append_eval_md, ensure_dir, md_table_from_df, resolve_path, write_table_csv

logger = logging.getLogger(__name__)


def resolve_schema(args: argparse.Namespace) -> PanelSchema:
    """Panel column layout from CLI overrides, then configuration."""
    keys = parse_name_list(getattr(args, "key_columns", None))
    return PanelSchema(
        key_columns=tuple(keys or get_config_value('data.key_columns', ["state", "industry"])),
        time_column=get_config_value('data.time_column', "month", args, 'time_column'),
        value_column=get_config_value('data.value_column', "value", args, 'value_column'),
    )


def resolve_levels(args: argparse.Namespace) -> List[int]:
    if getattr(args, "intervals", None):
        return parse_intervals_arg(args.intervals)
    return sorted(int(v) for v in get_config_value('forecast.levels', [80, 95]))


def run_many_models_workflow(args: argparse.Namespace, base_dir: Optional[Path] = None) -> Dict[str, Path]:
    """
    Execute the partition, train, forecast and evaluate workflow.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed CLI arguments (see setup_cli_parser)
    base_dir : Path, optional
        Directory relative paths are resolved against; defaults to the cwd

    Returns
    -------
    Dict[str, Path]
        Output table name -> CSV path written

    Raises
    ------
    DataValidationError
        For structural panel problems, including a cutoff before all data
    ValueError
        For an invalid model menu or evaluation setting
    """
    base_dir = base_dir or Path.cwd()
    output_dir = resolve_path(args.output_dir, base_dir)
    ensure_dir(output_dir)
    schema = resolve_schema(args)

    # Load and partition
    panel = load_panel_csv(resolve_path(args.panel_csv, base_dir), schema)
    cutoff = get_config_value('partition.cutoff', None, args, 'cutoff')
    if cutoff is None:
        raise ValueError("A cutoff month is required (--cutoff or partition.cutoff)")
    split = partition_panel(panel, cutoff, schema)

    # Model menu and executor
    menu = build_menu(get_config_value('models.menu', None), select=parse_name_list(args.models))
    logger.info("Model menu: %s", ", ".join(spec.name for spec in menu))
    n_workers = int(get_config_value('training.n_workers', 1, args, 'workers'))
    executor_kind = get_config_value('training.executor', "process", args, 'executor')
    show_progress = bool(get_config_value('training.show_progress', True)) and not args.no_progress

    levels = resolve_levels(args)
    bias_adjust = bool(get_config_value('forecast.bias_adjust', True)) and not args.no_bias_adjust
    forecaster = Forecaster(levels=levels, bias_adjust=bias_adjust, schema=schema)

    with make_executor(executor_kind, n_workers) as executor:
        trainer = ManyModelsTrainer(menu, executor=executor, schema=schema, show_progress=show_progress)
        training = trainer.train(split.train, keys=split.keys)
        forecasts = forecaster.forecast(training, validation=split.validation)

        future = None
        if args.horizon:
            logger.info("Refitting on the full panel for a %d-month forecast", args.horizon)
            full_training = trainer.train(panel)
            future = forecaster.forecast(full_training, horizon=int(args.horizon))

    # Evaluation
    evaluator = AccuracyEvaluator(
        period=int(get_config_value('evaluation.period', 12)),
        d=int(get_config_value('evaluation.d', 0)),
        D=int(get_config_value('evaluation.D', 1)),
        levels=levels,
        schema=schema,
    )
    weighting = get_config_value('evaluation.weighting', "mean", args, 'weighting')
    aggregate_by = parse_name_list(args.aggregate_by) or get_config_value('evaluation.aggregate_by', ["state"])

    per_series = evaluator.per_series(forecasts.table, split.validation, split.train)
    summary = evaluator.summarise(per_series, weighting=weighting)
    aggregated = evaluator.aggregated(forecasts.table, split.validation, split.train, by=aggregate_by)

    outputs = {
        "forecasts": write_table_csv(forecasts.table, output_dir / "forecasts.csv"),
        "accuracy_series": write_table_csv(per_series, output_dir / "accuracy_series.csv"),
        "accuracy_summary": write_table_csv(summary, output_dir / "accuracy_summary.csv"),
        "accuracy_aggregated": write_table_csv(aggregated, output_dir / "accuracy_aggregated.csv"),
        "fit_status": write_table_csv(training.to_frame(schema), output_dir / "fit_status.csv"),
        "forecast_failures": write_table_csv(forecasts.failures, output_dir / "forecast_failures.csv"),
    }
    if future is not None:
        outputs["future_forecasts"] = write_table_csv(future.table, output_dir / "future_forecasts.csv")

    # Diagnostics
    if get_config_value('diagnostics.enabled', True) and not args.no_diagnostics:
        diagnostics = ResidualDiagnostics.from_config(config_utils.config_manager, schema=schema)
        outputs["residual_diagnostics"] = write_table_csv(
            diagnostics.run(training), output_dir / "residual_diagnostics.csv"
        )
        period = int(get_config_value('diagnostics.stl_period', 12))
        outputs["series_features"] = write_table_csv(
            series_features(split.train, period=period, schema=schema), output_dir / "series_features.csv"
        )

    if summary.empty:
        logger.warning("No forecasts could be scored; check fit_status.csv and forecast_failures.csv")
    else:
        logger.info("Accuracy summary (%s mean across series):\n%s", weighting, summary.to_string(index=False))

    if args.eval_md:
        eval_md_path = resolve_path(args.eval_md, base_dir)
        body = "\n\n".join([
            f"Panel: `{args.panel_csv}`; cutoff {split.cutoff}; {len(split.keys)} series; "
            f"{len(training.failures())} failed fits.",
            "### Per-series accuracy (mean across series)",
            md_table_from_df(summary, max_rows=50),
            f"### Aggregated accuracy by {', '.join(aggregate_by) or 'total'}",
            md_table_from_df(aggregated, max_rows=50),
        ])
        append_eval_md(eval_md_path, f"Many-models evaluation (cutoff {split.cutoff})", body)
        logger.info("Appended run summary to %s", eval_md_path)

    logger.info("Many-models workflow completed successfully; outputs in %s", output_dir)
    return outputs


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="Many-models forecasting and evaluation on a monthly retail turnover panel."
    )

    # Data and output arguments
    parser.add_argument(
        "--panel-csv", type=str, required=True,
        help="Long CSV with key columns, a month column and a value column."
    )
    parser.add_argument(
        "--output-dir", type=str, default="outputs",
        help="Directory to write result CSVs."
    )
    parser.add_argument(
        "--key-columns", type=str, default=None,
        help="Comma-separated key columns (e.g. 'state,industry'). Uses config default if not specified."
    )
    parser.add_argument(
        "--time-column", type=str, default=None,
        help="Month column name. Uses config default if not specified."
    )
    parser.add_argument(
        "--value-column", type=str, default=None,
        help="Value column name. Uses config default if not specified."
    )
    parser.add_argument(
        "--config", type=str, action="append", default=None,
        help="YAML configuration file; may be given more than once (later files win)."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level."
    )

    # Partition and models
    parser.add_argument(
        "--cutoff", type=str, default=None,
        help="Last training month, e.g. '2017-12' or '2017 Dec'. Uses config default if not specified."
    )
    parser.add_argument(
        "--models", type=str, default=None,
        help="Comma-separated subset of menu names to fit (e.g. 'drift,sdrift'). Default: whole menu."
    )
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Number of parallel fit workers. Uses config default if not specified."
    )
    parser.add_argument(
        "--executor", type=str, default=None, choices=["serial", "thread", "process"],
        help="Executor kind used when workers > 1."
    )
    parser.add_argument(
        "--no-progress", action="store_true", default=False,
        help="Disable the fitting progress bar."
    )

    # Forecast
    parser.add_argument(
        "--intervals", type=str, default=None,
        help="Comma-separated predictive interval coverages (e.g., '80,95')."
    )
    parser.add_argument(
        "--no-bias-adjust", action="store_true", default=False,
        help="Report the back-transformed median instead of the bias-adjusted mean for log models."
    )
    parser.add_argument(
        "--horizon", type=int, default=None,
        help="If set, refit on the full panel and forecast this many future months."
    )

    # Evaluation
    parser.add_argument(
        "--aggregate-by", type=str, default=None,
        help="Comma-separated key columns kept in aggregated scoring (others are summed). Default from config."
    )
    parser.add_argument(
        "--weighting", type=str, default=None, choices=["mean", "magnitude"],
        help="Average per-series scores by simple mean or weighted by series magnitude."
    )
    parser.add_argument(
        "--no-diagnostics", action="store_true", default=False,
        help="Skip residual diagnostics and STL features."
    )
    parser.add_argument(
        "--eval-md", type=str, default=None,
        help="Append a markdown run summary to this file."
    )

    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Configure warnings based on log level
    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from statsmodels.tools.sm_exceptions import ConvergenceWarning
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")
        warnings.filterwarnings("ignore", category=RuntimeWarning, module="statsmodels")


def main(argv: Optional[List[str]] = None) -> Dict[str, Path]:
    """
    Main entry point for the retail many-models forecaster.

    Fatal problems (unreadable configuration, structurally invalid panel,
    cutoff before all data, invalid model menu) are logged and turned into
    SystemExit.
    """
    # Parse CLI arguments
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.log_level)

    # Initialize configuration system
    try:
        initialize_config(args.config)
    except ConfigurationError as e:
        logger.error("%s", e)
        raise SystemExit(f"Configuration error: {e}") from e

    try:
        return run_many_models_workflow(args)
    except (DataValidationError, ValueError) as e:
        logger.error("Fatal: %s", e)
        raise SystemExit(str(e)) from e


if __name__ == "__main__":
    main()
