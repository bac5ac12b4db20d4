"""CLI for the ppistream windowed HRV toolkit."""

from __future__ import annotations

import logging

import click

from ppistream.config import settings

METRICS = [
    "rmssd",
    "moving-average",
    "median",
    "cascaded-median",
    "ema",
    "cascaded-smoothing",
]


def _read_rows(path: str, timestamp_column: str):
    """Load a prepared CSV; the timestamp column is parsed unless numeric."""
    import pandas as pd

    frame = pd.read_csv(path)
    if timestamp_column not in frame.columns:
        raise click.ClickException(f"{path} has no column {timestamp_column!r}")
    if not pd.api.types.is_numeric_dtype(frame[timestamp_column]):
        frame[timestamp_column] = pd.to_datetime(frame[timestamp_column])
    return frame


def _build_aggregate(
    metric: str,
    timestamp_column: str,
    value_column: str,
    window_ms: float,
    window_size: int,
    alpha: float,
    median_window: int,
    ma_window: int,
):
    from ppistream.analytics import hrv, smoothing

    if metric == "rmssd":
        return hrv.rmssd_aggregate(timestamp_column, window_ms, value_column)
    if metric == "moving-average":
        return smoothing.moving_average_aggregate(window_size, value_column)
    if metric == "median":
        return smoothing.median_filter_aggregate(window_size, value_column)
    if metric == "cascaded-median":
        return smoothing.cascaded_median_aggregate(value_column)
    if metric == "ema":
        return smoothing.ema_aggregate(alpha, value_column)
    return smoothing.cascaded_smoothing_aggregate(median_window, ma_window, value_column)


def _default_aggregates(timestamp_column: str, value_column: str, window_ms: float) -> dict:
    from ppistream.analytics import hrv, smoothing

    w = settings.window
    return {
        "rmssd": hrv.rmssd_aggregate(timestamp_column, window_ms, value_column),
        f"moving_average({w.moving_average_window})":
            smoothing.moving_average_aggregate(w.moving_average_window, value_column),
        f"median({w.median_window})":
            smoothing.median_filter_aggregate(w.median_window, value_column),
        "cascaded_median": smoothing.cascaded_median_aggregate(value_column),
        f"ema({w.ema_alpha})": smoothing.ema_aggregate(w.ema_alpha, value_column),
        f"cascaded_smoothing({w.cascaded_median_window},{w.cascaded_ma_window})":
            smoothing.cascaded_smoothing_aggregate(
                w.cascaded_median_window, w.cascaded_ma_window, value_column
            ),
    }


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """ppistream -- windowed HRV analytics over PPI streams."""
    from ppistream.logging_utils import configure_logging

    configure_logging(logging.DEBUG if verbose else logging.WARNING)


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--metric", "-m", type=click.Choice(METRICS), default="rmssd",
              help="Windowed aggregate to replay.")
@click.option("--window-ms", default=settings.window.rmssd_window_ms,
              help="RMSSD time window (ms, or timestamp units if numeric).")
@click.option("--window-size", default=settings.window.median_window,
              help="Row window for moving-average / median.")
@click.option("--alpha", default=settings.window.ema_alpha, help="EMA smoothing factor.")
@click.option("--median-window", default=settings.window.cascaded_median_window,
              help="Median stage width for cascaded-smoothing.")
@click.option("--ma-window", default=settings.window.cascaded_ma_window,
              help="Averaging stage width for cascaded-smoothing.")
@click.option("--capacity", "-c", default=settings.window.capacity, help="Buffer capacity (rows).")
@click.option("--timestamp-column", default=settings.columns.timestamp_column)
@click.option("--value-column", default=settings.columns.value_column)
@click.option("--output", "-o", default=None, help="Write the replayed rows as CSV.")
def replay(
    file: str,
    metric: str,
    window_ms: float,
    window_size: int,
    alpha: float,
    median_window: int,
    ma_window: int,
    capacity: int,
    timestamp_column: str,
    value_column: str,
    output: str | None,
) -> None:
    """Replay a prepared PPI CSV through a windowed aggregate."""
    from ppistream.errors import ContractViolation
    from ppistream.replay import replay_frame

    frame = _read_rows(file, timestamp_column)
    column = metric.replace("-", "_")

    try:
        aggregate = _build_aggregate(
            metric, timestamp_column, value_column,
            window_ms, window_size, alpha, median_window, ma_window,
        )
        result = replay_frame(frame, capacity, aggregate, timestamp_column, output_column=column)
    except ContractViolation as exc:
        raise click.ClickException(str(exc)) from exc

    values = result[column].dropna()
    click.echo(f"Replayed {len(result)} rows through {metric}: {len(values)} values")
    if len(values):
        click.echo(f"  last:  {values.iloc[-1]:.2f}")
        click.echo(f"  mean:  {values.mean():.2f}")
        click.echo(f"  range: {values.min():.2f} .. {values.max():.2f}")

    if output:
        result.to_csv(output, index=False)
        click.echo(f"Output written to {output}")


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--seed", "-s", default=0, help="Seed for the synthetic distortion.")
@click.option("--capacity", "-c", default=settings.window.capacity, help="Buffer capacity (rows).")
@click.option("--window-ms", default=settings.window.rmssd_window_ms, help="RMSSD time window (ms).")
@click.option("--timestamp-column", default=settings.columns.timestamp_column)
@click.option("--value-column", default=settings.columns.value_column)
@click.option("--output", "-o", default=None, help="Write the comparison table as CSV.")
def evaluate(
    file: str,
    seed: int,
    capacity: int,
    window_ms: float,
    timestamp_column: str,
    value_column: str,
    output: str | None,
) -> None:
    """Distort clean PPI rows and rank aggregates by relative error."""
    from ppistream.analytics.impact import compare_aggregates
    from ppistream.distortion import make_perturbation
    from ppistream.errors import ContractViolation

    frame = _read_rows(file, timestamp_column)
    perturb = make_perturbation(seed=seed, column=value_column, timestamp_column=timestamp_column)

    try:
        table = compare_aggregates(
            frame,
            perturb,
            _default_aggregates(timestamp_column, value_column, window_ms),
            capacity=capacity,
            timestamp_column=timestamp_column,
        )
    except ContractViolation as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"\n{'=' * 60}")
    click.echo(f"  Distortion impact ({len(frame)} rows, seed {seed})")
    click.echo(f"{'=' * 60}")
    click.echo(table.to_string(index=False))

    if output:
        table.to_csv(output, index=False)
        click.echo(f"\nTable written to {output}")


if __name__ == "__main__":
    main()
