from __future__ import annotations

import signal
import sys
from pathlib import Path
from typing import Iterable, NoReturn

import typer
from loguru import logger

from .config import LearnConfig, NetworkConfig, SupervisorConfig, parse_int_list
from .dataset import generate_two_class, parse_predict_request, write_training_data
from .errors import RequestParseError, SupervisorError
from .logs import setup_logging
from .rounding import get_rounding
from .supervisor import Supervisor

app = typer.Typer(no_args_is_help=True)

SERVE_ROUNDING = "nearest"
SERVE_PRECISION = 3


@app.callback()
def _root(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug/--no-debug", envvar="DEBUG", help="Verbose training output"),
    restore_from: Path | None = typer.Option(None, envvar="RESTORE_FROM", help="Snapshot to restore instead of building a new network"),
    persist_to: Path = typer.Option(Path("networks/output.network"), envvar="PERSIST_TO", help="Where the network is written on shutdown"),
    input_layers: int = typer.Option(2, envvar="INPUT_LAYERS", help="Input width"),
    hidden_layers: str = typer.Option("20,20", envvar="HIDDEN_LAYERS", help="Hidden widths, comma separated"),
    output_layers: int = typer.Option(2, envvar="OUTPUT_LAYERS", help="Output width"),
    activation: str = typer.Option("ReLU", envvar="ACTIVATION_METHOD", help="Sigmoid / BentIdentity / ReLU / LeakyReLU / ArSinH"),
    training_data_source: Path | None = typer.Option(None, envvar="TRAINING_DATA_SOURCE", help="Training file, one '<in> <out>' sample per line"),
    epochs: int = typer.Option(10, envvar="TRAINING_EPOCHS", help="Epochs per training call"),
    rate: float = typer.Option(1.2, envvar="TRAINING_RATE", help="Learning rate"),
    n_level: bool = typer.Option(True, "--n-level/--no-n-level", envvar="N_LEVEL", help="Hierarchical train/verify/retrain rounds"),
    log_level: str = typer.Option("INFO", envvar="LOG_LEVEL", help="loguru level"),
    log_dir: Path | None = typer.Option(None, envvar="LOG_DIR", help="Also write daily log files here"),
) -> None:
    """Self-correcting feed-forward network supervisor."""

    setup_logging(log_level, log_dir)
    try:
        hidden = parse_int_list(hidden_layers)
    except ValueError:
        raise typer.BadParameter(f"cannot parse hidden layers {hidden_layers!r}", param_hint="--hidden-layers")

    ctx.obj = SupervisorConfig(
        debug=bool(debug),
        restore_from=None if restore_from is None else str(restore_from),
        persist_to=str(persist_to),
        network=NetworkConfig(
            input_layers=int(input_layers),
            hidden_layers=hidden,
            output_layers=int(output_layers),
            activation=str(activation),
        ),
        learn=LearnConfig(
            training_data_source=None if training_data_source is None else str(training_data_source),
            epochs=int(epochs),
            rate=float(rate),
            n_level=bool(n_level),
        ),
    )


def _fatal(e: Exception) -> NoReturn:
    logger.error("{}", e)
    typer.echo(f"ERROR: {e}", err=True)
    raise typer.Exit(code=1)


def _build(cfg: SupervisorConfig) -> Supervisor:
    try:
        return Supervisor.from_config(cfg)
    except (SupervisorError, ValueError) as e:
        _fatal(e)


def answer(sup: Supervisor, line: str) -> str:
    """Serve one interactive request and format the reply."""

    x, expected = parse_predict_request(line)
    if expected is None:
        return f"Predicted value: {sup.predict(x)}"
    res = sup.predict_verified(x, expected, get_rounding(SERVE_ROUNDING), SERVE_PRECISION)
    return f"Predicted value: {res.predicted}, matches: {res.verified}"


def _interrupt(signum, frame) -> None:
    raise KeyboardInterrupt


def serve_requests(sup: Supervisor, lines: Iterable[str], persist_to: str | Path) -> Path:
    """Answer `lines` until they run out, Ctrl-C or SIGTERM, then shut down.

    The SIGTERM handler in place before the call is restored on the way out.
    """

    previous = signal.signal(signal.SIGTERM, _interrupt)
    try:
        for line in lines:
            if not line.strip():
                continue
            try:
                typer.echo(answer(sup, line))
            except (RequestParseError, ValueError) as e:
                logger.warning("rejected request {!r}: {}", line.rstrip("\n"), e)
                typer.echo(f"ERROR: {e}", err=True)
    except KeyboardInterrupt:
        logger.info("Closing")
    finally:
        signal.signal(signal.SIGTERM, previous)

    return sup.shutdown(persist_to)


@app.command("serve")
def serve(ctx: typer.Context) -> None:
    """Read requests from stdin until EOF or a signal, then persist the network.

    A request is '<input>' or '<input> <expected>', vectors comma separated.
    """

    cfg: SupervisorConfig = ctx.obj
    sup = _build(cfg)
    try:
        path = serve_requests(sup, sys.stdin, cfg.persist_to)
    except SupervisorError as e:
        _fatal(e)
    typer.echo(f"Wrote network -> {path}")


@app.command("train")
def train(ctx: typer.Context) -> None:
    """Build (or restore) and train the network once, then persist it."""

    cfg: SupervisorConfig = ctx.obj
    sup = _build(cfg)
    try:
        path = sup.shutdown(cfg.persist_to)
    except SupervisorError as e:
        _fatal(e)
    typer.echo(f"Training done. Wrote network -> {path}")


@app.command("predict")
def predict(
    ctx: typer.Context,
    request: str = typer.Argument(..., help="'<input>' or '<input> <expected>'"),
    snapshot: Path | None = typer.Option(None, help="Snapshot to load (defaults to --restore-from, then --persist-to)"),
    rounding: str = typer.Option(SERVE_ROUNDING, help="nearest / integer / none"),
    precision: int = typer.Option(SERVE_PRECISION, help="Decimal places for the nearest policy"),
) -> None:
    """Answer a single request from a stored snapshot without modifying it."""

    cfg: SupervisorConfig = ctx.obj
    path = snapshot or (Path(cfg.restore_from) if cfg.restore_from else Path(cfg.persist_to))

    sup = Supervisor()
    try:
        sup.restore_from(path, cfg.train_params())
    except SupervisorError as e:
        _fatal(e)

    try:
        round_fn = get_rounding(rounding)
        x, expected = parse_predict_request(request)
        if expected is None:
            typer.echo(f"Predicted value: {sup.predict(x)}")
        else:
            res = sup.predict_verified(x, expected, round_fn, precision)
            typer.echo(f"Predicted value: {res.predicted}, matches: {res.verified}")
    except (RequestParseError, ValueError) as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(code=2)
    finally:
        # the snapshot on disk stays as it was; queued corrections are dropped
        sup.guard.drain(timeout=0)
        sup.guard.close()


@app.command("generate-data")
def generate_data(
    out: Path = typer.Argument(..., help="Target file; must not exist yet"),
    n: int = typer.Option(32767, help="Number of samples"),
    seed: int | None = typer.Option(None, help="Random seed"),
) -> None:
    """Random two-class dataset: 'a,b 1,0' when a > b, else 'a,b 0,1'."""

    if out.exists():
        raise typer.BadParameter(f"target should not exist: {out}", param_hint="OUT")
    rows = write_training_data(out, generate_two_class(n=n, seed=seed))
    typer.echo(f"Wrote {rows} rows -> {out}")


@app.command("version")
def version() -> None:
    from . import __version__

    typer.echo(__version__)


if __name__ == "__main__":
    app()
