"""
Main CLI entry point for bioreport

This module provides the command-line interface: listing and ranking the
available analysis engines, and running a full measurement from the
quality gate to a persisted report.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from ..core.config import (
    DEFAULT_BOARD, SERIAL_PORT, GATE_PROFILES, DEFAULT_GATE_PROFILE, MEASUREMENT_DURATION_SEC,
    STABILITY_REQUIRED_SEC, TICK_INTERVAL_SEC, REPORT_DIR, OUTPUT_LANGUAGE, SUPPORTED_LANGUAGES,
    API_KEY_ENV, PipelineConfig,
)
from ..core.data_types import AccountRef, DataTypes, MeasurementSession, QualitySnapshot
from ..acquisition.sources import BrainFlowQualitySource, FakeBiosignalSource, BOARD_NAMES
from ..quality.gate import QualityGate
from ..quality.timer import IntervalTicker
from ..quality.monitor import MeasurementMonitor
from ..engines.catalog import EngineCatalog
from ..engines.defaults import register_default_engines
from ..ledger.cost_ledger import InMemoryCostLedger
from ..storage.report_store import JsonFileReportStore
from ..pipeline.jobs import PipelineJob, Stage
from ..pipeline.orchestrator import AnalysisOrchestrator


def setup_logging(verbose: bool = False):
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_data_types(value: str) -> DataTypes:
    """Parse 'eeg,ppg' style lists for argparse"""
    names = {name.strip().lower() for name in value.split(",") if name.strip()}
    unknown = names - {"eeg", "ppg", "acc"}
    if unknown:
        raise argparse.ArgumentTypeError(f"Unknown data types: {', '.join(sorted(unknown))}")
    return DataTypes(eeg="eeg" in names, ppg="ppg" in names, acc="acc" in names)


def build_catalog(args) -> EngineCatalog:
    catalog = EngineCatalog()
    register_default_engines(catalog, api_key=args.api_key,
                             include_test_engines=args.fake or args.with_mock)
    return catalog


def list_engines(catalog: EngineCatalog) -> int:
    engines = catalog.list(sort_by="cost")
    if not engines:
        print(f"No engines registered (set {API_KEY_ENV} or pass --with-mock)")
        return 1

    print(f"{'ID':<26} {'Provider':<9} {'Cost':>5}  {'Types':<12} {'Uses':>5} {'Rating':>6}  Status")
    for descriptor in engines:
        usage = catalog.usage(descriptor.id)
        types = ",".join(name for name, on in descriptor.supported_data_types.to_dict().items() if on)
        print(f"{descriptor.id:<26} {descriptor.provider:<9} {descriptor.cost_per_analysis:>5}  "
              f"{types:<12} {usage.count:>5} {usage.average_rating:>6.1f}  {descriptor.status.value}")
    return 0


def rank_engines(catalog: EngineCatalog, required: DataTypes, budget: int) -> int:
    ranked = catalog.rank(required, budget)
    if not ranked:
        print("No active engines")
        return 1

    for position, entry in enumerate(ranked, 1):
        marker = "*" if entry.is_recommended else " "
        afford = "" if entry.is_affordable else " (over budget)"
        print(f"{position:>2}. {marker} {entry.descriptor.id:<26} score {entry.score:>3}  "
              f"cost {entry.descriptor.cost_per_analysis}{afford}  [{', '.join(entry.reasons)}]")
    return 0


def print_snapshot(snapshot: QualitySnapshot):
    print(f"Quality: overall {snapshot.overall:5.1f} | EEG {snapshot.eeg:5.1f} | "
          f"PPG {snapshot.ppg:5.1f} | Motion {snapshot.motion:5.1f} | "
          f"Contact: {'yes' if snapshot.sensor_contacted else 'no'}")


def print_progress(job: PipelineJob):
    print(f"[{job.progress_pct:>3}%] {job.stage.value}")


def record_session(args) -> Optional[MeasurementSession]:
    """Gate on signal quality, then record one session"""
    if args.fake:
        logging.info("Using synthetic biosignal data")
        source = FakeBiosignalSource(seed=args.seed)
    else:
        source = BrainFlowQualitySource(board=args.board, serial_port=args.serial_port)

    if not source.connect():
        logging.error("Failed to connect to biosignal source")
        return None

    gate = QualityGate(args.profile, required_seconds=args.stability_seconds)
    ticker = IntervalTicker(args.tick_interval)
    monitor = MeasurementMonitor(
        source, gate, ticker,
        owner=AccountRef(args.account, args.account_kind),
        duration_seconds=args.duration,
        on_snapshot=print_snapshot if args.verbose else None,
    )

    def signal_handler(signum, frame):
        logging.info("Shutdown signal received")
        monitor.stop()

    previous_int = signal.signal(signal.SIGINT, signal_handler)
    previous_term = signal.signal(signal.SIGTERM, signal_handler)

    try:
        monitor.start()
        return monitor.wait()
    finally:
        monitor.stop()
        source.disconnect()
        signal.signal(signal.SIGINT, previous_int)
        signal.signal(signal.SIGTERM, previous_term)


async def analyze_session(session: MeasurementSession, catalog: EngineCatalog, args) -> PipelineJob:
    ledger = InMemoryCostLedger({args.account: args.credits})
    store = JsonFileReportStore(args.report_dir)
    config = PipelineConfig(output_language=args.language)
    orchestrator = AnalysisOrchestrator(catalog, ledger, store, config=config)

    job = await orchestrator.process(session, args.engine, on_progress=print_progress)
    logging.info(f"Remaining credits for {args.account}: {ledger.balance(args.account)}")
    return job


def run_pipeline(args, catalog: EngineCatalog) -> int:
    session = record_session(args)
    if session is None:
        logging.error("Measurement did not complete")
        return 1

    job = asyncio.run(analyze_session(session, catalog, args))

    if job.stage == Stage.COMPLETED:
        result = job.result
        print(f"Report {job.job_id}: score {result.overall_score:.0f}, risk {result.risk_level}, "
              f"confidence {result.confidence:.2f}{' (low confidence)' if job.degraded else ''}")
        print(f"Saved to {args.report_dir}/{job.job_id}.json")
        return 0

    if job.stage == Stage.PERSISTING:
        print(f"Job {job.job_id} could not be saved: {job.last_error}")
    else:
        kind = job.error_kind.value if job.error_kind else job.stage.value
        print(f"Job {job.job_id} {job.stage.value} ({kind}): {job.error_message}")
    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser"""
    parser = argparse.ArgumentParser(
        description="bioreport - biosignal measurement to AI report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the engines available with the current API key
  python -m bioreport --list-engines

  # Rank engines for an EEG+PPG measurement with a budget of 10 credits
  python -m bioreport --rank --require eeg,ppg --budget 10

  # Full run on synthetic data with the offline mock engine
  python -m bioreport --run --fake --engine mock-test-v1

  # Full run on a Muse S headset with the lenient quality profile
  python -m bioreport --run --board muse-s --profile lenient
        """
    )

    # Mode selection (mutually exclusive)
    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument("--list-engines", action="store_true",
                            help="List registered analysis engines")
    mode_group.add_argument("--rank", action="store_true",
                            help="Rank engines for the required data types and budget")
    mode_group.add_argument("--run", action="store_true",
                            help="Measure, analyse and save a report")

    # Data source options
    parser.add_argument("--fake", action="store_true",
                        help="Use synthetic biosignal data (implies --with-mock)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for synthetic data")
    parser.add_argument("--board", choices=sorted(BOARD_NAMES), default=DEFAULT_BOARD,
                        help=f"BrainFlow board (default: {DEFAULT_BOARD})")
    parser.add_argument("--serial-port", default=SERIAL_PORT,
                        help="Serial port for BrainFlow boards")

    # Quality gate and recording
    parser.add_argument("--profile", choices=sorted(GATE_PROFILES), default=DEFAULT_GATE_PROFILE,
                        help=f"Quality gate profile (default: {DEFAULT_GATE_PROFILE})")
    parser.add_argument("--stability-seconds", type=int, default=STABILITY_REQUIRED_SEC,
                        help=f"Stable seconds required before recording (default: {STABILITY_REQUIRED_SEC})")
    parser.add_argument("--duration", type=int, default=MEASUREMENT_DURATION_SEC,
                        help=f"Recording duration in seconds (default: {MEASUREMENT_DURATION_SEC})")
    parser.add_argument("--tick-interval", type=float, default=TICK_INTERVAL_SEC,
                        help=f"Stability timer cadence in seconds (default: {TICK_INTERVAL_SEC})")

    # Engine selection and billing
    parser.add_argument("--engine", default=None,
                        help="Engine id (default: cheapest compatible engine)")
    parser.add_argument("--with-mock", action="store_true",
                        help="Register the offline mock engine")
    parser.add_argument("--require", type=parse_data_types, default=DataTypes(eeg=True, ppg=True),
                        help="Required data types for --rank (default: eeg,ppg)")
    parser.add_argument("--budget", type=int, default=10,
                        help="Credit budget for --rank (default: 10)")
    parser.add_argument("--account", default="local-user",
                        help="Paying account id (default: local-user)")
    parser.add_argument("--account-kind", choices=["user", "organization"], default="user",
                        help="Paying account type (default: user)")
    parser.add_argument("--credits", type=int, default=10,
                        help="Starting credits for the in-memory ledger (default: 10)")
    parser.add_argument("--api-key", default=None,
                        help=f"Google API key (default: ${API_KEY_ENV})")
    parser.add_argument("--language", choices=list(SUPPORTED_LANGUAGES), default=OUTPUT_LANGUAGE,
                        help=f"Report language (default: {OUTPUT_LANGUAGE})")

    # Output
    parser.add_argument("--report-dir", default=REPORT_DIR,
                        help=f"Directory for saved reports (default: {REPORT_DIR})")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    print("=" * 60)
    print("bioreport - Measurement to AI Report")
    print("=" * 60)

    try:
        catalog = build_catalog(args)

        if args.list_engines:
            return list_engines(catalog)
        elif args.rank:
            return rank_engines(catalog, args.require, args.budget)
        elif args.run:
            return run_pipeline(args, catalog)

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 0
    except Exception as e:
        logging.error(f"Unexpected error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
