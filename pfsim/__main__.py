"""CLI entry point for pfsim."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from .optimizer import Optimizer, OptimizerMessage
from .schema import PortfolioFile, SchemaError, load_portfolio
from .simulation import SimulationResult, run_simulation
from .validate import validate_portfolio

logger = logging.getLogger("pfsim")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Personal finance portfolio simulator")
    parser.add_argument("portfolio", help="Path to portfolio JSON file")
    parser.add_argument("-o", "--output", help="Write a JSON report to this path")
    parser.add_argument("--mode", choices=["deterministic", "historical"], help="Override simulation mode")
    parser.add_argument("--validate", action="store_true", help="Validate JSON only")
    parser.add_argument("--summary", action="store_true", help="Print text summary to stdout")
    parser.add_argument("--optimize", action="store_true", help="Search transfer percentages for the best finish value")
    parser.add_argument("--generations", type=int, default=600, help="Optimizer generations (default: 600)")
    parser.add_argument("--population", type=int, default=100, help="Optimizer population size (default: 100)")
    parser.add_argument("--seed", type=int, help="Random seed for reproducibility")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic log level (default: WARNING)",
    )
    return parser


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def _report_dict(result: SimulationResult) -> dict[str, Any]:
    return {
        "mode": result.mode,
        "scenario_count": result.scenario_count,
        "success_rate": result.success_rate,
        "start_years": result.start_years,
        "insolvency_years": result.insolvency_years,
        "annual": [
            {
                "year": row.year,
                "income": round(row.income, 2),
                "taxes": round(row.taxes, 2),
                "expenses": round(row.expenses, 2),
                "net_flow": round(row.net_flow, 2),
                "net_worth_end": round(row.net_worth_end, 2),
            }
            for row in result.annual
        ],
        "net_worth_percentiles": [
            {
                "year": row.year,
                "p10": round(row.p10, 2),
                "p25": round(row.p25, 2),
                "p50": round(row.p50, 2),
                "p75": round(row.p75, 2),
                "p90": round(row.p90, 2),
            }
            for row in result.net_worth_percentiles or []
        ],
        "yearly": [report.to_dict() for report in result.yearly_reports],
        "final_balances": result.final_balances,
        "issues": result.reconciliation_issues,
    }


def _write_json(path: str | Path, payload: dict[str, Any]) -> None:
    Path(path).write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def _print_summary(result: SimulationResult) -> None:
    if not result.annual:
        print("Nothing simulated.")
        return
    first = result.annual[0]
    last = result.annual[-1]
    print(f"Mode: {result.mode}")
    print(f"Years: {first.year}-{last.year}")
    if result.success_rate is not None:
        print(f"Success rate: {result.success_rate:.1%} ({result.scenario_count} scenarios)")
    print(f"Ending net worth: ${last.net_worth_end:,.0f}")
    print(f"Insolvency years: {len(result.insolvency_years)}")


def _run_optimizer(portfolio_file: PortfolioFile, args: argparse.Namespace) -> int:
    optimizer = Optimizer(
        portfolio_file.accounts,
        portfolio_file.settings.to_settings(),
        population_size=args.population,
        generations=args.generations,
        seed=args.seed,
    )
    if optimizer.gene_count == 0:
        print("No recurring transfer rules on income or expense accounts to optimize.", file=sys.stderr)
        return 1

    def _emit(message: OptimizerMessage) -> None:
        if message.kind == "foundBetter":
            logger.info("found better finish value $%s", f"{message.finish_value:,.2f}")

    best = optimizer.run(_emit)
    print(f"Best finish value: ${best:,.2f}")
    print(optimizer.describe_genes())
    if args.output:
        _write_json(
            args.output,
            {"kind": "complete", "finishValue": round(best, 2), "accounts": optimizer.best_accounts, "history": optimizer.history},
        )
        print(f"Wrote optimized accounts to {Path(args.output)}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        portfolio_file = load_portfolio(args.portfolio)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load portfolio: {exc}", file=sys.stderr)
        return 2

    validation = validate_portfolio(portfolio_file)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1

    if args.validate:
        print("Portfolio is valid.")
        return 0

    if args.optimize:
        return _run_optimizer(portfolio_file, args)

    try:
        result = run_simulation(portfolio_file, mode_override=args.mode)
    except ValueError as exc:
        print(f"Simulation failed: {exc}", file=sys.stderr)
        return 2

    if args.summary:
        _print_summary(result)
    if args.output:
        _write_json(args.output, _report_dict(result))
        print(f"Wrote report to {Path(args.output)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
