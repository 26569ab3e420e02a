"""
Main Runner Script for Portfolio Optimization
=============================================

Runs the full optimization workflow on a holdings file:
1. Loading holdings (and optional price history) from CSV/Excel
2. Estimating returns and covariance
3. Building the efficient frontier and selecting a portfolio
4. Monte Carlo projection and risk metrics
5. Rebalancing recommendations, plots and a JSON report

Usage:
    portfolio-optimize --holdings holdings.csv
    portfolio-optimize --holdings holdings.xlsx --risk-tolerance aggressive
    portfolio-optimize --holdings holdings.csv --prices prices.csv --seed 42
    portfolio-optimize --holdings holdings.csv --method slsqp --json report.json
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import matplotlib.pyplot as plt

from portfolio_optimizer.core.config import OptimizerConfig
from portfolio_optimizer.core.engine import PortfolioEngine
from portfolio_optimizer.core.loader import (
    load_holdings,
    load_price_table,
    total_cost_basis,
)
from portfolio_optimizer.core.market_data import StaticPriceSource
from portfolio_optimizer.core.models import RISK_TOLERANCES, OptimizationResult
from portfolio_optimizer.visualization import (
    plot_efficient_frontier,
    plot_rebalance,
    plot_simulation_distribution,
)


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logger(
    script_name: str = "portfolio_optimizer",
    log_dir: Optional[Path] = None
) -> logging.Logger:
    """
    Sets up a logger that writes to both file and console.

    Handlers are attached to the ``portfolio_optimizer`` package logger so
    messages from the library modules land in the same log.

    Args:
        script_name: Name of the script (used in log filename)
        log_dir: Directory for log files (default: <repo>/logs)

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        log_dir = Path(__file__).parent.parent.parent / "logs"
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y_%m_%d_%H%M")
    log_filename = log_dir / f"log_{script_name}_{timestamp}.txt"

    logger = logging.getLogger("portfolio_optimizer")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    # Clear existing handlers (prevent duplicates)
    if logger.hasHandlers():
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# =============================================================================
# REPORTING
# =============================================================================

def log_summary(result: OptimizationResult, logger: logging.Logger):
    """Log the headline numbers of an optimization run."""
    metrics = result.risk_metrics.to_dict()
    simulation = result.monte_carlo_results

    logger.info("=" * 60)
    logger.info("  PORTFOLIO OPTIMIZATION SUMMARY")
    logger.info("=" * 60)

    logger.info("--- Optimal Weights ---")
    for symbol, weight in result.optimal_weights.items():
        current = result.current_weights.get(symbol, 0.0)
        logger.info(f"  {symbol:<8} {current*100:>7.2f}% -> {weight*100:>7.2f}%")

    logger.info("--- Risk Metrics ---")
    logger.info(f"  Expected Return:    {metrics['expectedReturn']:.2f}%")
    logger.info(f"  Volatility:         {metrics['volatility']:.2f}%")
    logger.info(f"  Sharpe Ratio:       {metrics['sharpeRatio']:.2f}")
    logger.info(f"  Max Drawdown:       {metrics['maxDrawdown']:.2f}%")
    logger.info(f"  VaR (95%):          {metrics['valueAtRisk']:.2f}%")
    logger.info(f"  CVaR (95%):         {metrics['conditionalVaR']:.2f}%")

    logger.info(f"--- Monte Carlo ({simulation.scenarios} scenarios) ---")
    logger.info(f"  Expected Final Value: {simulation.mean:,.2f}")
    logger.info(f"  Success Rate:         {simulation.success_rate*100:.1f}%")
    for p, value in sorted(simulation.percentiles.items()):
        logger.info(f"  Percentile {p:>2}:        {value:,.2f}")

    logger.info("--- Rebalance Recommendations ---")
    if not result.rebalance_recommendations:
        logger.info("  Portfolio is within tolerance; no trades needed")
    for action in result.rebalance_recommendations:
        logger.info(f"  {action.action:<4} {action.symbol:<8} {action.amount:,.2f}")

    if result.synthetic_symbols:
        logger.info(f"Synthetic history used for: {', '.join(result.synthetic_symbols)}")
    logger.info("=" * 60)


def save_plots(result: OptimizationResult, output_dir: Path, logger: logging.Logger) -> List[Path]:
    """Save frontier, simulation and rebalance plots into ``output_dir``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = [
        output_dir / "efficient_frontier.png",
        output_dir / "monte_carlo.png",
        output_dir / "rebalance.png",
    ]
    plot_efficient_frontier(result, save_path=str(paths[0]))
    plot_simulation_distribution(result, save_path=str(paths[1]))
    plot_rebalance(result, save_path=str(paths[2]))
    plt.close('all')

    for path in paths:
        logger.info(f"Saved: {path.name}")
    return paths


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Mean-variance portfolio optimization with Monte Carlo projection',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  portfolio-optimize --holdings holdings.csv
  portfolio-optimize --holdings holdings.csv --risk-tolerance conservative
  portfolio-optimize --holdings holdings.csv --prices prices.csv --seed 42
        """
    )

    parser.add_argument('--holdings', '-H', required=True,
                        help='CSV/Excel file with symbol, quantity, average_cost columns')
    parser.add_argument('--prices', '-p',
                        help='CSV/Excel file with one price-history column per symbol')
    parser.add_argument('--total-value', '-v', type=float,
                        help='Portfolio value (default: cost basis of the holdings)')
    parser.add_argument('--risk-tolerance', '-r', choices=RISK_TOLERANCES, default='moderate',
                        help='Risk tolerance (default: moderate)')
    parser.add_argument('--scenarios', '-n', type=int, default=1000,
                        help='Monte Carlo scenarios (default: 1000)')
    parser.add_argument('--rf-rate', type=float, default=0.045,
                        help='Annual risk-free rate (default: 0.045 = 4.5%%)')
    parser.add_argument('--method', choices=('heuristic', 'slsqp'), default='heuristic',
                        help='Frontier solver for more than two assets (default: heuristic)')
    parser.add_argument('--seed', type=int, help='Random seed for reproducible results')
    parser.add_argument('--output-dir', '-o', default='output',
                        help='Directory for plots (default: ./output)')
    parser.add_argument('--log-dir', help='Directory for log files (default: logs/ in the project root)')
    parser.add_argument('--json', help='Write the result contract as JSON to this file')
    parser.add_argument('--no-plots', action='store_true', help='Disable plot generation')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the portfolio optimization script."""
    args = build_parser().parse_args(argv)

    logger = setup_logger("portfolio_optimize", Path(args.log_dir) if args.log_dir else None)

    try:
        logger.info(f"Loading holdings from: {args.holdings}")
        holdings = load_holdings(args.holdings)

        price_source = None
        if args.prices:
            logger.info(f"Loading price history from: {args.prices}")
            price_source = StaticPriceSource(histories=load_price_table(args.prices))

        total_value = args.total_value if args.total_value is not None else total_cost_basis(holdings)

        config = OptimizerConfig(
            scenarios=args.scenarios,
            risk_free_rate=args.rf_rate,
            frontier_method=args.method,
        )
        engine = PortfolioEngine(price_source, config)
        result = engine.optimize(holdings, total_value, args.risk_tolerance, seed=args.seed)

        log_summary(result, logger)

        if not args.no_plots:
            save_plots(result, Path(args.output_dir), logger)

        if args.json:
            with open(args.json, 'w', encoding='utf-8') as f:
                json.dump(result.to_dict(), f, indent=2)
            logger.info(f"Saved: {args.json}")

        logger.info("Optimization completed successfully!")
        return 0

    except Exception as e:
        logger.error(f"Optimization failed: {e}")
        logger.debug("Traceback:", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
