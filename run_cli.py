"""
CLI entry point for portfolio optimization.

Usage:
    python run_cli.py --holdings holdings.csv
    python run_cli.py --holdings holdings.csv --risk-tolerance aggressive
    python run_cli.py --holdings holdings.csv --prices prices.csv --seed 42

For installed package, use: portfolio-optimize
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from portfolio_optimizer.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
