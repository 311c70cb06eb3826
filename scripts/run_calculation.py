"""
Run a forecast calculation from a JSON graph document.

The document has the same shape as the POST /api/calculations body:
nodes, edges, variables, forecast_start_date, forecast_end_date.

Usage:
    python scripts/run_calculation.py graph.json
    python scripts/run_calculation.py graph.json --all-nodes
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.api.schemas import CalculationRequest
from src.engine.calculator import ForecastCalculator
from src.engine.errors import CalculationError
from src.utils.json_encoder import json_dumps

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Calculate a forecast graph")
    parser.add_argument("graph_file", help="Path to JSON graph document")
    parser.add_argument("--all-nodes", action="store_true", help="Include per-node results")
    args = parser.parse_args()

    with open(args.graph_file) as f:
        request = CalculationRequest(**json.load(f))

    try:
        result = ForecastCalculator().calculate(
            request.forecast_id,
            [n.to_engine() for n in request.nodes],
            [e.to_engine() for e in request.edges],
            [v.to_engine() for v in request.variables],
            request.forecast_start_date,
            request.forecast_end_date,
            include_all_nodes=args.all_nodes or request.include_all_nodes,
        )
    except CalculationError as e:
        logger.error(str(e))
        sys.exit(1)

    print(json_dumps(result.to_dict(), indent=2))


if __name__ == "__main__":
    main()
