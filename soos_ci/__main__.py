"""Entry point: python -m soos_ci"""

from soos_ci.cli import main

main()
