"""
BikeBuilders - garage records with local export and remote backup.
"""

import sys
from bikebuilders.interface.cli import main


if __name__ == "__main__":
    sys.exit(main())
