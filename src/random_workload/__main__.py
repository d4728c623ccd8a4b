import sys

from random_workload.cli import main

sys.exit(main())
