import sys

from ode_workshop.cli import main

sys.exit(main())
