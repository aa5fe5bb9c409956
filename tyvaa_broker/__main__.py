import sys

from tyvaa_broker.cli import main

sys.exit(main())
