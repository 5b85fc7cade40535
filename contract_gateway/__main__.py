# contract_gateway/__main__.py
import sys

from contract_gateway.cli import main

sys.exit(main())
