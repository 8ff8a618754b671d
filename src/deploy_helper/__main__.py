"""Allow ``python -m deploy_helper``."""

import sys

from deploy_helper.cli.playbook import main

sys.exit(main())
