"""Appforge: describe an application, get a deployed service.

One request runs a linear provisioning pipeline:
  - Generate front-end source with a completion service
  - Extract markup/style/script and stage them with a container build file
  - Create a uniquely named repository and push the workspace
  - Seal the deploy credential and register it as a repository secret
  - Push a CI workflow, dispatch it, and report the predicted service URL

Every state transition is recorded in a hash-chained Run Ledger.
"""

__version__ = "0.1.0"
__description__ = "Provisioning pipeline from an application description to a deployed service"

from appforge.core.orchestrator import Orchestrator
from appforge.cli.app import app as cli

__all__ = ["Orchestrator", "cli", "__version__"]
