"""solokube.

Provision and manage single-node Kubernetes clusters inside one sandboxed node container.
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"
