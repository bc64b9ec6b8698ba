"""flaredeck - deploy Cloudflare Workers and run them side by side locally."""

__version__ = "0.1.0"

from .certs import CertCache, get_https_options  # noqa: E402
from .deployment import DeployProps, deploy  # noqa: E402
from .registry import WorkerRegistry  # noqa: E402

__all__ = [
    "CertCache",
    "DeployProps",
    "WorkerRegistry",
    "__version__",
    "deploy",
    "get_https_options",
]
