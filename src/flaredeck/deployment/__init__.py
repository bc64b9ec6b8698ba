from .bundle import BundleOptions, Bundler, EsbuildBundler
from .deploy import DeployProps, deploy
from .reporter import drain_reports

__all__ = ["BundleOptions", "Bundler", "DeployProps", "EsbuildBundler", "deploy", "drain_reports"]
